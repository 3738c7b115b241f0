"""Raw Material Allocation Service - the per-order raw material ledger.

One row exists per (order, function, menu item, raw material). A row keeps
three quantities:

- planned: copied from the recipe when the menu item is added;
- actual: what is allocated, edited by users or re-derived from the recipe;
- extra: the remainder of the last adjusted/extra split.

Batch operations (``update``, ``agency_allocation``) run every record inside
its own savepoint. A failing record is reported in the result and never
aborts its siblings. All values are computed before a row is touched, so a
failed record leaves its row unchanged.
"""

import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from functools import cached_property
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from catering.models.order import BookOrder, MenuPreparationMenuItem
from catering.models.raw_material import Godown, MenuItem, RawMaterial
from catering.models.raw_material_allocation import AgencyAllocation, RawMaterialAllocation
from catering.schemas.raw_material_allocation import (
    AgencyAllocationLine,
    BatchError,
    BatchResult,
    RawMaterialAllocationResponse,
    RawMaterialAllocationUpdate,
)
from catering.services.allocation_calculator import AllocationCalculator
from catering.services.errors import AllocationError, AllocationNotFound
from catering.services.measurement_catalog import LanguageType, MeasurementCatalog, load_catalog
from catering.services.quantity_aggregator import QuantityAggregator, QuantityEntry
from catering.services.unit_conversion_service import UnitConversionService, to_quantity

logger = logging.getLogger(__name__)


class RawMaterialAllocationService:
    """Mutations and queries over raw material allocation rows."""

    def __init__(self, db: Session, catalog: Optional[MeasurementCatalog] = None):
        self.db = db
        self._catalog = catalog

    @property
    def catalog(self) -> MeasurementCatalog:
        """Catalog passed in, or loaded on first use by a conversion."""
        if self._catalog is None:
            self._catalog = load_catalog(self.db)
        return self._catalog

    @cached_property
    def converter(self) -> UnitConversionService:
        return UnitConversionService(self.catalog)

    @cached_property
    def calculator(self) -> AllocationCalculator:
        return AllocationCalculator(self.converter)

    @cached_property
    def aggregator(self) -> QuantityAggregator:
        return QuantityAggregator(self.converter)

    # ===== LOOKUPS =====

    def _get_order(self, order_id: int) -> BookOrder:
        order = self.db.get(BookOrder, order_id)
        if order is None:
            raise AllocationNotFound("Order", order_id)
        return order

    def _get_row(self, allocation_id: int, order_id: int) -> RawMaterialAllocation:
        row = self.db.get(RawMaterialAllocation, allocation_id)
        if row is None or row.order_id != order_id:
            raise AllocationNotFound("RawMaterialAllocation", allocation_id, order_id)
        return row

    def _ensure_godown(self, godown_id: Optional[int]) -> None:
        if godown_id is not None and self.db.get(Godown, godown_id) is None:
            raise AllocationNotFound("Godown", godown_id)

    def _get_menu_item(self, menu_preparation_menu_item_id: int, order_id: int) -> MenuPreparationMenuItem:
        item = self.db.get(MenuPreparationMenuItem, menu_preparation_menu_item_id)
        if item is None or item.order_function.order_id != order_id:
            raise AllocationNotFound("MenuPreparationMenuItem", menu_preparation_menu_item_id, order_id)
        return item

    # ===== BATCH UPDATE =====

    def update(self, changes: Iterable[RawMaterialAllocationUpdate], order_id: int) -> BatchResult:
        """Apply edited actual quantities to the order's rows.

        A change adjusts its quantity when it says so, otherwise when the
        order does. Records are applied in order, so the last change to a row
        wins.
        """
        order = self._get_order(order_id)
        result = BatchResult()

        for change in changes:
            try:
                with self.db.begin_nested():
                    row = self._apply_update(change, order)
                result.updated.append(RawMaterialAllocationResponse.model_validate(row))
            except AllocationError as e:
                logger.warning(f"Allocation {change.id} of order {order_id} not updated: {e}")
                result.errors.append(BatchError.from_exception(change.id, e))

        self.db.commit()
        logger.info(
            f"Updated {len(result.updated)} allocations for order {order_id} "
            f"({len(result.errors)} failed)"
        )
        return result

    def _apply_update(self, change: RawMaterialAllocationUpdate, order: BookOrder) -> RawMaterialAllocation:
        row = self._get_row(change.id, order.id)
        self.converter.ensure_same_family(row.planned_measurement_id, change.actual_measurement_id)
        self._ensure_godown(change.godown_id)

        is_adjust = change.is_adjust_quantity
        if is_adjust is None:
            is_adjust = order.is_adjust_quantity
        split = self.calculator.split(change.actual_qty, change.actual_measurement_id, is_adjust)

        row.actual_qty = split.adjusted_qty
        row.actual_measurement_id = split.adjusted_measurement_id
        row.extra_qty = split.extra_qty
        row.extra_measurement_id = split.extra_measurement_id
        if change.contact_agency_id is not None:
            row.contact_agency_id = change.contact_agency_id
        if change.godown_id is not None:
            row.godown_id = change.godown_id
        if change.order_time is not None:
            row.order_time = change.order_time
        self.db.flush()
        return row

    # ===== RECIPE SYNC =====

    def sync_raw_material(
        self,
        order_id: int,
        menu_preparation_menu_item_id: int,
        menu_item_raw_material_id: Optional[int],
        actual_qty: Any,
        actual_measurement_id: int,
        raw_material_category_id: Optional[int],
        order_time: Optional[datetime],
        raw_material_id: int,
    ) -> RawMaterialAllocation:
        """Re-derive one row from its recipe quantity, creating it if needed."""
        order = self._get_order(order_id)
        item = self._get_menu_item(menu_preparation_menu_item_id, order_id)
        row = self._sync(
            order, item, menu_item_raw_material_id, actual_qty, actual_measurement_id,
            raw_material_category_id, order_time, raw_material_id,
        )
        self.db.commit()
        self.db.refresh(row)
        return row

    def _sync(
        self,
        order: BookOrder,
        item: MenuPreparationMenuItem,
        menu_item_raw_material_id: Optional[int],
        actual_qty: Any,
        actual_measurement_id: int,
        raw_material_category_id: Optional[int],
        order_time: Optional[datetime],
        raw_material_id: int,
    ) -> RawMaterialAllocation:
        raw_material = self.db.get(RawMaterial, raw_material_id)
        if raw_material is None:
            raise AllocationNotFound("RawMaterial", raw_material_id)
        planned_qty = to_quantity(actual_qty)
        self.catalog.get(actual_measurement_id)

        row = (
            self.db.query(RawMaterialAllocation)
            .filter(
                RawMaterialAllocation.menu_preparation_menu_item_id == item.id,
                RawMaterialAllocation.raw_material_id == raw_material_id,
            )
            .order_by(RawMaterialAllocation.id)
            .first()
        )

        # Keep the unit the user already chose for an existing row
        target_unit_id = actual_measurement_id
        qty = planned_qty
        if row is not None and row.actual_measurement_id != actual_measurement_id:
            target_unit_id = row.actual_measurement_id
            qty = self.converter.convert(planned_qty, actual_measurement_id, target_unit_id)
        split = self.calculator.split(qty, target_unit_id, order.is_adjust_quantity)

        if row is None:
            row = RawMaterialAllocation(
                order_id=order.id,
                order_function_id=item.order_function_id,
                menu_preparation_menu_item_id=item.id,
                raw_material_id=raw_material_id,
                contact_agency_id=raw_material.default_supplier_id,
            )
            self.db.add(row)
            logger.info(
                f"Created allocation for raw material {raw_material_id} "
                f"on menu item {item.id} of order {order.id}"
            )

        if raw_material_category_id is None:
            raw_material_category_id = raw_material.raw_material_category_id
        row.menu_item_raw_material_id = menu_item_raw_material_id
        row.planned_qty = planned_qty
        row.planned_measurement_id = actual_measurement_id
        row.actual_qty = split.adjusted_qty
        row.actual_measurement_id = split.adjusted_measurement_id
        row.extra_qty = split.extra_qty
        row.extra_measurement_id = split.extra_measurement_id
        row.raw_material_category_id = raw_material_category_id
        if order_time is not None:
            row.order_time = order_time
        self.db.flush()
        return row

    def seed_from_recipe(
        self,
        order_id: int,
        menu_preparation_menu_item_id: int,
        order_time: Optional[datetime] = None,
    ) -> List[RawMaterialAllocation]:
        """Create (or refresh) the rows of a menu item from its recipe lines."""
        order = self._get_order(order_id)
        item = self._get_menu_item(menu_preparation_menu_item_id, order_id)
        menu_item = self.db.get(MenuItem, item.menu_item_id)
        if menu_item is None:
            raise AllocationNotFound("MenuItem", item.menu_item_id)

        rows = []
        for line in menu_item.raw_materials:
            rows.append(self._sync(
                order, item, line.id, line.qty, line.measurement_id,
                None, order_time, line.raw_material_id,
            ))
        self.db.commit()
        logger.info(f"Seeded {len(rows)} allocations for menu item {item.id} of order {order_id}")
        return rows

    # ===== AGENCY ALLOCATION =====

    def agency_allocation(self, lines: Iterable[AgencyAllocationLine], order_id: int) -> BatchResult:
        """Assign shares of allocation rows to agencies.

        Each line is converted into its row's actual measurement so totals
        stay comparable when agencies declare different units.
        """
        self._get_order(order_id)
        result = BatchResult()
        touched: Dict[int, RawMaterialAllocation] = {}

        for line in lines:
            try:
                with self.db.begin_nested():
                    row = self._apply_agency_line(line, order_id)
                touched[row.id] = row
            except AllocationError as e:
                logger.warning(
                    f"Agency {line.contact_agency_id} not allocated to "
                    f"allocation {line.raw_material_allocation_id}: {e}"
                )
                result.errors.append(BatchError.from_exception(line.raw_material_allocation_id, e))

        self.db.commit()

        for row_id, row in touched.items():
            self.db.refresh(row)
            result.totals[row_id] = sum(
                (
                    self.converter.convert(a.qty, a.measurement_id, row.actual_measurement_id)
                    for a in row.agency_allocations
                ),
                Decimal("0"),
            )
            result.updated.append(RawMaterialAllocationResponse.model_validate(row))

        logger.info(f"Allocated agencies on {len(touched)} allocations for order {order_id}")
        return result

    def _apply_agency_line(self, line: AgencyAllocationLine, order_id: int) -> RawMaterialAllocation:
        row = self._get_row(line.raw_material_allocation_id, order_id)
        ledger_qty = self.converter.convert(line.qty, line.measurement_id, row.actual_measurement_id)
        self._ensure_godown(line.godown_id)

        existing = next(
            (a for a in row.agency_allocations if a.contact_agency_id == line.contact_agency_id),
            None,
        )
        if existing is None:
            existing = AgencyAllocation(contact_agency_id=line.contact_agency_id)
            row.agency_allocations.append(existing)
        existing.godown_id = line.godown_id
        existing.qty = to_quantity(line.qty)
        existing.measurement_id = line.measurement_id
        existing.ledger_qty = ledger_qty
        existing.order_time = line.order_time

        row.contact_agency_id = line.contact_agency_id
        if line.godown_id is not None:
            row.godown_id = line.godown_id
        if line.order_time is not None:
            row.order_time = line.order_time
        self.db.flush()
        return row

    # ===== QUERIES =====

    def find_by_menu_preparation_menu_item_id(
        self, menu_preparation_menu_item_id: int
    ) -> List[RawMaterialAllocation]:
        return (
            self.db.query(RawMaterialAllocation)
            .filter(RawMaterialAllocation.menu_preparation_menu_item_id == menu_preparation_menu_item_id)
            .order_by(RawMaterialAllocation.id)
            .all()
        )

    def read(self, menu_preparation_menu_item_id: int) -> List[RawMaterialAllocationResponse]:
        return [
            RawMaterialAllocationResponse.model_validate(row)
            for row in self.find_by_menu_preparation_menu_item_id(menu_preparation_menu_item_id)
        ]

    def exists_by_godown_id(self, godown_id: int) -> bool:
        """Whether any allocation or agency line still issues from the godown."""
        if (
            self.db.query(RawMaterialAllocation.id)
            .filter(RawMaterialAllocation.godown_id == godown_id)
            .first()
            is not None
        ):
            return True
        return (
            self.db.query(AgencyAllocation.id)
            .filter(AgencyAllocation.godown_id == godown_id)
            .first()
            is not None
        )

    def delete_by_id(self, allocation_id: int, order_id: int) -> None:
        row = self._get_row(allocation_id, order_id)
        self.db.delete(row)
        self.db.commit()
        logger.info(f"Deleted allocation {allocation_id} of order {order_id}")

    # ===== RAW MATERIAL TOTALS =====

    def update_raw_material_quantity(
        self,
        order_id: int,
        raw_material_id: int,
        target_qty: Any,
        target_measurement_id: int,
    ) -> List[RawMaterialAllocation]:
        """Spread a new order total for a raw material over its existing rows.

        Works in the smallest unit of ``target_measurement_id``. A surplus
        goes to the first row; a shortfall empties rows in order until it is
        absorbed.
        """
        self._get_order(order_id)
        rows = (
            self.db.query(RawMaterialAllocation)
            .filter(
                RawMaterialAllocation.order_id == order_id,
                RawMaterialAllocation.raw_material_id == raw_material_id,
            )
            .order_by(RawMaterialAllocation.id)
            .all()
        )
        if not rows:
            raise AllocationNotFound("RawMaterial", raw_material_id, order_id)

        smallest_id = self.converter.get_smallest_measurement_id(target_measurement_id)
        target = self.converter.convert(target_qty, target_measurement_id, smallest_id)
        amounts = [
            self.converter.convert(row.actual_qty, row.actual_measurement_id, smallest_id)
            for row in rows
        ]
        difference = target - sum(amounts, Decimal("0"))

        new_amounts = list(amounts)
        if difference > 0:
            new_amounts[0] += difference
        elif difference < 0:
            shortfall = -difference
            for i, amount in enumerate(new_amounts):
                if shortfall <= 0:
                    break
                taken = min(amount, shortfall)
                new_amounts[i] = amount - taken
                shortfall -= taken

        for row, before, after in zip(rows, amounts, new_amounts):
            if before == after:
                continue
            qty, unit_id = self.converter.compact_quantity(after, smallest_id)
            row.actual_qty = qty
            row.actual_measurement_id = unit_id

        self.db.commit()
        logger.info(
            f"Set raw material {raw_material_id} of order {order_id} to "
            f"{target} (measurement {smallest_id})"
        )
        return rows

    def total_quantity_by_raw_material(
        self, order_id: int, lang: LanguageType = LanguageType.DEFAULT
    ) -> Dict[int, str]:
        """The "Total Qty" report column: one compound string per raw material."""
        self._get_order(order_id)
        rows = (
            self.db.query(RawMaterialAllocation)
            .filter(RawMaterialAllocation.order_id == order_id)
            .order_by(RawMaterialAllocation.raw_material_id, RawMaterialAllocation.id)
            .all()
        )
        entries: Dict[int, List[QuantityEntry]] = defaultdict(list)
        for row in rows:
            entries[row.raw_material_id].append(
                QuantityEntry(row.actual_qty, row.actual_measurement_id, row.raw_material_id)
            )
        return {
            raw_material_id: self.aggregator.aggregate_or_blank(items, raw_material_id, lang)
            for raw_material_id, items in entries.items()
        }

    def estimate_cost(self, order_id: int) -> Dict[int, Decimal]:
        """Supplier cost of the allocated quantities, per raw material.

        Raw materials without a supplier rate are left out, and so is any
        row whose quantity cannot be priced (logged as a warning).
        """
        self._get_order(order_id)
        rows = (
            self.db.query(RawMaterialAllocation, RawMaterial)
            .join(RawMaterial, RawMaterial.id == RawMaterialAllocation.raw_material_id)
            .filter(RawMaterialAllocation.order_id == order_id)
            .order_by(RawMaterialAllocation.id)
            .all()
        )
        costs: Dict[int, Decimal] = {}
        for row, raw_material in rows:
            if raw_material.supplier_rate is None:
                continue
            try:
                smallest_id = self.converter.get_smallest_measurement_id(raw_material.measurement_id)
                rate = self.converter.supplier_rate_per_smallest_unit(
                    raw_material.supplier_rate, raw_material.measurement_id
                )
                qty = self.converter.convert(row.actual_qty, row.actual_measurement_id, smallest_id)
            except AllocationError as e:
                logger.warning(f"Allocation {row.id} left out of the cost of order {order_id}: {e}")
                continue
            costs[raw_material.id] = costs.get(raw_material.id, Decimal("0")) + qty * rate
        return costs
