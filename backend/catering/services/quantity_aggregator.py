"""Quantity Aggregator - collapses (quantity, unit) pairs into a display string.

Used for the "Total Qty" column of order reports:

    [(0.3, Kg), (0.3, Kg), (0.5, Kg)]  ->  "1.100 Kg"
    [(200, Gm), (300, Gm)]             ->  "500 Gm"
    [(2, Kg), (3, Pcs)]                ->  "2 Kg, 3 Pcs"

Steps:
1. Every entry is assigned a reporting unit. Fractional-aware units (Kg, Ltr)
   report as themselves; anything that lands in their smallest unit (Gm, Ml)
   reports as the coarse unit; other units report as their family base.
2. Quantities are converted into the reporting unit and summed.
3. A coarse bucket totalling less than one moves to its finer unit.
4. Zero buckets are dropped; the rest render in ascending unit id.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from catering.services.errors import AllocationError
from catering.services.measurement_catalog import (
    AUTO_DECIMAL_LIMIT,
    LanguageType,
    MeasurementCatalog,
    MeasurementUnit,
)
from catering.services.unit_conversion_service import UnitConversionService

logger = logging.getLogger(__name__)

AUTO_FRACTION_DECIMALS = 3


@dataclass(frozen=True)
class QuantityEntry:
    quantity: Any
    measurement_id: int
    raw_material_id: Optional[int] = None


EntryLike = Union[QuantityEntry, Sequence[Any]]


def _as_entry(entry: EntryLike) -> QuantityEntry:
    if isinstance(entry, QuantityEntry):
        return entry
    return QuantityEntry(*entry)


def format_quantity(quantity: Decimal, unit: MeasurementUnit) -> str:
    """Render a quantity with the unit's decimal rule, without grouping."""
    limit = unit.decimal_limit_qty
    if limit == AUTO_DECIMAL_LIMIT:
        if unit.is_fractional_aware and quantity % 1 != 0:
            places = AUTO_FRACTION_DECIMALS
        else:
            places = 0
    else:
        places = limit
    rounded = quantity.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
    return format(rounded, "f")


class QuantityAggregator:
    """Builds compound multi-unit quantity strings."""

    def __init__(self, converter: UnitConversionService):
        self.converter = converter

    @property
    def catalog(self) -> MeasurementCatalog:
        return self.converter.catalog

    def reporting_unit_id(self, unit_id: int) -> int:
        unit = self.catalog.get(unit_id)
        if unit.is_fractional_aware:
            return unit.id
        base_id = unit.base_unit_id
        coarse_id = self.catalog.coarser_unit_id(base_id)
        if coarse_id is not None and self.catalog.get(coarse_id).is_fractional_aware:
            return coarse_id
        return base_id

    def totals(
        self,
        entries: Iterable[EntryLike],
        raw_material_id: Optional[int] = None,
    ) -> List[Tuple[int, Decimal]]:
        """Summed (unit id, quantity) buckets in display order, zeros dropped."""
        buckets: Dict[int, Decimal] = defaultdict(Decimal)
        for raw in entries:
            entry = _as_entry(raw)
            if raw_material_id is not None and entry.raw_material_id != raw_material_id:
                continue
            target_id = self.reporting_unit_id(entry.measurement_id)
            buckets[target_id] += self.converter.convert(
                entry.quantity, entry.measurement_id, target_id
            )

        for unit_id in sorted(buckets):
            total = buckets[unit_id]
            unit = self.catalog.get(unit_id)
            if not unit.is_fractional_aware or total <= 0 or total >= 1:
                continue
            finer_id = self.catalog.smallest_unit_id(unit_id)
            if finer_id == unit_id:
                continue
            buckets[finer_id] += self.converter.convert(total, unit_id, finer_id)
            buckets[unit_id] = Decimal("0")

        return [(unit_id, buckets[unit_id]) for unit_id in sorted(buckets) if buckets[unit_id] != 0]

    def aggregate(
        self,
        entries: Iterable[EntryLike],
        raw_material_id: Optional[int] = None,
        lang: LanguageType = LanguageType.DEFAULT,
    ) -> str:
        parts = []
        for unit_id, total in self.totals(entries, raw_material_id):
            unit = self.catalog.get(unit_id)
            parts.append(f"{format_quantity(total, unit)} {unit.symbol(lang)}")
        return ", ".join(parts)

    def aggregate_or_blank(
        self,
        entries: Iterable[EntryLike],
        raw_material_id: Optional[int] = None,
        lang: LanguageType = LanguageType.DEFAULT,
    ) -> str:
        """Like ``aggregate`` but a bad row renders as an empty cell."""
        try:
            return self.aggregate(entries, raw_material_id, lang)
        except AllocationError as e:
            logger.warning(f"Could not aggregate quantities for raw material {raw_material_id}: {e}")
            return ""
