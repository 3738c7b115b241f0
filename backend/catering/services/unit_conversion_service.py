"""Unit Conversion Service - converts raw material quantities between measurements.

Every conversion goes through the family base unit:

    quantity_in_base = quantity * from.base_unit_equivalent
    result           = quantity_in_base / to.base_unit_equivalent

Base units have an equivalent of 1. Units whose base units differ cannot be
converted (Kg -> Ltr raises IncompatibleUnitFamily).

Results are not quantized here; display rounding belongs to the aggregator
and the API layer.
"""

import logging
from decimal import Decimal, InvalidOperation, ROUND_CEILING, ROUND_FLOOR
from typing import Any, Tuple

from catering.services.errors import IncompatibleUnitFamily, InvalidQuantity
from catering.services.measurement_catalog import MeasurementCatalog

logger = logging.getLogger(__name__)


def to_quantity(value: Any) -> Decimal:
    """Coerce a user supplied quantity to a non-negative finite Decimal."""
    if isinstance(value, bool) or value is None:
        raise InvalidQuantity(value, "must be a number")
    if isinstance(value, Decimal):
        quantity = value
    else:
        try:
            quantity = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidQuantity(value, "must be a number") from None
    if not quantity.is_finite():
        raise InvalidQuantity(value, "must be finite")
    if quantity < 0:
        raise InvalidQuantity(value)
    return quantity


def round_to_step(quantity: Decimal, step: Decimal, rounding: str) -> Decimal:
    """Round ``quantity`` to a whole multiple of ``step``."""
    return (quantity / step).to_integral_value(rounding=rounding) * step


class UnitConversionService:
    """Pure conversions and smallest-unit lookups over a measurement catalog."""

    def __init__(self, catalog: MeasurementCatalog):
        self.catalog = catalog

    def same_family(self, from_unit_id: int, to_unit_id: int) -> bool:
        return self.catalog.family_of(from_unit_id) == self.catalog.family_of(to_unit_id)

    def ensure_same_family(self, from_unit_id: int, to_unit_id: int) -> None:
        if not self.same_family(from_unit_id, to_unit_id):
            raise IncompatibleUnitFamily(from_unit_id, to_unit_id)

    def convert(self, quantity: Any, from_unit_id: int, to_unit_id: int) -> Decimal:
        """Convert ``quantity`` from one measurement to another of the same family."""
        qty = to_quantity(quantity)
        source = self.catalog.get(from_unit_id)
        target = self.catalog.get(to_unit_id)
        if source.id == target.id:
            return qty
        if source.base_unit_id != target.base_unit_id:
            raise IncompatibleUnitFamily(from_unit_id, to_unit_id)
        result = qty * source.factor / target.factor
        logger.debug(f"Converted {qty} of measurement {source.id} to {result} of {target.id}")
        return result

    # ===== SMALLEST UNIT =====

    def get_smallest_measurement_id(self, unit_id: int) -> int:
        """Finer display unit for ``unit_id`` (Kg -> Gm), or the unit itself."""
        return self.catalog.smallest_unit_id(unit_id)

    def get_smallest_measurement_value(self, quantity: Any, unit_id: int) -> Decimal:
        """``quantity`` expressed in the smallest unit of ``unit_id``."""
        smallest_id = self.get_smallest_measurement_id(unit_id)
        return self.convert(quantity, unit_id, smallest_id)

    # ===== COMPACT DISPLAY =====

    def compact_quantity(
        self, quantity: Any, unit_id: int, is_adjust_quantity: bool = False
    ) -> Tuple[Decimal, int]:
        """Express a quantity in the most compact display unit.

        A quantity in a finer unit that is worth at least one whole coarse
        unit moves to the coarse unit (1500 Gm -> 1.5 Kg); otherwise it stays
        where it is. With ``is_adjust_quantity`` the quantity is first rounded
        up to the unit's step.
        """
        qty = to_quantity(quantity)
        unit = self.catalog.get(unit_id)
        if is_adjust_quantity:
            qty = round_to_step(qty, unit.step, ROUND_CEILING)

        coarse_id = self.catalog.coarser_unit_id(unit_id)
        if coarse_id is not None:
            in_coarse = self.convert(qty, unit_id, coarse_id)
            if in_coarse >= 1:
                return in_coarse, coarse_id
        return qty, unit_id

    def adjust_quantity(self, quantity: Any, unit_id: int, is_adjust_quantity: bool = False) -> Decimal:
        return self.compact_quantity(quantity, unit_id, is_adjust_quantity)[0]

    def adjust_quantity_unit(self, quantity: Any, unit_id: int, is_adjust_quantity: bool = False) -> int:
        return self.compact_quantity(quantity, unit_id, is_adjust_quantity)[1]

    # ===== COSTING =====

    def supplier_rate_per_smallest_unit(self, rate: Any, unit_id: int) -> Decimal:
        """Price of one smallest unit given a price per ``unit_id`` (per Kg -> per Gm)."""
        price = to_quantity(rate)
        smallest_id = self.get_smallest_measurement_id(unit_id)
        return price * self.convert(1, smallest_id, unit_id)

    def floor_to_step(self, quantity: Any, unit_id: int) -> Decimal:
        """Largest multiple of the unit's step not above ``quantity``."""
        qty = to_quantity(quantity)
        return round_to_step(qty, self.catalog.get(unit_id).step, ROUND_FLOOR)
