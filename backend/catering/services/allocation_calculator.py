"""Adjusted/extra quantity split.

When an order adjusts quantities, a requested amount is split into the part
that is actually allocated (whole steps of the smallest unit) and the extra
remainder. The split is serialized as ``"adjusted|unit|extra|unit"``:

    1.2505 Kg  ->  "1.25|1|0.5|2"   (1.25 Kg adjusted, 0.5 Gm extra)
    0.4 Gm     ->  "0|2|0.4|2"
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from catering.services.errors import InvalidQuantity
from catering.services.unit_conversion_service import UnitConversionService, to_quantity

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = "|"


def format_plain(quantity: Decimal) -> str:
    """Decimal text without exponent or trailing zeros."""
    text = format(quantity.normalize(), "f")
    return "0" if text in ("-0", "") else text


@dataclass(frozen=True)
class AdjustedQuantity:
    adjusted_qty: Decimal
    adjusted_measurement_id: int
    extra_qty: Decimal
    extra_measurement_id: int

    def serialize(self) -> str:
        return FIELD_SEPARATOR.join([
            format_plain(self.adjusted_qty),
            str(self.adjusted_measurement_id),
            format_plain(self.extra_qty),
            str(self.extra_measurement_id),
        ])


class AllocationCalculator:
    """Splits quantities into adjusted and extra parts."""

    def __init__(self, converter: UnitConversionService):
        self.converter = converter

    def split(
        self,
        quantity: Any,
        unit_id: int,
        is_adjust_quantity: bool,
        is_supplier_rate: bool = False,
    ) -> AdjustedQuantity:
        qty = to_quantity(quantity)
        self.converter.catalog.get(unit_id)

        if qty == 0 or not is_adjust_quantity or is_supplier_rate:
            return AdjustedQuantity(qty, unit_id, Decimal("0"), unit_id)

        smallest_id = self.converter.get_smallest_measurement_id(unit_id)
        in_smallest = self.converter.convert(qty, unit_id, smallest_id)
        adjusted = self.converter.floor_to_step(in_smallest, smallest_id)
        extra = in_smallest - adjusted

        adjusted_qty, adjusted_unit_id = adjusted, smallest_id
        if smallest_id != unit_id:
            in_input_unit = self.converter.convert(adjusted, smallest_id, unit_id)
            if in_input_unit >= 1:
                adjusted_qty, adjusted_unit_id = in_input_unit, unit_id

        return AdjustedQuantity(adjusted_qty, adjusted_unit_id, extra, smallest_id)

    def get_adjusted_and_extra_quantity(
        self,
        quantity: Any,
        unit_id: int,
        is_adjust_quantity: bool,
        is_supplier_rate: bool = False,
    ) -> str:
        return self.split(quantity, unit_id, is_adjust_quantity, is_supplier_rate).serialize()


def parse_adjusted_and_extra_quantity(value: str) -> AdjustedQuantity:
    """Inverse of ``AdjustedQuantity.serialize``."""
    if not isinstance(value, str):
        raise InvalidQuantity(value, "expected 'adjusted|unit|extra|unit'")
    fields = value.split(FIELD_SEPARATOR)
    if len(fields) != 4:
        raise InvalidQuantity(value, "expected 'adjusted|unit|extra|unit'")
    adjusted, adjusted_unit, extra, extra_unit = fields
    try:
        adjusted_unit_id = int(adjusted_unit)
        extra_unit_id = int(extra_unit)
    except ValueError:
        raise InvalidQuantity(value, "measurement ids must be integers") from None
    return AdjustedQuantity(
        adjusted_qty=to_quantity(adjusted),
        adjusted_measurement_id=adjusted_unit_id,
        extra_qty=to_quantity(extra),
        extra_measurement_id=extra_unit_id,
    )
