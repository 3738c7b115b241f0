"""Errors raised by the measurement and raw material allocation services."""

from typing import Any, Optional


class AllocationError(Exception):
    """Base class for unit conversion and allocation failures."""


class IncompatibleUnitFamily(AllocationError):
    """Raised when converting between units that do not share a base unit."""

    def __init__(self, from_unit_id: int, to_unit_id: int):
        self.from_unit_id = from_unit_id
        self.to_unit_id = to_unit_id
        super().__init__(
            f"Cannot convert measurement {from_unit_id} to measurement {to_unit_id}: "
            f"different unit families"
        )


class UnknownMeasurementUnit(AllocationError):
    """Raised when a measurement id is not in the catalog."""

    def __init__(self, unit_id: Any):
        self.unit_id = unit_id
        super().__init__(f"Measurement {unit_id} does not exist")


class InvalidQuantity(AllocationError):
    """Raised for negative, NaN, infinite or unparseable quantities."""

    def __init__(self, quantity: Any, reason: str = "must be a non-negative number"):
        self.quantity = quantity
        self.reason = reason
        super().__init__(f"Invalid quantity {quantity!r}: {reason}")


class AllocationNotFound(AllocationError):
    """Raised when a ledger row (or the record it hangs off) is missing."""

    def __init__(self, entity: str, entity_id: Any, order_id: Optional[int] = None):
        self.entity = entity
        self.entity_id = entity_id
        self.order_id = order_id
        message = f"{entity} {entity_id} not found"
        if order_id is not None:
            message += f" for order {order_id}"
        super().__init__(message)


class InvalidMeasurementCatalog(AllocationError):
    """Raised when measurement definitions break the one-hop base unit rules."""

    def __init__(self, unit_id: Optional[int], reason: str):
        self.unit_id = unit_id
        self.reason = reason
        super().__init__(f"Invalid measurement {unit_id}: {reason}")

