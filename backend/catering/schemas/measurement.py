"""Measurement lookup schemas."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel


class SmallestMeasurementValueResponse(BaseModel):
    """A quantity re-expressed in its smallest measurement."""

    quantity: Decimal
    measurement_id: int
    smallest_measurement_id: int
    smallest_value: Decimal


class SmallestMeasurementIdResponse(BaseModel):
    measurement_id: int
    smallest_measurement_id: int


class AdjustedQuantityResponse(BaseModel):
    """Adjusted/extra split, both parsed and in its serialized form."""

    value: str
    adjusted_qty: Decimal
    adjusted_measurement_id: int
    extra_qty: Decimal
    extra_measurement_id: int
