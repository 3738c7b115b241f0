"""Raw material allocation schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class RawMaterialAllocationUpdate(BaseModel):
    """One edited ledger row in a batch update."""

    id: int
    actual_qty: Decimal
    actual_measurement_id: int
    # None means "use the order's setting"
    is_adjust_quantity: Optional[bool] = None
    contact_agency_id: Optional[int] = None
    godown_id: Optional[int] = None
    order_time: Optional[datetime] = None


class AgencyAllocationLine(BaseModel):
    """Quantity of one allocation row assigned to one agency."""

    raw_material_allocation_id: int
    contact_agency_id: int
    godown_id: Optional[int] = None
    qty: Decimal
    measurement_id: int
    order_time: Optional[datetime] = None


class RawMaterialQuantityUpdate(BaseModel):
    """New total for a raw material across an order's allocation rows."""

    order_id: int
    raw_material_id: int
    qty: Decimal
    measurement_id: int


class AgencyAllocationResponse(BaseModel):
    id: int
    raw_material_allocation_id: int
    contact_agency_id: int
    godown_id: Optional[int] = None
    qty: Decimal
    measurement_id: int
    ledger_qty: Decimal
    order_time: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RawMaterialAllocationResponse(BaseModel):
    """Raw material allocation row."""

    id: int
    order_id: int
    order_function_id: int
    menu_preparation_menu_item_id: int
    menu_item_raw_material_id: Optional[int] = None
    raw_material_id: int
    planned_qty: Decimal
    planned_measurement_id: int
    actual_qty: Decimal
    actual_measurement_id: int
    extra_qty: Optional[Decimal] = None
    extra_measurement_id: Optional[int] = None
    raw_material_category_id: Optional[int] = None
    order_time: Optional[datetime] = None
    contact_agency_id: Optional[int] = None
    godown_id: Optional[int] = None
    agency_allocations: List[AgencyAllocationResponse] = []

    model_config = {"from_attributes": True}


class BatchError(BaseModel):
    """A record that failed inside a batch operation."""

    id: Optional[int] = None
    error: str
    detail: str

    @classmethod
    def from_exception(cls, record_id: Optional[int], exc: Exception) -> "BatchError":
        return cls(id=record_id, error=type(exc).__name__, detail=str(exc))


class BatchResult(BaseModel):
    """Outcome of a batch ledger operation."""

    updated: List[RawMaterialAllocationResponse] = Field(default_factory=list)
    errors: List[BatchError] = Field(default_factory=list)
    # allocation id -> agency total in the allocation's actual measurement
    totals: Dict[int, Decimal] = Field(default_factory=dict)


class RawMaterialTotalQuantity(BaseModel):
    raw_material_id: int
    total_quantity: str
