"""Raw material allocation routes.

Thin HTTP layer over the unit conversion engine and the allocation ledger.
Engine errors become 400s; a missing order or row becomes a 404. Batch
endpoints always answer 200 and list failed records in ``errors``.
"""

import logging
from decimal import Decimal
from typing import Annotated, Dict, List, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from catering.core.rate_limit import limiter
from catering.db.session import DbSession
from catering.schemas.measurement import (
    AdjustedQuantityResponse,
    SmallestMeasurementIdResponse,
    SmallestMeasurementValueResponse,
)
from catering.schemas.raw_material_allocation import (
    AgencyAllocationLine,
    BatchResult,
    RawMaterialAllocationResponse,
    RawMaterialAllocationUpdate,
    RawMaterialQuantityUpdate,
    RawMaterialTotalQuantity,
)
from catering.services.allocation_calculator import AllocationCalculator
from catering.services.errors import AllocationError, AllocationNotFound
from catering.services.measurement_catalog import LanguageType, MeasurementCatalog, load_catalog
from catering.services.raw_material_allocation_service import RawMaterialAllocationService
from catering.services.unit_conversion_service import UnitConversionService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_catalog(db: DbSession) -> MeasurementCatalog:
    """Measurement catalog for the current request."""
    return load_catalog(db)


CatalogDep = Annotated[MeasurementCatalog, Depends(get_catalog)]


def _raise_http(e: AllocationError) -> NoReturn:
    if isinstance(e, AllocationNotFound):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


# ==================== MEASUREMENT LOOKUPS ====================

@router.get("/smallest-measurement-value", response_model=SmallestMeasurementValueResponse)
@limiter.limit("60/minute")
def get_smallest_measurement_value(
    request: Request,
    catalog: CatalogDep,
    quantity: Decimal = Query(...),
    measurement_id: int = Query(...),
):
    """Quantity re-expressed in its smallest measurement (Kg -> Gm)."""
    converter = UnitConversionService(catalog)
    try:
        return SmallestMeasurementValueResponse(
            quantity=quantity,
            measurement_id=measurement_id,
            smallest_measurement_id=converter.get_smallest_measurement_id(measurement_id),
            smallest_value=converter.get_smallest_measurement_value(quantity, measurement_id),
        )
    except AllocationError as e:
        _raise_http(e)


@router.get("/smallest-measurement-id", response_model=SmallestMeasurementIdResponse)
@limiter.limit("60/minute")
def get_smallest_measurement_id(
    request: Request,
    catalog: CatalogDep,
    measurement_id: int = Query(...),
):
    converter = UnitConversionService(catalog)
    try:
        smallest_id = converter.get_smallest_measurement_id(measurement_id)
    except AllocationError as e:
        _raise_http(e)
    return SmallestMeasurementIdResponse(
        measurement_id=measurement_id, smallest_measurement_id=smallest_id
    )


@router.get("/adjusted-quantity", response_model=AdjustedQuantityResponse)
@limiter.limit("60/minute")
def get_adjusted_quantity(
    request: Request,
    catalog: CatalogDep,
    quantity: Decimal = Query(...),
    measurement_id: int = Query(...),
    is_adjust_quantity: bool = Query(False),
    is_supplier_rate: bool = Query(False),
):
    """Split a quantity into its adjusted and extra parts."""
    calculator = AllocationCalculator(UnitConversionService(catalog))
    try:
        split = calculator.split(quantity, measurement_id, is_adjust_quantity, is_supplier_rate)
    except AllocationError as e:
        _raise_http(e)
    return AdjustedQuantityResponse(
        value=split.serialize(),
        adjusted_qty=split.adjusted_qty,
        adjusted_measurement_id=split.adjusted_measurement_id,
        extra_qty=split.extra_qty,
        extra_measurement_id=split.extra_measurement_id,
    )


# ==================== LEDGER ====================

@router.get("/menu-item/{menu_preparation_menu_item_id}", response_model=List[RawMaterialAllocationResponse])
@limiter.limit("60/minute")
def read_by_menu_item(
    request: Request,
    db: DbSession,
    menu_preparation_menu_item_id: int,
):
    """Allocation rows of one menu preparation menu item."""
    return RawMaterialAllocationService(db).read(menu_preparation_menu_item_id)


@router.put("", response_model=BatchResult)
@limiter.limit("30/minute")
def update_allocations(
    request: Request,
    db: DbSession,
    catalog: CatalogDep,
    changes: List[RawMaterialAllocationUpdate],
    order_id: int = Query(...),
):
    """Apply a batch of edited actual quantities."""
    try:
        return RawMaterialAllocationService(db, catalog).update(changes, order_id)
    except AllocationError as e:
        _raise_http(e)


@router.put("/agency-allocation", response_model=BatchResult)
@limiter.limit("30/minute")
def allocate_agencies(
    request: Request,
    db: DbSession,
    catalog: CatalogDep,
    lines: List[AgencyAllocationLine],
    order_id: int = Query(...),
):
    """Assign allocation shares to agencies."""
    try:
        return RawMaterialAllocationService(db, catalog).agency_allocation(lines, order_id)
    except AllocationError as e:
        _raise_http(e)


@router.put("/raw-material-quantity", response_model=List[RawMaterialAllocationResponse])
@limiter.limit("30/minute")
def update_raw_material_quantity(
    request: Request,
    db: DbSession,
    catalog: CatalogDep,
    payload: RawMaterialQuantityUpdate,
):
    """Spread a new order total for a raw material over its rows."""
    service = RawMaterialAllocationService(db, catalog)
    try:
        rows = service.update_raw_material_quantity(
            payload.order_id, payload.raw_material_id, payload.qty, payload.measurement_id
        )
    except AllocationError as e:
        _raise_http(e)
    return [RawMaterialAllocationResponse.model_validate(row) for row in rows]


@router.delete("/{allocation_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("30/minute")
def delete_allocation(
    request: Request,
    db: DbSession,
    allocation_id: int,
    order_id: int = Query(...),
):
    try:
        RawMaterialAllocationService(db).delete_by_id(allocation_id, order_id)
    except AllocationError as e:
        _raise_http(e)


@router.get("/order/{order_id}/total-quantity", response_model=List[RawMaterialTotalQuantity])
@limiter.limit("60/minute")
def get_total_quantity(
    request: Request,
    db: DbSession,
    catalog: CatalogDep,
    order_id: int,
    lang: LanguageType = Query(LanguageType.DEFAULT),
):
    """Compound "Total Qty" string per raw material of an order."""
    try:
        totals: Dict[int, str] = RawMaterialAllocationService(db, catalog).total_quantity_by_raw_material(
            order_id, lang
        )
    except AllocationError as e:
        _raise_http(e)
    return [
        RawMaterialTotalQuantity(raw_material_id=raw_material_id, total_quantity=text)
        for raw_material_id, text in sorted(totals.items())
    ]
