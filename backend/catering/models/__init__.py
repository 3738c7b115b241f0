"""SQLAlchemy models."""

from catering.models.measurement import Measurement
from catering.models.raw_material import RawMaterial, MenuItem, MenuItemRawMaterial, Godown
from catering.models.order import BookOrder, OrderFunction, MenuPreparationMenuItem
from catering.models.raw_material_allocation import RawMaterialAllocation, AgencyAllocation

__all__ = [
    "Measurement",
    "RawMaterial",
    "MenuItem",
    "MenuItemRawMaterial",
    "Godown",
    "BookOrder",
    "OrderFunction",
    "MenuPreparationMenuItem",
    "RawMaterialAllocation",
    "AgencyAllocation",
]
