"""API routes."""

import logging
from fastapi import APIRouter

from catering.api.routes import raw_material_allocation

logger = logging.getLogger(__name__)

api_router = APIRouter()

api_router.include_router(
    raw_material_allocation.router,
    prefix="/raw-material-allocation",
    tags=["raw-material-allocation", "measurements"],
)
