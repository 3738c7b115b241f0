# Services module

from catering.services.errors import (
    AllocationError,
    AllocationNotFound,
    IncompatibleUnitFamily,
    InvalidMeasurementCatalog,
    InvalidQuantity,
    UnknownMeasurementUnit,
)
from catering.services.measurement_catalog import (
    LanguageType,
    MeasurementCatalog,
    MeasurementUnit,
    default_catalog,
    load_catalog,
    seed_default_measurements,
)
from catering.services.unit_conversion_service import UnitConversionService
from catering.services.quantity_aggregator import QuantityAggregator, QuantityEntry
from catering.services.allocation_calculator import (
    AdjustedQuantity,
    AllocationCalculator,
    parse_adjusted_and_extra_quantity,
)
from catering.services.raw_material_allocation_service import RawMaterialAllocationService
