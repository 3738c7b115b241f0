"""Measurement Catalog - read-only unit definitions for the allocation engine.

The catalog is built once per process (or per request, from the database)
and never mutated afterwards. It answers three questions:

- what a measurement id is (names, symbols, decimal rule);
- which family a unit belongs to (its one-hop base unit) and how many base
  units it is worth;
- which finer "smallest" unit a coarse unit is displayed and split in.

The smallest-unit table is a fixed lookup (Kg -> Gm, Ltr -> Ml) and is NOT
derived from ``base_unit_equivalent``: the family base and the finer display
unit are different concepts even when they happen to coincide.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional

from sqlalchemy.orm import Session

from catering.models.measurement import Measurement
from catering.services.errors import InvalidMeasurementCatalog, UnknownMeasurementUnit

logger = logging.getLogger(__name__)

AUTO_DECIMAL_LIMIT = -1

KILOGRAM = 1
GRAM = 2
LITRE = 3
MILLILITRE = 4
PIECE = 5
DOZEN = 6
QUINTAL = 7

DEFAULT_SMALLEST_UNITS: Dict[int, int] = {
    KILOGRAM: GRAM,
    LITRE: MILLILITRE,
}


class LanguageType(int, Enum):
    """Which of the three localized name/symbol columns to render."""

    DEFAULT = 0
    PREFER = 1
    SUPPORTIVE = 2


@dataclass(frozen=True)
class MeasurementUnit:
    """Immutable view of one measurement row."""

    id: int
    name_default_lang: str
    symbol_default_lang: str
    is_base_unit: bool
    base_unit_id: int
    base_unit_equivalent: Decimal = Decimal("1")
    decimal_limit_qty: int = 0
    is_fractional_aware: bool = False
    step_wise_range: Optional[Decimal] = None
    name_prefer_lang: Optional[str] = None
    name_supportive_lang: Optional[str] = None
    symbol_prefer_lang: Optional[str] = None
    symbol_supportive_lang: Optional[str] = None

    @property
    def factor(self) -> Decimal:
        """How many base units one of this unit is worth."""
        if self.is_base_unit:
            return Decimal("1")
        return self.base_unit_equivalent

    @property
    def step(self) -> Decimal:
        """Granularity quantities in this unit are rounded to."""
        if self.step_wise_range and self.step_wise_range > 0:
            return self.step_wise_range
        return Decimal("1")

    def symbol(self, lang: LanguageType = LanguageType.DEFAULT) -> str:
        if lang == LanguageType.PREFER and self.symbol_prefer_lang:
            return self.symbol_prefer_lang
        if lang == LanguageType.SUPPORTIVE and self.symbol_supportive_lang:
            return self.symbol_supportive_lang
        return self.symbol_default_lang

    def name(self, lang: LanguageType = LanguageType.DEFAULT) -> str:
        if lang == LanguageType.PREFER and self.name_prefer_lang:
            return self.name_prefer_lang
        if lang == LanguageType.SUPPORTIVE and self.name_supportive_lang:
            return self.name_supportive_lang
        return self.name_default_lang


class MeasurementCatalog:
    """Validated, read-only set of measurement units."""

    def __init__(
        self,
        units: Iterable[MeasurementUnit],
        smallest_units: Optional[Mapping[int, int]] = None,
    ):
        by_id: Dict[int, MeasurementUnit] = {}
        for unit in units:
            if unit.id in by_id:
                raise InvalidMeasurementCatalog(unit.id, "duplicate measurement id")
            by_id[unit.id] = unit
        self._units = MappingProxyType(by_id)

        if smallest_units is None:
            smallest_units = DEFAULT_SMALLEST_UNITS
        # Entries for units this catalog does not define are ignored, so one
        # configured table can serve catalogs that only carry some units.
        self._smallest = MappingProxyType({
            int(coarse_id): int(finer_id)
            for coarse_id, finer_id in smallest_units.items()
            if int(coarse_id) in by_id
        })

        self._validate()

        coarser: Dict[int, int] = {}
        for coarse_id in sorted(self._smallest):
            coarser.setdefault(self._smallest[coarse_id], coarse_id)
        self._coarser = MappingProxyType(coarser)

    def _validate(self) -> None:
        for unit in self._units.values():
            if unit.decimal_limit_qty < AUTO_DECIMAL_LIMIT:
                raise InvalidMeasurementCatalog(unit.id, "decimal limit must be -1 or more")
            if unit.is_base_unit:
                if unit.base_unit_id != unit.id:
                    raise InvalidMeasurementCatalog(unit.id, "a base unit must be its own base")
                continue
            base = self._units.get(unit.base_unit_id)
            if base is None:
                raise InvalidMeasurementCatalog(
                    unit.id, f"base unit {unit.base_unit_id} is not in the catalog"
                )
            if not base.is_base_unit:
                raise InvalidMeasurementCatalog(
                    unit.id, f"base unit {unit.base_unit_id} is not itself a base unit"
                )
            if unit.base_unit_equivalent is None or unit.base_unit_equivalent <= 0:
                raise InvalidMeasurementCatalog(unit.id, "base unit equivalent must be positive")

        for coarse_id, finer_id in self._smallest.items():
            if finer_id not in self._units:
                raise InvalidMeasurementCatalog(
                    coarse_id, f"smallest unit {finer_id} is not in the catalog"
                )
            if self.family_of(coarse_id) != self.family_of(finer_id):
                raise InvalidMeasurementCatalog(
                    coarse_id, f"smallest unit {finer_id} belongs to another family"
                )

    def __contains__(self, unit_id: object) -> bool:
        return unit_id in self._units

    def __iter__(self) -> Iterator[MeasurementUnit]:
        return iter(sorted(self._units.values(), key=lambda u: u.id))

    def __len__(self) -> int:
        return len(self._units)

    def get(self, unit_id: int) -> MeasurementUnit:
        """Return the unit or raise UnknownMeasurementUnit."""
        try:
            return self._units[unit_id]
        except (KeyError, TypeError):
            raise UnknownMeasurementUnit(unit_id) from None

    def family_of(self, unit_id: int) -> int:
        """Id of the base unit the given unit converts into."""
        return self.get(unit_id).base_unit_id

    def smallest_unit_id(self, unit_id: int) -> int:
        """Finer display unit for a coarse unit, or the unit itself."""
        self.get(unit_id)
        return self._smallest.get(unit_id, unit_id)

    def coarser_unit_id(self, unit_id: int) -> Optional[int]:
        """The coarse unit whose smallest unit is ``unit_id``, if any."""
        self.get(unit_id)
        return self._coarser.get(unit_id)

    @property
    def smallest_units(self) -> Mapping[int, int]:
        return self._smallest

    @classmethod
    def from_models(
        cls,
        measurements: Iterable[Measurement],
        smallest_units: Optional[Mapping[int, int]] = None,
    ) -> "MeasurementCatalog":
        """Build a catalog from Measurement rows."""
        units = []
        for m in measurements:
            if m.is_base_unit:
                base_unit_id = m.id
                equivalent = Decimal("1")
            else:
                base_unit_id = m.base_unit_id
                equivalent = (
                    Decimal(str(m.base_unit_equivalent))
                    if m.base_unit_equivalent is not None
                    else None
                )
            units.append(MeasurementUnit(
                id=m.id,
                name_default_lang=m.name_default_lang,
                name_prefer_lang=m.name_prefer_lang,
                name_supportive_lang=m.name_supportive_lang,
                symbol_default_lang=m.symbol_default_lang,
                symbol_prefer_lang=m.symbol_prefer_lang,
                symbol_supportive_lang=m.symbol_supportive_lang,
                is_base_unit=bool(m.is_base_unit),
                base_unit_id=base_unit_id,
                base_unit_equivalent=equivalent,
                decimal_limit_qty=m.decimal_limit_qty,
                is_fractional_aware=bool(m.is_fractional_aware),
                step_wise_range=(
                    Decimal(str(m.step_wise_range)) if m.step_wise_range is not None else None
                ),
            ))
        return cls(units, smallest_units)


DEFAULT_MEASUREMENTS: List[MeasurementUnit] = [
    MeasurementUnit(
        id=KILOGRAM, name_default_lang="Kilogram", symbol_default_lang="Kg",
        is_base_unit=False, base_unit_id=GRAM, base_unit_equivalent=Decimal("1000"),
        decimal_limit_qty=AUTO_DECIMAL_LIMIT, is_fractional_aware=True,
    ),
    MeasurementUnit(
        id=GRAM, name_default_lang="Gram", symbol_default_lang="Gm",
        is_base_unit=True, base_unit_id=GRAM,
    ),
    MeasurementUnit(
        id=LITRE, name_default_lang="Litre", symbol_default_lang="Ltr",
        is_base_unit=False, base_unit_id=MILLILITRE, base_unit_equivalent=Decimal("1000"),
        decimal_limit_qty=AUTO_DECIMAL_LIMIT, is_fractional_aware=True,
    ),
    MeasurementUnit(
        id=MILLILITRE, name_default_lang="Millilitre", symbol_default_lang="Ml",
        is_base_unit=True, base_unit_id=MILLILITRE,
    ),
    MeasurementUnit(
        id=PIECE, name_default_lang="Piece", symbol_default_lang="Pcs",
        is_base_unit=True, base_unit_id=PIECE,
    ),
    MeasurementUnit(
        id=DOZEN, name_default_lang="Dozen", symbol_default_lang="Dzn",
        is_base_unit=False, base_unit_id=PIECE, base_unit_equivalent=Decimal("12"),
    ),
    MeasurementUnit(
        id=QUINTAL, name_default_lang="Quintal", symbol_default_lang="Qtl",
        is_base_unit=False, base_unit_id=GRAM, base_unit_equivalent=Decimal("100000"),
        decimal_limit_qty=2,
    ),
]


def default_catalog(smallest_units: Optional[Mapping[int, int]] = None) -> MeasurementCatalog:
    """Catalog of the stock measurements every tenant starts with."""
    return MeasurementCatalog(DEFAULT_MEASUREMENTS, smallest_units)


def load_catalog(db: Session, smallest_units: Optional[Mapping[int, int]] = None) -> MeasurementCatalog:
    """Build the catalog from the active measurement rows."""
    if smallest_units is None:
        from catering.core.config import settings
        smallest_units = settings.smallest_unit_map
    rows = (
        db.query(Measurement)
        .filter(Measurement.is_active.is_(True))
        .order_by(Measurement.id)
        .all()
    )
    return MeasurementCatalog.from_models(rows, smallest_units)


def seed_default_measurements(db: Session) -> int:
    """Insert the default measurements into an empty table.

    Returns the number of rows created.
    """
    if db.query(Measurement).count() > 0:
        return 0

    # Base units first so the self-referencing foreign key is satisfied
    ordered = sorted(DEFAULT_MEASUREMENTS, key=lambda u: (not u.is_base_unit, u.id))
    for unit in ordered:
        db.add(Measurement(
            id=unit.id,
            name_default_lang=unit.name_default_lang,
            symbol_default_lang=unit.symbol_default_lang,
            is_base_unit=unit.is_base_unit,
            base_unit_id=None if unit.is_base_unit else unit.base_unit_id,
            base_unit_equivalent=None if unit.is_base_unit else unit.base_unit_equivalent,
            decimal_limit_qty=unit.decimal_limit_qty,
            is_fractional_aware=unit.is_fractional_aware,
            step_wise_range=unit.step_wise_range,
        ))
        db.flush()
    db.commit()
    logger.info(f"Seeded {len(ordered)} default measurements")
    return len(ordered)
