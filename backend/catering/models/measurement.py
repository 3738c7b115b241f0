"""Measurement (unit of measure) model."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from catering.db.base import Base, TimestampMixin


class Measurement(Base, TimestampMixin):
    """A unit of measure with its conversion into the family base unit.

    Base units leave ``base_unit_id`` and ``base_unit_equivalent`` empty.
    Every other unit points at a base unit one hop away and states how many
    base units one of it is worth (1 Kg = 1000 Gm).
    """

    __tablename__ = "measurements"

    id: Mapped[int] = mapped_column(primary_key=True)
    name_default_lang: Mapped[str] = mapped_column(String(100), nullable=False)
    name_prefer_lang: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    name_supportive_lang: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    symbol_default_lang: Mapped[str] = mapped_column(String(20), nullable=False)
    symbol_prefer_lang: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    symbol_supportive_lang: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    is_base_unit: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    base_unit_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("measurements.id"), nullable=True, index=True
    )
    base_unit_equivalent: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 6), nullable=True)

    # -1 means "auto" (3 decimals when fractional, else 0) for fractional-aware units
    decimal_limit_qty: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_fractional_aware: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    step_wise_range: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 6), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
