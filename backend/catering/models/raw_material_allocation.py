"""Raw material allocation ledger models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from catering.db.base import Base, TimestampMixin


class RawMaterialAllocation(Base, TimestampMixin):
    """How much of a raw material one menu item of one function needs.

    ``planned_*`` is copied from the recipe; ``actual_*`` is what is allocated
    and may be edited, synchronized or split. ``extra_*`` keeps the remainder
    of the last adjusted/extra split.
    """

    __tablename__ = "raw_material_allocations"
    __table_args__ = (
        UniqueConstraint(
            "order_id", "order_function_id", "menu_preparation_menu_item_id", "raw_material_id",
            name="uq_raw_material_allocation_key",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("book_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    order_function_id: Mapped[int] = mapped_column(
        ForeignKey("order_functions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    menu_preparation_menu_item_id: Mapped[int] = mapped_column(
        ForeignKey("menu_preparation_menu_items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    menu_item_raw_material_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("menu_item_raw_materials.id", ondelete="SET NULL"), nullable=True
    )
    raw_material_id: Mapped[int] = mapped_column(
        ForeignKey("raw_materials.id"), nullable=False, index=True
    )

    planned_qty: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    planned_measurement_id: Mapped[int] = mapped_column(ForeignKey("measurements.id"), nullable=False)
    actual_qty: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    actual_measurement_id: Mapped[int] = mapped_column(ForeignKey("measurements.id"), nullable=False)
    extra_qty: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 6), nullable=True)
    extra_measurement_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("measurements.id"), nullable=True
    )

    raw_material_category_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    order_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    contact_agency_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    godown_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("godowns.id"), nullable=True, index=True
    )

    agency_allocations: Mapped[list["AgencyAllocation"]] = relationship(
        "AgencyAllocation",
        back_populates="raw_material_allocation",
        cascade="all, delete-orphan",
        order_by="AgencyAllocation.id",
    )


class AgencyAllocation(Base, TimestampMixin):
    """The share of an allocation assigned to one supplier/agency."""

    __tablename__ = "agency_allocations"
    __table_args__ = (
        UniqueConstraint(
            "raw_material_allocation_id", "contact_agency_id", name="uq_agency_allocation_agency"
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    raw_material_allocation_id: Mapped[int] = mapped_column(
        ForeignKey("raw_material_allocations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    contact_agency_id: Mapped[int] = mapped_column(Integer, nullable=False)
    godown_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("godowns.id"), nullable=True, index=True
    )
    qty: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    measurement_id: Mapped[int] = mapped_column(ForeignKey("measurements.id"), nullable=False)
    # qty expressed in the allocation's actual measurement
    ledger_qty: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    order_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    raw_material_allocation: Mapped["RawMaterialAllocation"] = relationship(
        "RawMaterialAllocation", back_populates="agency_allocations"
    )
