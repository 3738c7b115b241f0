"""Raw material, recipe and godown models."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from catering.db.base import Base, TimestampMixin


class RawMaterial(Base, TimestampMixin):
    """A purchasable ingredient or consumable."""

    __tablename__ = "raw_materials"

    id: Mapped[int] = mapped_column(primary_key=True)
    name_default_lang: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    name_prefer_lang: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    name_supportive_lang: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    measurement_id: Mapped[int] = mapped_column(
        ForeignKey("measurements.id"), nullable=False, index=True
    )
    raw_material_category_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    default_supplier_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # contact id
    supplier_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 4), nullable=True)  # per measurement_id
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class MenuItem(Base, TimestampMixin):
    """A dish that can be placed on an order's menu."""

    __tablename__ = "menu_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    name_default_lang: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    name_prefer_lang: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    name_supportive_lang: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    raw_materials: Mapped[list["MenuItemRawMaterial"]] = relationship(
        "MenuItemRawMaterial", back_populates="menu_item", cascade="all, delete-orphan"
    )


class MenuItemRawMaterial(Base):
    """A single recipe line: how much of a raw material one menu item needs."""

    __tablename__ = "menu_item_raw_materials"

    id: Mapped[int] = mapped_column(primary_key=True)
    menu_item_id: Mapped[int] = mapped_column(
        ForeignKey("menu_items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    raw_material_id: Mapped[int] = mapped_column(
        ForeignKey("raw_materials.id"), nullable=False, index=True
    )
    qty: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    measurement_id: Mapped[int] = mapped_column(ForeignKey("measurements.id"), nullable=False)

    menu_item: Mapped["MenuItem"] = relationship("MenuItem", back_populates="raw_materials")


class Godown(Base, TimestampMixin):
    """A store room raw materials are issued from."""

    __tablename__ = "godowns"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
