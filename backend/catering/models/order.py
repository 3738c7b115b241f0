"""Order models: book orders, their functions and menu preparation items."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from catering.core.config import settings
from catering.db.base import Base, TimestampMixin


class BookOrder(Base, TimestampMixin):
    """A catering order."""

    __tablename__ = "book_orders"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    event_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    # Copied from the company setting when the order is booked; not editable afterwards
    is_adjust_quantity: Mapped[bool] = mapped_column(
        Boolean, default=lambda: settings.default_adjust_quantity, nullable=False
    )

    functions: Mapped[list["OrderFunction"]] = relationship(
        "OrderFunction", back_populates="order", cascade="all, delete-orphan"
    )


class OrderFunction(Base):
    """One function (lunch, dinner, reception...) within an order."""

    __tablename__ = "order_functions"

    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("book_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    function_name: Mapped[str] = mapped_column(String(255), nullable=False)
    person: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    function_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    order: Mapped["BookOrder"] = relationship("BookOrder", back_populates="functions")
    menu_items: Mapped[list["MenuPreparationMenuItem"]] = relationship(
        "MenuPreparationMenuItem", back_populates="order_function", cascade="all, delete-orphan"
    )


class MenuPreparationMenuItem(Base):
    """A menu item placed on a function's menu."""

    __tablename__ = "menu_preparation_menu_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    order_function_id: Mapped[int] = mapped_column(
        ForeignKey("order_functions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    menu_item_id: Mapped[int] = mapped_column(ForeignKey("menu_items.id"), nullable=False, index=True)

    order_function: Mapped["OrderFunction"] = relationship(
        "OrderFunction", back_populates="menu_items"
    )
