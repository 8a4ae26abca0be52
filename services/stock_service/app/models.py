"""SQLAlchemy models for the stock service."""

from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Integer, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for stock ORM models."""


class RecordStatus(str, enum.Enum):
    """Soft-delete lifecycle. ``DELETED`` is terminal."""

    ACTIVE = "active"
    DELETED = "deleted"


class MovementType(str, enum.Enum):
    TOP_UP = "T"
    WITHDRAWAL = "W"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class AuditMixin:
    """Creator/updater/deleter stamps shared by every table."""

    create_by: Mapped[str] = mapped_column(String(64), nullable=False)
    create_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    update_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    update_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, onupdate=func.now()
    )
    delete_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    delete_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[RecordStatus] = mapped_column(
        Enum(RecordStatus, native_enum=False, length=16, values_callable=_enum_values),
        nullable=False,
        default=RecordStatus.ACTIVE,
        server_default=RecordStatus.ACTIVE.value,
        index=True,
    )

    @property
    def is_deleted(self) -> bool:
        return self.status == RecordStatus.DELETED

    def mark_deleted(self, actor: str) -> None:
        self.status = RecordStatus.DELETED
        self.delete_by = actor
        self.delete_date = datetime.now(timezone.utc)


class Item(AuditMixin, Base):
    __tablename__ = "items"
    __table_args__ = (CheckConstraint("price_cents >= 1", name="ck_items_price_positive"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)


class InventoryMovement(AuditMixin, Base):
    __tablename__ = "inventory"
    __table_args__ = (CheckConstraint("qty >= 0", name="ck_inventory_qty_non_negative"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_id: Mapped[int] = mapped_column(ForeignKey("items.id"), nullable=False, index=True)
    qty: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[MovementType] = mapped_column(
        Enum(MovementType, native_enum=False, length=1, values_callable=_enum_values),
        nullable=False,
    )

    item: Mapped[Item] = relationship(lazy="joined")


class Order(AuditMixin, Base):
    __tablename__ = "customer_orders"
    __table_args__ = (CheckConstraint("qty >= 1", name="ck_customer_orders_qty_positive"),)

    order_no: Mapped[str] = mapped_column(String(10), primary_key=True)
    item_id: Mapped[int] = mapped_column(ForeignKey("items.id"), nullable=False, index=True)
    qty: Mapped[int] = mapped_column(Integer, nullable=False)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    item: Mapped[Item] = relationship(lazy="joined")
