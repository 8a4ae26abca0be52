"""Pydantic schemas for the stock service."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, PositiveInt, field_validator

from .models import MovementType, RecordStatus


def _strip_required(value: str) -> str:
    cleaned = value.strip()
    if not cleaned:
        msg = "value must be non-empty"
        raise ValueError(msg)
    return cleaned


class ItemCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    price: Decimal = Field(ge=Decimal("0.01"), max_digits=10, decimal_places=2)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        return _strip_required(value)


class ItemUpdate(ItemCreate):
    id: PositiveInt


class InventoryCreate(BaseModel):
    item_id: PositiveInt = Field(alias="itemId")
    qty: NonNegativeInt
    type: MovementType

    model_config = ConfigDict(populate_by_name=True)


class InventoryUpdate(InventoryCreate):
    id: PositiveInt


class OrderCreate(BaseModel):
    order_no: str = Field(min_length=1, max_length=10, alias="orderNo")
    item_id: PositiveInt = Field(alias="itemId")
    qty: PositiveInt

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("order_no")
    @classmethod
    def _strip_order_no(cls, value: str) -> str:
        return _strip_required(value)


class OrderUpdate(OrderCreate):
    price: Decimal = Field(ge=Decimal("0.01"), max_digits=10, decimal_places=2)


class _AuditResponse(BaseModel):
    status: RecordStatus
    create_by: str = Field(alias="createBy")
    create_date: datetime = Field(alias="createDate")
    update_by: str | None = Field(default=None, alias="updateBy")
    update_date: datetime | None = Field(default=None, alias="updateDate")
    delete_by: str | None = Field(default=None, alias="deleteBy")
    delete_date: datetime | None = Field(default=None, alias="deleteDate")

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class ItemResponse(_AuditResponse):
    id: PositiveInt
    name: str
    price: Decimal
    remaining_stock: int = Field(alias="remainingStock")


class InventoryResponse(_AuditResponse):
    id: PositiveInt
    item_id: PositiveInt = Field(alias="itemId")
    item_name: str = Field(alias="itemName")
    qty: int
    type: MovementType


class OrderResponse(_AuditResponse):
    order_no: str = Field(alias="orderNo")
    item_id: PositiveInt = Field(alias="itemId")
    item_name: str = Field(alias="itemName")
    qty: int
    price: Decimal


class _PageResponse(BaseModel):
    total: int
    page: PositiveInt
    size: PositiveInt
    total_pages: int = Field(alias="totalPages")

    model_config = ConfigDict(populate_by_name=True)


class ItemPageResponse(_PageResponse):
    items: list[ItemResponse]


class InventoryPageResponse(_PageResponse):
    items: list[InventoryResponse]


class OrderPageResponse(_PageResponse):
    items: list[OrderResponse]
