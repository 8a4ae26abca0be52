"""Row-to-payload helpers shared by the stock routers."""

from __future__ import annotations

from decimal import Decimal

from ..models import AuditMixin, InventoryMovement, Item, Order
from ..services import Page


def from_cents(value: int) -> Decimal:
    return (Decimal(value) / Decimal("100")).quantize(Decimal("0.01"))


def _audit_fields(row: AuditMixin) -> dict[str, object]:
    return {
        "status": row.status,
        "createBy": row.create_by,
        "createDate": row.create_date,
        "updateBy": row.update_by,
        "updateDate": row.update_date,
        "deleteBy": row.delete_by,
        "deleteDate": row.delete_date,
    }


def serialize_item(item: Item, *, remaining_stock: int) -> dict[str, object]:
    return {
        "id": item.id,
        "name": item.name,
        "price": from_cents(item.price_cents),
        "remainingStock": remaining_stock,
        **_audit_fields(item),
    }


def serialize_movement(movement: InventoryMovement) -> dict[str, object]:
    return {
        "id": movement.id,
        "itemId": movement.item.id,
        "itemName": movement.item.name,
        "qty": movement.qty,
        "type": movement.type,
        **_audit_fields(movement),
    }


def serialize_order(order: Order) -> dict[str, object]:
    return {
        "orderNo": order.order_no,
        "itemId": order.item.id,
        "itemName": order.item.name,
        "qty": order.qty,
        "price": from_cents(order.price_cents),
        **_audit_fields(order),
    }


def page_envelope(page: Page, items: list[dict[str, object]]) -> dict[str, object]:
    return {
        "items": items,
        "total": page.total,
        "page": page.page,
        "size": page.size,
        "totalPages": page.total_pages,
    }
