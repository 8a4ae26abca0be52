"""HTTP routes for customer orders."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import PlainTextResponse

from services.common import ServiceSettings

from ..dependencies import get_actor, get_app_settings, get_order_service
from ..schemas import OrderCreate, OrderPageResponse, OrderResponse, OrderUpdate
from ..services import OrderService
from .serializers import page_envelope, serialize_order

_LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("", response_model=OrderPageResponse)
async def list_orders(
    page: int = Query(default=1),
    size: int | None = Query(default=None),
    service: OrderService = Depends(get_order_service),
    settings: ServiceSettings = Depends(get_app_settings),
) -> OrderPageResponse:
    _LOGGER.info("Fetching paginated orders (page: %s, size: %s)", page, size)
    result = await service.list_orders(
        page=page,
        size=size if size is not None else settings.default_page_size,
        max_size=settings.max_page_size,
    )
    items = [serialize_order(order) for order in result.rows]
    return OrderPageResponse.model_validate(page_envelope(result, items))


@router.get("/{order_no}", response_model=OrderResponse)
async def get_order(order_no: str, service: OrderService = Depends(get_order_service)) -> OrderResponse:
    order = await service.get_order(order_no)
    return OrderResponse.model_validate(serialize_order(order))


@router.post("/save", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    payload: OrderCreate,
    service: OrderService = Depends(get_order_service),
    actor: str = Depends(get_actor),
) -> OrderResponse:
    order = await service.create_order(
        order_no=payload.order_no,
        item_id=payload.item_id,
        qty=payload.qty,
        actor=actor,
    )
    return OrderResponse.model_validate(serialize_order(order))


@router.put("/edit", response_model=OrderResponse)
async def update_order(
    payload: OrderUpdate,
    service: OrderService = Depends(get_order_service),
    actor: str = Depends(get_actor),
) -> OrderResponse:
    order = await service.update_order(
        payload.order_no,
        item_id=payload.item_id,
        qty=payload.qty,
        price=payload.price,
        actor=actor,
    )
    return OrderResponse.model_validate(serialize_order(order))


@router.put("/delete/{order_no}", response_class=PlainTextResponse)
async def delete_order(
    order_no: str,
    service: OrderService = Depends(get_order_service),
    actor: str = Depends(get_actor),
) -> PlainTextResponse:
    await service.delete_order(order_no, actor=actor)
    return PlainTextResponse("Order successfully marked as deleted.")
