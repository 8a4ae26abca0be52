"""HTTP routes for the item catalogue."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import PlainTextResponse

from services.common import ServiceSettings

from ..dependencies import get_actor, get_app_settings, get_item_service
from ..schemas import ItemCreate, ItemPageResponse, ItemResponse, ItemUpdate
from ..services import ItemService
from .serializers import page_envelope, serialize_item

_LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/item", tags=["item"])


@router.get("", response_model=ItemPageResponse)
async def list_items(
    page: int = Query(default=1),
    size: int | None = Query(default=None),
    service: ItemService = Depends(get_item_service),
    settings: ServiceSettings = Depends(get_app_settings),
) -> ItemPageResponse:
    _LOGGER.info("Fetching paginated items (page: %s, size: %s)", page, size)
    result = await service.list_items(
        page=page,
        size=size if size is not None else settings.default_page_size,
        max_size=settings.max_page_size,
    )
    items = [
        serialize_item(item, remaining_stock=await service.remaining_stock(item)) for item in result.rows
    ]
    return ItemPageResponse.model_validate(page_envelope(result, items))


@router.get("/{item_id}", response_model=ItemResponse)
async def get_item(item_id: int, service: ItemService = Depends(get_item_service)) -> ItemResponse:
    item = await service.get_item(item_id)
    return ItemResponse.model_validate(
        serialize_item(item, remaining_stock=await service.remaining_stock(item))
    )


@router.post("/save", response_model=ItemResponse, status_code=status.HTTP_201_CREATED)
async def create_item(
    payload: ItemCreate,
    service: ItemService = Depends(get_item_service),
    actor: str = Depends(get_actor),
) -> ItemResponse:
    item = await service.create_item(name=payload.name, price=payload.price, actor=actor)
    return ItemResponse.model_validate(
        serialize_item(item, remaining_stock=await service.remaining_stock(item))
    )


@router.put("/edit", response_model=ItemResponse)
async def update_item(
    payload: ItemUpdate,
    service: ItemService = Depends(get_item_service),
    actor: str = Depends(get_actor),
) -> ItemResponse:
    item = await service.update_item(payload.id, name=payload.name, price=payload.price, actor=actor)
    return ItemResponse.model_validate(
        serialize_item(item, remaining_stock=await service.remaining_stock(item))
    )


@router.put("/delete/{item_id}", response_class=PlainTextResponse)
async def delete_item(
    item_id: int,
    service: ItemService = Depends(get_item_service),
    actor: str = Depends(get_actor),
) -> PlainTextResponse:
    await service.delete_item(item_id, actor=actor)
    return PlainTextResponse("Item successfully marked as deleted.")
