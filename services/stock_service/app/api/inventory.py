"""HTTP routes for inventory movements."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import PlainTextResponse

from services.common import ServiceSettings

from ..dependencies import get_actor, get_app_settings, get_inventory_service
from ..schemas import InventoryCreate, InventoryPageResponse, InventoryResponse, InventoryUpdate
from ..services import InventoryService
from .serializers import page_envelope, serialize_movement

_LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.get("", response_model=InventoryPageResponse)
async def list_inventory(
    page: int = Query(default=1),
    size: int | None = Query(default=None),
    service: InventoryService = Depends(get_inventory_service),
    settings: ServiceSettings = Depends(get_app_settings),
) -> InventoryPageResponse:
    _LOGGER.info("Fetching paginated inventories (page: %s, size: %s)", page, size)
    result = await service.list_movements(
        page=page,
        size=size if size is not None else settings.default_page_size,
        max_size=settings.max_page_size,
    )
    items = [serialize_movement(movement) for movement in result.rows]
    return InventoryPageResponse.model_validate(page_envelope(result, items))


@router.get("/{movement_id}", response_model=InventoryResponse)
async def get_inventory(
    movement_id: int,
    service: InventoryService = Depends(get_inventory_service),
) -> InventoryResponse:
    movement = await service.get_movement(movement_id)
    return InventoryResponse.model_validate(serialize_movement(movement))


@router.post("/save", response_model=InventoryResponse, status_code=status.HTTP_201_CREATED)
async def create_inventory(
    payload: InventoryCreate,
    service: InventoryService = Depends(get_inventory_service),
    actor: str = Depends(get_actor),
) -> InventoryResponse:
    movement = await service.create_movement(
        item_id=payload.item_id,
        qty=payload.qty,
        movement_type=payload.type,
        actor=actor,
    )
    return InventoryResponse.model_validate(serialize_movement(movement))


@router.put("/edit", response_model=InventoryResponse)
async def update_inventory(
    payload: InventoryUpdate,
    service: InventoryService = Depends(get_inventory_service),
    actor: str = Depends(get_actor),
) -> InventoryResponse:
    movement = await service.update_movement(
        payload.id,
        item_id=payload.item_id,
        qty=payload.qty,
        movement_type=payload.type,
        actor=actor,
    )
    return InventoryResponse.model_validate(serialize_movement(movement))


@router.put("/delete/{movement_id}", response_class=PlainTextResponse)
async def delete_inventory(
    movement_id: int,
    service: InventoryService = Depends(get_inventory_service),
    actor: str = Depends(get_actor),
) -> PlainTextResponse:
    await service.delete_movement(movement_id, actor=actor)
    return PlainTextResponse("Inventory successfully marked as deleted.")
