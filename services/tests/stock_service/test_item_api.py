from contextlib import asynccontextmanager
from typing import Any

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from services.common import ServiceSettings
from services.stock_service.app.main import create_app


def _create_test_app(tmp_path, **overrides: Any) -> FastAPI:
    settings = ServiceSettings(
        app_name="Stock Service Test",
        enable_metrics=False,
        enable_tracing=False,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'stock.db'}",
        **overrides,
    )
    return create_app(settings)


def _item_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {"name": "Pen", "price": "1.50"}
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_create_and_get_item(tmp_path) -> None:
    app = _create_test_app(tmp_path)

    async with lifespan(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            create_resp = await client.post("/api/item/save", json=_item_payload(name="  Pen  "))
            assert create_resp.status_code == 201
            created = create_resp.json()
            assert created["name"] == "Pen"
            assert created["price"] == "1.50"
            assert created["remainingStock"] == 0
            assert created["status"] == "active"
            assert created["createBy"] == "system"
            assert created["createDate"] is not None

            get_resp = await client.get(f"/api/item/{created['id']}")
            assert get_resp.status_code == 200
            assert get_resp.json()["id"] == created["id"]

            missing = await client.get("/api/item/999")
            assert missing.status_code == 404
            assert missing.text == "Item not found with id: 999"

            invalid_id = await client.get("/api/item/0")
            assert invalid_id.status_code == 400
            assert invalid_id.text == "Item ID must be a positive number"


@pytest.mark.asyncio
async def test_create_rejects_invalid_payloads(tmp_path) -> None:
    app = _create_test_app(tmp_path)

    async with lifespan(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            zero_price = await client.post("/api/item/save", json=_item_payload(price="0"))
            assert zero_price.status_code == 400
            assert zero_price.text.startswith("Invalid data")

            long_name = await client.post("/api/item/save", json=_item_payload(name="x" * 51))
            assert long_name.status_code == 400

            blank_name = await client.post("/api/item/save", json=_item_payload(name="   "))
            assert blank_name.status_code == 400

            missing_price = await client.post("/api/item/save", json={"name": "Pen"})
            assert missing_price.status_code == 400

            listing = await client.get("/api/item")
            assert listing.json()["total"] == 0


@pytest.mark.asyncio
async def test_update_stamps_actor_and_keeps_creator(tmp_path) -> None:
    app = _create_test_app(tmp_path)

    async with lifespan(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            created = (
                await client.post("/api/item/save", json=_item_payload(), headers={"X-Actor": "alice"})
            ).json()
            assert created["createBy"] == "alice"

            update_resp = await client.put(
                "/api/item/edit",
                json={"id": created["id"], "name": "Pencil", "price": "2.25"},
                headers={"X-Actor": "bob"},
            )
            assert update_resp.status_code == 200
            updated = update_resp.json()
            assert updated["name"] == "Pencil"
            assert updated["price"] == "2.25"
            assert updated["createBy"] == "alice"
            assert updated["updateBy"] == "bob"
            assert updated["updateDate"] is not None

            missing = await client.put(
                "/api/item/edit", json={"id": 404, "name": "Ghost", "price": "1.00"}
            )
            assert missing.status_code == 404


@pytest.mark.asyncio
async def test_delete_item_soft_deletes_once(tmp_path) -> None:
    app = _create_test_app(tmp_path)

    async with lifespan(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            item_id = (await client.post("/api/item/save", json=_item_payload())).json()["id"]

            delete_resp = await client.put(f"/api/item/delete/{item_id}", headers={"X-Actor": "carol"})
            assert delete_resp.status_code == 200
            assert delete_resp.text == "Item successfully marked as deleted."

            again = await client.put(f"/api/item/delete/{item_id}")
            assert again.status_code == 400
            assert again.text == f"Item with id {item_id} is already deleted."

            fetched = (await client.get(f"/api/item/{item_id}")).json()
            assert fetched["status"] == "deleted"
            assert fetched["deleteBy"] == "carol"
            assert fetched["deleteDate"] is not None

            listing = (await client.get("/api/item")).json()
            assert listing["total"] == 0
            assert listing["items"] == []


@pytest.mark.asyncio
async def test_list_items_paginates(tmp_path) -> None:
    app = _create_test_app(tmp_path)

    async with lifespan(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            for name in ("A", "B", "C"):
                await client.post("/api/item/save", json=_item_payload(name=name))

            first = await client.get("/api/item", params={"page": 1, "size": 2})
            assert first.status_code == 200
            body = first.json()
            assert body["total"] == 3
            assert body["totalPages"] == 2
            assert body["page"] == 1
            assert body["size"] == 2
            assert [item["name"] for item in body["items"]] == ["A", "B"]

            second = (await client.get("/api/item", params={"page": 2, "size": 2})).json()
            assert [item["name"] for item in second["items"]] == ["C"]

            beyond = (await client.get("/api/item", params={"page": 5, "size": 2})).json()
            assert beyond["items"] == []
            assert beyond["total"] == 3

            bad_page = await client.get("/api/item", params={"page": 0})
            assert bad_page.status_code == 400
            assert bad_page.text == "Page number must be 1 or higher."

            bad_size = await client.get("/api/item", params={"size": 0})
            assert bad_size.status_code == 400


@pytest.mark.asyncio
async def test_list_items_caps_page_size(tmp_path) -> None:
    app = _create_test_app(tmp_path, default_page_size=1, max_page_size=2)

    async with lifespan(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            for name in ("A", "B", "C"):
                await client.post("/api/item/save", json=_item_payload(name=name))

            defaulted = (await client.get("/api/item")).json()
            assert defaulted["size"] == 1
            assert defaulted["totalPages"] == 3

            capped = (await client.get("/api/item", params={"size": 50})).json()
            assert capped["size"] == 2
            assert len(capped["items"]) == 2


@pytest.mark.asyncio
async def test_remaining_stock_follows_ledger(tmp_path) -> None:
    app = _create_test_app(tmp_path)

    async with lifespan(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            item_id = (await client.post("/api/item/save", json=_item_payload())).json()["id"]
            await client.post("/api/inventory/save", json={"itemId": item_id, "qty": 10, "type": "T"})
            await client.post("/api/inventory/save", json={"itemId": item_id, "qty": 3, "type": "W"})

            fetched = (await client.get(f"/api/item/{item_id}")).json()
            assert fetched["remainingStock"] == 7

            listing = (await client.get("/api/item")).json()
            assert listing["items"][0]["remainingStock"] == 7


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with app.router.lifespan_context(app):
        yield
