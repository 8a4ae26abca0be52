import asyncio

import pytest

from services.stock_service.app.locking import ItemLockRegistry


class _RecordingSession:
    def __init__(self, events: list[str], name: str) -> None:
        self.events = events
        self.name = name
        self.commits = 0

    async def commit(self) -> None:
        self.commits += 1
        self.events.append(f"{self.name}:commit")


@pytest.mark.asyncio
async def test_disabled_registry_is_a_no_op() -> None:
    registry = ItemLockRegistry()
    session = _RecordingSession([], "a")

    async with registry.hold(session, 1):
        async with registry.hold(session, 1):
            pass

    assert session.commits == 0


@pytest.mark.asyncio
async def test_same_item_mutations_run_one_after_another() -> None:
    registry = ItemLockRegistry(enabled=True)
    events: list[str] = []

    async def mutate(name: str) -> None:
        session = _RecordingSession(events, name)
        async with registry.hold(session, 7):
            events.append(f"{name}:read")
            await asyncio.sleep(0.01)
            events.append(f"{name}:write")

    await asyncio.gather(mutate("a"), mutate("b"))

    assert events == ["a:read", "a:write", "a:commit", "b:read", "b:write", "b:commit"]


@pytest.mark.asyncio
async def test_different_items_do_not_block_each_other() -> None:
    registry = ItemLockRegistry(enabled=True)
    events: list[str] = []

    async def mutate(name: str, item_id: int) -> None:
        async with registry.hold(_RecordingSession(events, name), item_id):
            events.append(f"{name}:read")
            await asyncio.sleep(0.01)
            events.append(f"{name}:write")

    await asyncio.gather(mutate("a", 1), mutate("b", 2))

    assert events.index("b:read") < events.index("a:write")


@pytest.mark.asyncio
async def test_failed_mutation_skips_commit_and_releases_lock() -> None:
    registry = ItemLockRegistry(enabled=True)
    session = _RecordingSession([], "a")

    with pytest.raises(RuntimeError):
        async with registry.hold(session, 3, 1):
            raise RuntimeError("boom")

    assert session.commits == 0
    async with registry.hold(session, 1, 3, 3):
        pass
    assert session.commits == 1


@pytest.mark.asyncio
async def test_locks_are_dropped_once_released() -> None:
    registry = ItemLockRegistry(enabled=True)
    events: list[str] = []
    seen: list[int] = []

    async def mutate(name: str) -> None:
        async with registry.hold(_RecordingSession(events, name), 7, 8):
            seen.append(registry.tracked_items)
            await asyncio.sleep(0.01)

    await asyncio.gather(mutate("a"), mutate("b"))

    assert seen == [2, 2]
    assert registry.tracked_items == 0

    with pytest.raises(RuntimeError):
        async with registry.hold(_RecordingSession(events, "c"), 9):
            raise RuntimeError("boom")

    assert registry.tracked_items == 0
