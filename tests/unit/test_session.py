from __future__ import annotations

import asyncio
from datetime import UTC, datetime

from sheetsql.config.loader import config_from_dict
from sheetsql.models.schema import ProcessedWorkbook, SchemaInfo
from sheetsql.services.session import SessionRegistry


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _workbook(upload_id: str) -> ProcessedWorkbook:
    return ProcessedWorkbook(
        upload_id=upload_id,
        file_name="book.xlsx",
        sheets=[],
        schema=SchemaInfo(),
        created_at=datetime.now(UTC),
    )


def test_create_get_delete():
    registry = SessionRegistry(clock=FakeClock())
    upload_id = registry.create(_workbook("u1"))
    assert upload_id == "u1"
    assert "u1" in registry and len(registry) == 1
    assert registry.get("u1").workbook.file_name == "book.xlsx"
    assert registry.get("missing") is None
    assert registry.delete("u1") is True
    assert registry.delete("u1") is False


def test_sweep_evicts_idle_sessions_only():
    clock = FakeClock()
    registry = SessionRegistry(ttl_seconds=1800, clock=clock)
    registry.create(_workbook("old"))
    registry.create(_workbook("busy"))

    clock.now = 1000
    registry.get("busy")  # refreshes last access
    clock.now = 1801
    assert registry.sweep() == ["old"]
    assert "busy" in registry

    clock.now = 2800
    assert registry.sweep() == []  # exactly at the TTL is kept
    clock.now = 2801
    assert registry.sweep() == ["busy"]
    assert len(registry) == 0


def test_background_sweeper():
    clock = FakeClock()
    registry = SessionRegistry(ttl_seconds=10, clock=clock)

    async def scenario():
        registry.create(_workbook("u1"))
        clock.now = 11
        task = registry.start_sweeper(interval_seconds=0.01)
        assert registry.start_sweeper(interval_seconds=0.01) is task
        for _ in range(100):
            if "u1" not in registry:
                break
            await asyncio.sleep(0.01)
        await registry.stop_sweeper()
        return task

    task = asyncio.run(scenario())
    assert "u1" not in registry
    assert task.cancelled()


def test_registry_ttl_comes_from_config():
    clock = FakeClock()
    registry = SessionRegistry.from_config(config_from_dict({"session_ttl_seconds": 60}), clock=clock)
    assert registry.ttl_seconds == 60
    registry.create(_workbook("u1"))
    clock.now = 61
    assert registry.sweep() == ["u1"]
