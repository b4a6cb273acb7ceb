# tests/worker/test_broadcast.py
"""
Тесты для воркера рассылки location_update.
"""

from __future__ import annotations

import json

import pytest

from src.config.loader import TrackingSettings
from src.services.bike_tracking.connection_registry import ConnectionRegistry
from src.services.bike_tracking.protocol import CommandHandler
from src.services.bike_tracking.store import TrackedBikeStore
from src.worker.broadcast import BroadcastWorker


START = {"lat": -23.55, "lng": -46.63}


async def authed(handler: CommandHandler, make_connection, user_id: int, **kwargs):
    conn, ws = await make_connection(**kwargs)
    await handler.handle_raw(conn, json.dumps({"type": "auth", "userId": user_id}))
    ws.sent.clear()
    return conn, ws


async def track(handler: CommandHandler, conn, bike_id: int) -> None:
    await handler.handle_raw(conn, json.dumps({
        "type": "start_tracking",
        "bikeId": bike_id,
        "rentalId": bike_id * 10,
        "startLocation": START,
    }))


@pytest.fixture
def worker(store: TrackedBikeStore, registry: ConnectionRegistry, tracking: TrackingSettings) -> BroadcastWorker:
    return BroadcastWorker(store, registry, tracking)


@pytest.mark.asyncio
async def test_all_user_connections_receive_update(handler: CommandHandler, worker: BroadcastWorker, make_connection) -> None:
    """Два соединения одного пользователя получают location_update."""
    phone, phone_ws = await authed(handler, make_connection, 7)
    laptop, laptop_ws = await authed(handler, make_connection, 7)
    await track(handler, phone, 42)

    await worker.run_once()

    for ws in (phone_ws, laptop_ws):
        updates = ws.of_type("location_update")
        assert len(updates) == 1
        assert [bike["bikeId"] for bike in updates[0]["bikes"]] == [42]
    assert worker.get_stats()["messages_sent"] == 2


@pytest.mark.asyncio
async def test_payload_is_telemetry_only(handler: CommandHandler, worker: BroadcastWorker, make_connection) -> None:
    """В location_update нет пути и данных аренды."""
    conn, ws = await authed(handler, make_connection, 7)
    await track(handler, conn, 42)

    await worker.run_once()

    bike = ws.of_type("location_update")[0]["bikes"][0]
    assert set(bike) == {"bikeId", "location", "speed", "battery", "isMoving", "timestamp"}
    assert bike["location"] == START
    assert bike["isMoving"] is False


@pytest.mark.asyncio
async def test_users_receive_only_own_bikes(handler: CommandHandler, worker: BroadcastWorker, make_connection) -> None:
    alice, alice_ws = await authed(handler, make_connection, 7)
    bob, bob_ws = await authed(handler, make_connection, 8)
    await track(handler, alice, 1)
    await track(handler, alice, 2)
    await track(handler, bob, 3)

    await worker.run_once()

    alice_bikes = alice_ws.of_type("location_update")[0]["bikes"]
    bob_bikes = bob_ws.of_type("location_update")[0]["bikes"]
    assert sorted(b["bikeId"] for b in alice_bikes) == [1, 2]
    assert [b["bikeId"] for b in bob_bikes] == [3]


@pytest.mark.asyncio
async def test_offline_user_is_skipped(
    handler: CommandHandler,
    registry: ConnectionRegistry,
    worker: BroadcastWorker,
    make_connection,
) -> None:
    """Пользователь без соединений пропускается, велосипед остаётся в трекинге."""
    conn, ws = await authed(handler, make_connection, 7)
    await track(handler, conn, 42)
    await registry.unregister(conn)
    ws.sent.clear()

    assert await worker.run_once() is True

    assert ws.sent == []
    assert worker.get_stats()["messages_sent"] == 0


@pytest.mark.asyncio
async def test_user_without_bikes_gets_nothing(handler: CommandHandler, worker: BroadcastWorker, make_connection) -> None:
    _, ws = await authed(handler, make_connection, 7)

    await worker.run_once()

    assert ws.sent == []


@pytest.mark.asyncio
async def test_dead_connection_does_not_block_others(
    handler: CommandHandler,
    registry: ConnectionRegistry,
    worker: BroadcastWorker,
    make_connection,
) -> None:
    """Упавшее соединение удаляется, остальные получают рассылку."""
    alive, alive_ws = await authed(handler, make_connection, 7)
    await track(handler, alive, 42)
    dead, _ = await make_connection()
    await registry.register(7, dead)
    dead.websocket.fail = True

    assert await worker.run_once() is True

    assert len(alive_ws.of_type("location_update")) == 1
    assert registry.connections_for(7) == {alive}
