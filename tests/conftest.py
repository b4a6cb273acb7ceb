# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import asyncio
import random
from pathlib import Path
from typing import Any

import pytest

from src.config.loader import TrackingSettings
from src.services.bike_tracking.connection_registry import Connection, ConnectionRegistry
from src.services.bike_tracking.protocol import CommandHandler
from src.services.bike_tracking.store import TrackedBikeStore


# =============================================================================
# ФЕЙКОВЫЙ WEBSOCKET
# =============================================================================

class FakeWebSocket:
    """
    Заглушка WebSocket: запоминает отправленные сообщения.

    fail=True — каждая отправка падает (мёртвое соединение),
    delay — отправка «висит» указанное число секунд (медленный клиент).
    """

    def __init__(self, fail: bool = False, delay: float = 0.0) -> None:
        self.sent: list[dict[str, Any]] = []
        self.accepted = False
        self.closed = False
        self.close_code: int | None = None
        self.fail = fail
        self.delay = delay

    async def accept(self) -> None:
        self.accepted = True

    async def close(self, code: int = 1000) -> None:
        self.closed = True
        self.close_code = code

    async def send_json(self, data: dict[str, Any]) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("Cannot call 'send' once a close message has been sent.")
        self.sent.append(data)

    def of_type(self, message_type: str) -> list[dict[str, Any]]:
        return [m for m in self.sent if m.get("type") == message_type]


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture
def tracking() -> TrackingSettings:
    """Параметры симуляции по умолчанию (эталонные значения)."""
    return TrackingSettings()


@pytest.fixture
def fast_tracking() -> TrackingSettings:
    """Крупный шаг симуляции для быстрых тестов сходимости."""
    return TrackingSettings(SIMULATION_STEP=0.01, PATH_MAX_POINTS=50, SEND_TIMEOUT=0.2)


@pytest.fixture
def rng() -> random.Random:
    """Детерминированный генератор."""
    return random.Random(12345)


# =============================================================================
# ФИКСТУРЫ СЕРВИСА
# =============================================================================

@pytest.fixture
def store() -> TrackedBikeStore:
    return TrackedBikeStore()


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry(send_timeout=0.2)


@pytest.fixture
def handler(store: TrackedBikeStore, registry: ConnectionRegistry, tracking: TrackingSettings, rng: random.Random) -> CommandHandler:
    return CommandHandler(store, registry, tracking, rng)


@pytest.fixture
def make_connection(registry: ConnectionRegistry):
    """Фабрика подключённых (ещё не аутентифицированных) соединений."""

    async def _make(**kwargs: Any) -> tuple[Connection, FakeWebSocket]:
        ws = FakeWebSocket(**kwargs)
        conn = await registry.connect(ws)
        return conn, ws

    return _make
