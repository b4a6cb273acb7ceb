# src/services/bike_tracking/service.py
"""
Сборка сервиса трекинга: хранилище, реестр, обработчик команд и воркеры.
"""

from __future__ import annotations

import random
import time
from typing import Any

from src.common.logger import log_info
from src.config.loader import TrackingSettings
from src.services.bike_tracking.connection_registry import ConnectionRegistry
from src.services.bike_tracking.protocol import CommandHandler
from src.services.bike_tracking.store import TrackedBikeStore
from src.worker.broadcast import BroadcastWorker
from src.worker.simulation import SimulationWorker


class TrackingService:
    """
    Сервис трекинга велосипедов в реальном времени.

    Ответственности:
    - Владеет хранилищем и реестром соединений (живут, пока жив процесс)
    - Запускает и останавливает воркеры симуляции и рассылки
    - Отдаёт статистику
    """

    def __init__(
        self,
        tracking: TrackingSettings | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.tracking = tracking or TrackingSettings()
        rng = rng or random.Random()

        self.store = TrackedBikeStore()
        self.registry = ConnectionRegistry(send_timeout=self.tracking.SEND_TIMEOUT)
        self.handler = CommandHandler(self.store, self.registry, self.tracking, rng)
        self.simulation = SimulationWorker(self.store, self.tracking, rng)
        self.broadcast = BroadcastWorker(self.store, self.registry, self.tracking)

        self._started_at: float | None = None

    async def start(self) -> None:
        """Запускает воркеры."""
        await self.simulation.start()
        await self.broadcast.start()
        self._started_at = time.monotonic()
        await log_info("Сервис трекинга запущен")

    async def stop(self) -> None:
        """Останавливает воркеры. Состояние трекинга не сохраняется."""
        await self.broadcast.stop()
        await self.simulation.stop()
        await log_info("Сервис трекинга остановлен")

    @property
    def uptime_seconds(self) -> float | None:
        if self._started_at is None:
            return None
        return time.monotonic() - self._started_at

    async def get_stats(self) -> dict[str, Any]:
        """Получить статистику."""
        connections = self.registry.get_stats()
        return {
            **connections,
            "tracked_bikes": await self.store.count(),
            "moving_bikes": await self.store.count_moving(),
            "simulation_ticks": self.simulation.get_stats()["ticks"],
            "broadcast_ticks": self.broadcast.get_stats()["ticks"],
            "broadcast_messages_sent": self.broadcast.get_stats()["messages_sent"],
        }
