# src/worker/broadcast.py
"""
Воркер рассылки телеметрии владельцам велосипедов.
"""

from __future__ import annotations

import asyncio
from typing import Any

from src.common.constants import ServerMessageType
from src.common.logger import log_error
from src.config.loader import TrackingSettings
from src.services.bike_tracking.connection_registry import ConnectionRegistry
from src.services.bike_tracking.store import TrackedBikeStore
from src.worker.base import PeriodicWorker


class BroadcastWorker(PeriodicWorker):
    """
    Раз в период отправляет location_update каждому пользователю,
    у которого есть отслеживаемые велосипеды и живые соединения.

    Пользователи без соединений пропускаются, буферизации нет.
    """

    def __init__(
        self,
        store: TrackedBikeStore,
        registry: ConnectionRegistry,
        tracking: TrackingSettings | None = None,
    ) -> None:
        tracking = tracking or TrackingSettings()
        super().__init__(tracking.BROADCAST_INTERVAL)
        self._store = store
        self._registry = registry
        self._messages_sent = 0

    @property
    def name(self) -> str:
        return "BroadcastWorker"

    async def tick(self) -> None:
        user_ids = await self._store.user_ids()
        online = [user_id for user_id in user_ids if self._registry.connections_for(user_id)]
        if not online:
            return

        results = await asyncio.gather(
            *(self._broadcast_user(user_id) for user_id in online),
            return_exceptions=True,
        )
        for user_id, result in zip(online, results):
            if isinstance(result, BaseException):
                await log_error(
                    f"Ошибка рассылки пользователю {user_id}: {result}",
                    extra={"user_id": user_id},
                )
            else:
                self._messages_sent += result

    async def _broadcast_user(self, user_id: int) -> int:
        bikes = await self._store.list_by_user(user_id)
        if not bikes:
            return 0
        message = {
            "type": ServerMessageType.LOCATION_UPDATE.value,
            "bikes": [bike.telemetry() for bike in bikes],
        }
        return await self._registry.send_to_user(user_id, message)

    def get_stats(self) -> dict[str, Any]:
        stats = super().get_stats()
        stats["messages_sent"] = self._messages_sent
        return stats
