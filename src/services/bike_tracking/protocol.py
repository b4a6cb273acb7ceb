# src/services/bike_tracking/protocol.py
"""
Обработчик команд WebSocket-протокола трекинга.

Разбирает входящие сообщения, проверяет аутентификацию и владение
велосипедом, вызывает операции хранилища и отвечает отправителю.
"""

from __future__ import annotations

import json
import random
from collections import deque
from typing import Any

from pydantic import ValidationError

from src.common.constants import (
    ERROR_NOT_AUTHENTICATED,
    ERROR_UNAUTHORIZED_DESTINATION,
    ERROR_UNAUTHORIZED_STOP,
    ServerMessageType,
    TypeMsg,
)
from src.common.logger import log_info, log_warning
from src.config.loader import TrackingSettings
from src.services.bike_tracking.connection_registry import Connection, ConnectionRegistry
from src.services.bike_tracking.store import TrackedBikeStore
from src.services.utils.geo_utils import distance_km
from src.shared.models.tracking import (
    AuthMessage,
    ClientMessage,
    SetDestinationMessage,
    StartTrackingMessage,
    StopTrackingMessage,
    TrackedBike,
    now_ms,
    parse_client_message,
)


def error_message(text: str) -> dict[str, Any]:
    return {"type": ServerMessageType.ERROR.value, "message": text}


class CommandHandler:
    """
    Обработчик команд клиента.

    Команды:
    - auth — регистрация соединения под user_id + снимок велосипедов
    - start_tracking — создать запись или перепривязать существующую
    - stop_tracking — удалить запись (только владелец)
    - set_destination — задать цель движения (только владелец)

    Некорректные сообщения логируются и отбрасываются без ответа.
    """

    def __init__(
        self,
        store: TrackedBikeStore,
        registry: ConnectionRegistry,
        tracking: TrackingSettings | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._store = store
        self._registry = registry
        self._tracking = tracking or TrackingSettings()
        self._rng = rng or random.Random()

    async def handle_raw(self, conn: Connection, raw: str | bytes) -> None:
        """Разобрать и обработать сырое сообщение."""
        try:
            message = parse_client_message(raw)
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
            await log_warning(
                f"Отброшено некорректное сообщение от {conn.connection_id}: {e}",
                extra={"user_id": conn.user_id, "raw": _preview(raw)},
            )
            return

        await self.handle(conn, message)

    async def handle(self, conn: Connection, message: ClientMessage) -> None:
        """Обработать разобранную команду."""
        match message:
            case AuthMessage():
                await self._handle_auth(conn, message)
            case StartTrackingMessage():
                await self._handle_start_tracking(conn, message)
            case StopTrackingMessage():
                await self._handle_stop_tracking(conn, message)
            case SetDestinationMessage():
                await self._handle_set_destination(conn, message)

    # === AUTH ===

    async def _handle_auth(self, conn: Connection, message: AuthMessage) -> None:
        user_id = message.user_id
        await self._registry.register(user_id, conn)
        await log_info(f"Пользователь {user_id} аутентифицирован", extra={"user_id": user_id})

        await self._registry.send(conn, {
            "type": ServerMessageType.AUTH_SUCCESS.value,
            "userId": user_id,
        })

        bikes = await self._store.list_by_user(user_id)
        await self._registry.send(conn, {
            "type": ServerMessageType.TRACKING_DATA.value,
            "bikes": [bike.to_dict() for bike in bikes],
        })

    # === START ===

    async def _handle_start_tracking(self, conn: Connection, message: StartTrackingMessage) -> None:
        user_id = self._registry.user_of(conn)
        if user_id is None:
            await self._registry.send(conn, error_message(ERROR_NOT_AUTHENTICATED))
            return

        previous_owner: list[int] = []

        def apply(current: TrackedBike | None) -> TrackedBike:
            if current is not None:
                previous_owner.append(current.user_id)
                return self._rebind_existing(current, user_id, message.rental_id)
            return self._new_bike(message, user_id)

        await self._store.upsert(message.bike_id, apply)

        if not previous_owner:
            await log_info(
                f"Начат трекинг велосипеда {message.bike_id} для пользователя {user_id}",
                extra={"bike_id": message.bike_id, "user_id": user_id},
            )
        elif previous_owner[0] != user_id:
            await log_info(
                f"Велосипед {message.bike_id} перепривязан: {previous_owner[0]} -> {user_id}",
                type_msg=TypeMsg.WARNING,
                extra={"bike_id": message.bike_id, "previous_user_id": previous_owner[0], "user_id": user_id},
            )
        else:
            await log_info(
                f"Обновлён трекинг велосипеда {message.bike_id} пользователем {user_id}",
                extra={"bike_id": message.bike_id, "user_id": user_id},
            )

        await self._registry.send(conn, {
            "type": ServerMessageType.TRACKING_STARTED.value,
            "bikeId": message.bike_id,
        })

    def _rebind_existing(self, bike: TrackedBike, user_id: int, rental_id: int | str) -> TrackedBike:
        """
        Перепривязка уже отслеживаемого велосипеда.

        Владелец не проверяется: повторный start_tracking передаёт велосипед
        новому пользователю и аренде. Положение, батарея и путь сохраняются.
        Ужесточать политику нужно здесь.
        """
        bike.user_id = user_id
        bike.rental_id = rental_id
        bike.last_updated = now_ms()
        return bike

    def _new_bike(self, message: StartTrackingMessage, user_id: int) -> TrackedBike:
        """Новая запись: стоит на месте, батарея случайная, путь из одной точки."""
        tracking = self._tracking
        timestamp = now_ms()
        bike = TrackedBike(
            bike_id=message.bike_id,
            user_id=user_id,
            rental_id=message.rental_id,
            start_location=message.start_location,
            last_location=message.start_location,
            battery=self._rng.uniform(tracking.BATTERY_MIN_INITIAL, tracking.BATTERY_MAX_INITIAL),
            last_updated=timestamp,
            path=deque(maxlen=tracking.PATH_MAX_POINTS),
        )
        bike.append_path(message.start_location, timestamp)
        return bike

    # === STOP ===

    async def _handle_stop_tracking(self, conn: Connection, message: StopTrackingMessage) -> None:
        user_id = self._registry.user_of(conn)
        if user_id is None:
            await self._registry.send(conn, error_message(ERROR_NOT_AUTHENTICATED))
            return

        removed = await self._store.remove(message.bike_id, owner_id=user_id)
        if removed is None:
            await log_warning(
                f"Пользователь {user_id} не может остановить трекинг велосипеда {message.bike_id}",
                extra={"bike_id": message.bike_id, "user_id": user_id},
            )
            await self._registry.send(conn, error_message(ERROR_UNAUTHORIZED_STOP))
            return

        await log_info(
            f"Остановлен трекинг велосипеда {message.bike_id} для пользователя {user_id}",
            extra={"bike_id": message.bike_id, "user_id": user_id},
        )
        await self._registry.send(conn, {
            "type": ServerMessageType.TRACKING_STOPPED.value,
            "bikeId": message.bike_id,
        })

    # === DESTINATION ===

    async def _handle_set_destination(self, conn: Connection, message: SetDestinationMessage) -> None:
        user_id = self._registry.user_of(conn)
        if user_id is None:
            await self._registry.send(conn, error_message(ERROR_NOT_AUTHENTICATED))
            return

        threshold = self._tracking.ARRIVAL_THRESHOLD_KM

        def apply(bike: TrackedBike | None) -> TrackedBike | None:
            if bike is None or bike.user_id != user_id:
                return None
            timestamp = now_ms()
            bike.destination = message.destination
            # Цель уже в пределах порога: прибытие сразу
            if distance_km(bike.last_location, message.destination) <= threshold:
                bike.arrive(timestamp)
            bike.last_updated = timestamp
            return bike

        updated = await self._store.update(message.bike_id, apply)
        if updated is None:
            await log_warning(
                f"Пользователь {user_id} не может задать цель велосипеду {message.bike_id}",
                extra={"bike_id": message.bike_id, "user_id": user_id},
            )
            await self._registry.send(conn, error_message(ERROR_UNAUTHORIZED_DESTINATION))
            return

        await log_info(
            f"Задана цель для велосипеда {message.bike_id}",
            extra={"bike_id": message.bike_id, "destination": message.destination.model_dump()},
        )
        await self._registry.send(conn, {
            "type": ServerMessageType.DESTINATION_SET.value,
            "bikeId": message.bike_id,
            "destination": message.destination.model_dump(),
        })


def _preview(raw: Any, limit: int = 200) -> str:
    """Обрезанное представление сырого сообщения для лога."""
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else str(raw)
    return text if len(text) <= limit else f"{text[:limit]}..."
