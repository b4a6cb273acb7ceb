# src/shared/models/tracking.py
"""
Модели трекинга велосипедов.

- Coordinate, PathPoint — геоточки
- TrackedBike — запись хранилища отслеживаемых велосипедов
- *Message — входящие команды WebSocket-протокола (camelCase на проводе)
"""

from __future__ import annotations

import json
import time
from collections import deque
from dataclasses import dataclass, field, replace
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


def now_ms() -> int:
    """Текущее время в миллисекундах (формат временных меток протокола)."""
    return int(time.time() * 1000)


# =============================================================================
# ГЕОТОЧКИ
# =============================================================================

class Coordinate(BaseModel):
    """Координата {lat, lng}. Диапазон проверяет вызывающая сторона."""
    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float


class PathPoint(BaseModel):
    """Точка пройденного пути."""
    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float
    timestamp: int


# =============================================================================
# ЗАПИСЬ ХРАНИЛИЩА
# =============================================================================

@dataclass
class TrackedBike:
    """
    Отслеживаемый велосипед.

    ``is_moving`` вычисляется из ``destination``: пока цель задана, велосипед
    едет; по прибытии цель сбрасывается.
    """
    bike_id: int
    user_id: int
    rental_id: int | str
    start_location: Coordinate
    last_location: Coordinate
    battery: float
    destination: Coordinate | None = None
    speed: int = 0
    last_updated: int = field(default_factory=now_ms)
    path: deque[PathPoint] = field(default_factory=deque)

    @property
    def is_moving(self) -> bool:
        return self.destination is not None

    def copy(self) -> "TrackedBike":
        """Снимок записи (путь копируется, координаты неизменяемы)."""
        return replace(self, path=deque(self.path, maxlen=self.path.maxlen))

    def append_path(self, location: Coordinate, timestamp: int) -> None:
        self.path.append(PathPoint(lat=location.lat, lng=location.lng, timestamp=timestamp))

    def arrive(self, timestamp: int) -> None:
        """Фиксирует прибытие: встаём точно в цель и останавливаемся."""
        if self.destination is not None and self.destination != self.last_location:
            self.last_location = self.destination
            self.append_path(self.last_location, timestamp)
        self.destination = None
        self.speed = 0

    def to_dict(self) -> dict[str, Any]:
        """Полная запись для сообщения tracking_data."""
        data: dict[str, Any] = {
            "bikeId": self.bike_id,
            "userId": self.user_id,
            "rentalId": self.rental_id,
            "startLocation": self.start_location.model_dump(),
            "lastLocation": self.last_location.model_dump(),
            "battery": self.battery,
            "speed": self.speed,
            "isMoving": self.is_moving,
            "lastUpdated": self.last_updated,
            "path": [point.model_dump() for point in self.path],
        }
        if self.destination is not None:
            data["destination"] = self.destination.model_dump()
        return data

    def telemetry(self) -> dict[str, Any]:
        """Сокращённая проекция для location_update (без пути)."""
        return {
            "bikeId": self.bike_id,
            "location": self.last_location.model_dump(),
            "speed": self.speed,
            "battery": self.battery,
            "isMoving": self.is_moving,
            "timestamp": self.last_updated,
        }


# =============================================================================
# ВХОДЯЩИЕ СООБЩЕНИЯ
# =============================================================================

class _ClientMessage(BaseModel):
    """База входящих сообщений: camelCase на проводе, snake_case в коде."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AuthMessage(_ClientMessage):
    type: Literal["auth"]
    user_id: int


class StartTrackingMessage(_ClientMessage):
    type: Literal["start_tracking"]
    bike_id: int
    rental_id: int | str
    start_location: Coordinate


class StopTrackingMessage(_ClientMessage):
    type: Literal["stop_tracking"]
    bike_id: int


class SetDestinationMessage(_ClientMessage):
    type: Literal["set_destination"]
    bike_id: int
    destination: Coordinate


ClientMessage = Annotated[
    Union[AuthMessage, StartTrackingMessage, StopTrackingMessage, SetDestinationMessage],
    Field(discriminator="type"),
]

_client_message_adapter: TypeAdapter[ClientMessage] = TypeAdapter(ClientMessage)


def parse_client_message(raw: str | bytes | dict[str, Any]) -> ClientMessage:
    """
    Разбирает входящее сообщение.

    Raises:
        json.JSONDecodeError: некорректный JSON
        pydantic.ValidationError: неизвестный type или неверные поля
    """
    if isinstance(raw, (str, bytes)):
        raw = json.loads(raw)
    return _client_message_adapter.validate_python(raw)
