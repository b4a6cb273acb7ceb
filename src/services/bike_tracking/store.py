# src/services/bike_tracking/store.py
"""
Хранилище отслеживаемых велосипедов.

Единственный источник истины для обработчика команд, симуляции и рассылки.
Все операции проходят через один asyncio.Lock, поэтому запись никогда не
читается в середине изменения.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

from src.common.logger import log_error
from src.shared.models.tracking import TrackedBike

Mutator = Callable[[Optional[TrackedBike]], Optional[TrackedBike]]


class TrackedBikeStore:
    """
    Словарь bike_id -> TrackedBike под эксклюзивной блокировкой.

    Наружу отдаются только копии записей. Изменения делаются функциями-мутаторами
    внутри блокировки (атомарный read-modify-write).
    """

    def __init__(self) -> None:
        self._bikes: dict[int, TrackedBike] = {}
        self._lock = asyncio.Lock()

    async def get(self, bike_id: int) -> TrackedBike | None:
        """Снимок записи или None."""
        async with self._lock:
            bike = self._bikes.get(bike_id)
            return bike.copy() if bike else None

    async def upsert(self, bike_id: int, mutator: Mutator) -> TrackedBike | None:
        """
        Атомарно создаёт или изменяет запись.

        Args:
            bike_id: Ключ записи
            mutator: Получает копию текущей записи (или None) и возвращает новую.
                Если мутатор вернул None, хранилище не меняется.

        Returns:
            Снимок сохранённой записи или None
        """
        async with self._lock:
            current = self._bikes.get(bike_id)
            result = mutator(current.copy() if current else None)
            if result is None:
                return None
            self._bikes[bike_id] = result
            return result.copy()

    async def update(self, bike_id: int, mutator: Mutator) -> TrackedBike | None:
        """Как upsert, но только для существующих записей (удалённые не воскресают)."""
        async with self._lock:
            current = self._bikes.get(bike_id)
            if current is None:
                return None
            result = mutator(current.copy())
            if result is None:
                return None
            self._bikes[bike_id] = result
            return result.copy()

    async def remove(self, bike_id: int, owner_id: int | None = None) -> TrackedBike | None:
        """
        Удаляет запись, возвращает удалённую или None.

        Если передан owner_id, запись удаляется только при совпадении владельца
        (проверка и удаление выполняются атомарно).
        """
        async with self._lock:
            bike = self._bikes.get(bike_id)
            if bike is None:
                return None
            if owner_id is not None and bike.user_id != owner_id:
                return None
            return self._bikes.pop(bike_id)

    async def list_by_user(self, user_id: int) -> list[TrackedBike]:
        """Снимки всех велосипедов пользователя (линейный проход)."""
        async with self._lock:
            return [bike.copy() for bike in self._bikes.values() if bike.user_id == user_id]

    async def user_ids(self) -> set[int]:
        """Владельцы, у которых есть хотя бы один отслеживаемый велосипед."""
        async with self._lock:
            return {bike.user_id for bike in self._bikes.values()}

    async def apply_all(self, fn: Callable[[TrackedBike], None]) -> int:
        """
        Применяет fn к каждой записи под блокировкой.

        fn работает с копией; копия сохраняется только при успехе. Ошибка на одной
        записи логируется, запись остаётся прежней, остальные обрабатываются дальше.

        Returns:
            Количество успешно обработанных записей
        """
        processed = 0
        async with self._lock:
            for bike_id, bike in list(self._bikes.items()):
                try:
                    updated = bike.copy()
                    fn(updated)
                    self._bikes[bike_id] = updated
                    processed += 1
                except Exception as e:
                    await log_error(
                        f"Ошибка обработки велосипеда {bike_id}: {e}",
                        extra={"bike_id": bike_id},
                        exc_info=True,
                    )
        return processed

    async def count(self) -> int:
        async with self._lock:
            return len(self._bikes)

    async def count_moving(self) -> int:
        async with self._lock:
            return sum(1 for bike in self._bikes.values() if bike.is_moving)
