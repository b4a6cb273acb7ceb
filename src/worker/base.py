# src/worker/base.py
"""
Базовый класс для периодических воркеров.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, List

from src.common.logger import log_info, log_error
from src.common.constants import TypeMsg


class PeriodicWorker(ABC):
    """
    Базовый класс для воркеров, работающих по таймеру.
    Вызывает tick() с фиксированным периодом в отдельной задаче.
    """

    def __init__(self, interval: float) -> None:
        """
        Инициализирует воркер.

        Args:
            interval: Период между тиками в секундах
        """
        if interval <= 0:
            raise ValueError("interval должен быть положительным")
        self.interval = interval
        self._running = False
        self._tasks: List[asyncio.Task] = []
        self._ticks = 0
        self._failed_ticks = 0

    @property
    @abstractmethod
    def name(self) -> str:
        """Имя воркера."""
        pass

    @abstractmethod
    async def tick(self) -> None:
        """Один проход воркера."""
        pass

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Запускает воркер."""
        if self._running:
            return

        self._running = True
        self._tasks.append(asyncio.create_task(self._loop(), name=self.name))
        await log_info(
            f"Воркер {self.name} запущен (период {self.interval} с)",
            type_msg=TypeMsg.INFO,
        )

    async def stop(self) -> None:
        """Останавливает воркер."""
        if not self._running:
            return

        self._running = False

        for task in self._tasks:
            task.cancel()

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        self._tasks.clear()
        await log_info(f"Воркер {self.name} остановлен", type_msg=TypeMsg.INFO)

    async def run_once(self) -> bool:
        """
        Выполняет один тик с перехватом ошибок.

        Returns:
            True если тик прошёл без исключений
        """
        self._ticks += 1
        try:
            await self.tick()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._failed_ticks += 1
            await log_error(
                f"Ошибка в воркере {self.name}: {e}",
                extra={"tick": self._ticks},
                exc_info=True,
            )
            return False
        return True

    async def _loop(self) -> None:
        """Цикл тиков. Время выполнения тика вычитается из паузы."""
        loop = asyncio.get_running_loop()
        while self._running:
            started = loop.time()
            await self.run_once()
            elapsed = loop.time() - started
            await asyncio.sleep(max(0.0, self.interval - elapsed))

    def get_stats(self) -> dict[str, Any]:
        """Получить статистику."""
        return {
            "running": self._running,
            "ticks": self._ticks,
            "failed_ticks": self._failed_ticks,
        }
