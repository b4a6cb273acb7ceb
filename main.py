#!/usr/bin/env python3
# main.py
"""
Главная точка входа сервиса трекинга велосипедов.
Запускает FastAPI приложение с WebSocket /ws через uvicorn.
"""

from __future__ import annotations

import asyncio
import sys

from src.config import settings
from src.common.logger import setup_logging, log_info
from src.common.constants import TypeMsg


async def run_bike_tracking() -> None:
    """Запускает сервис трекинга (WebSocket + симуляция + рассылка)."""
    import uvicorn

    await log_info(
        f"Запуск Bike Tracking на {settings.deployment.BIKE_TRACKING_HOST}:"
        f"{settings.deployment.BIKE_TRACKING_PORT}{settings.deployment.WS_PATH}...",
        type_msg=TypeMsg.INFO,
    )

    config = uvicorn.Config(
        "src.services.bike_tracking.app:app",
        host=settings.deployment.BIKE_TRACKING_HOST,
        port=settings.deployment.BIKE_TRACKING_PORT,
        log_level=settings.logging.LOG_LEVEL.lower(),
    )

    server = uvicorn.Server(config)
    try:
        await server.serve()
    except asyncio.CancelledError:
        await log_info("Bike Tracking: graceful shutdown", type_msg=TypeMsg.DEBUG)
        await server.shutdown()


def print_usage() -> None:
    """Выводит справку."""
    print("""
Использование: python main.py [--help]

Запускает сервис трекинга велосипедов.
Хост и порт задаются в config/config.json или переменными окружения
BIKE_TRACKING_HOST / BIKE_TRACKING_PORT.
    """)


def main() -> None:
    """Точка входа."""
    if len(sys.argv) > 1 and sys.argv[1].lower() in ("--help", "-h"):
        print_usage()
        sys.exit(0)

    setup_logging()
    try:
        asyncio.run(run_bike_tracking())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
