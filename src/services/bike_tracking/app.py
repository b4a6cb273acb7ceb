# src/services/bike_tracking/app.py
"""
FastAPI приложение для трекинга велосипедов в реальном времени.

WebSocket endpoints:
- /ws — команды auth / start_tracking / stop_tracking / set_destination,
  периодические location_update

REST endpoints:
- GET /health — проверка здоровья
- GET /stats — статистика соединений и симуляции
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from src.common.logger import log_error, log_info
from src.common.constants import TypeMsg
from src.config import settings
from src.config.loader import TrackingSettings
from src.services.bike_tracking.service import TrackingService
from src.shared.models.common import HealthStatus


SERVICE_NAME = "bike_tracking"


# === MODELS ===

class StatsResponse(BaseModel):
    """Статистика сервиса."""
    active_connections: int
    users_online: int
    total_connections_ever: int
    total_messages_sent: int
    tracked_bikes: int
    moving_bikes: int
    simulation_ticks: int
    broadcast_ticks: int
    broadcast_messages_sent: int


# === APP FACTORY ===

def create_app(tracking: TrackingSettings | None = None, ws_path: str | None = None) -> FastAPI:
    """
    Создаёт приложение.

    Args:
        tracking: Параметры симуляции (по умолчанию из конфига)
        ws_path: Путь WebSocket (по умолчанию из конфига)
    """
    tracking = tracking or settings.tracking
    ws_path = ws_path or settings.deployment.WS_PATH

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Жизненный цикл приложения."""
        service = TrackingService(tracking)
        app.state.tracking_service = service
        await service.start()

        yield

        await service.stop()

    app = FastAPI(
        title="Bike Tracking Service",
        description="WebSocket сервис для live-tracking арендованных велосипедов.",
        version=settings.system.VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # === HEALTH CHECK ===

    @app.get("/health", response_model=HealthStatus, tags=["Health"])
    async def health_check(request: Request) -> HealthStatus:
        """Проверка здоровья сервиса."""
        service: TrackingService = request.app.state.tracking_service
        workers_ok = service.simulation.is_running and service.broadcast.is_running
        return HealthStatus(
            status="healthy" if workers_ok else "degraded",
            service=SERVICE_NAME,
            version=settings.system.VERSION,
            uptime_seconds=service.uptime_seconds,
        )

    # === STATS ===

    @app.get("/stats", response_model=StatsResponse, tags=["Stats"])
    async def get_stats(request: Request) -> StatsResponse:
        """Получить статистику соединений и симуляции."""
        service: TrackingService = request.app.state.tracking_service
        return StatsResponse(**await service.get_stats())

    # === WEBSOCKET ===

    @app.websocket(ws_path)
    async def websocket_tracking(websocket: WebSocket) -> None:
        """
        WebSocket трекинга.

        Входящие сообщения:
        - {"type": "auth", "userId": 7}
        - {"type": "start_tracking", "bikeId": 42, "rentalId": 9, "startLocation": {"lat": .., "lng": ..}}
        - {"type": "stop_tracking", "bikeId": 42}
        - {"type": "set_destination", "bikeId": 42, "destination": {"lat": .., "lng": ..}}
        """
        service: TrackingService = websocket.app.state.tracking_service
        conn = await service.registry.connect(websocket)
        await log_info(f"Клиент подключен: {conn.connection_id}", type_msg=TypeMsg.DEBUG)

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break

                raw = message.get("text")
                if raw is None:
                    raw = message.get("bytes") or b""

                try:
                    await service.handler.handle_raw(conn, raw)
                except Exception as e:
                    await log_error(
                        f"Ошибка обработки сообщения от {conn.connection_id}: {e}",
                        extra={"user_id": conn.user_id},
                        exc_info=True,
                    )
        except WebSocketDisconnect:
            pass
        finally:
            user_id = conn.user_id
            await service.registry.unregister(conn)
            await log_info(
                f"Клиент отключен: {conn.connection_id}",
                type_msg=TypeMsg.DEBUG,
                extra={"user_id": user_id},
            )

    return app


# === APP ===

app = create_app()


# === STARTUP ===

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host=settings.deployment.BIKE_TRACKING_HOST,
        port=settings.deployment.BIKE_TRACKING_PORT,
    )
