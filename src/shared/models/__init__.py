# src/shared/models/__init__.py
"""
Общие DTO и Pydantic-модели.
"""

from src.shared.models.common import HealthStatus
from src.shared.models.tracking import (
    Coordinate,
    PathPoint,
    TrackedBike,
    AuthMessage,
    StartTrackingMessage,
    StopTrackingMessage,
    SetDestinationMessage,
    ClientMessage,
    parse_client_message,
    now_ms,
)

__all__ = [
    # Common
    "HealthStatus",
    # Tracking
    "Coordinate",
    "PathPoint",
    "TrackedBike",
    "AuthMessage",
    "StartTrackingMessage",
    "StopTrackingMessage",
    "SetDestinationMessage",
    "ClientMessage",
    "parse_client_message",
    "now_ms",
]
