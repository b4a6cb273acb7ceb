# src/common/constants.py
"""
Общие константы и перечисления.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ServerMessageType(str, Enum):
    """Типы исходящих сообщений (сервер -> клиент)."""
    AUTH_SUCCESS = "auth_success"
    TRACKING_DATA = "tracking_data"
    TRACKING_STARTED = "tracking_started"
    TRACKING_STOPPED = "tracking_stopped"
    DESTINATION_SET = "destination_set"
    LOCATION_UPDATE = "location_update"
    ERROR = "error"


# Тексты ошибок протокола (клиент их сравнивает, менять нельзя)
ERROR_NOT_AUTHENTICATED = "Not authenticated"
ERROR_UNAUTHORIZED_STOP = "Unauthorized to stop tracking for this bike"
ERROR_UNAUTHORIZED_DESTINATION = "Unauthorized to set destination for this bike"

# Имя основного логгера сервиса
LOGGER_NAME = "bike_tracking"
