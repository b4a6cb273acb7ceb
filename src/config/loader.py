# src/config/loader.py
"""
Конфигурация сервиса трекинга.

Значения берутся из config/config.json; ENVIRONMENT, хост и порт
можно переопределить переменными окружения (или .env).
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# ПУТИ
# =============================================================================

def get_project_root() -> Path:
    """Корень репозитория (на три уровня выше этого файла)."""
    return Path(__file__).resolve().parent.parent.parent


def get_config_path() -> Path:
    return get_project_root() / "config" / "config.json"


def load_config_json() -> dict[str, Any]:
    """
    Читает config.json.

    Raises:
        FileNotFoundError: файла нет
    """
    path = get_config_path()
    if not path.is_file():
        raise FileNotFoundError(f"Файл конфигурации не найден: {path}")
    return json.loads(path.read_text(encoding="utf-8"))


# =============================================================================
# PYDANTIC МОДЕЛИ КОНФИГУРАЦИИ
# =============================================================================

class SystemSettings(BaseModel):
    """Системные настройки."""
    PROJECT_NAME: str = "bike_tracking"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"


class DeploymentSettings(BaseModel):
    """Настройки развертывания сервиса трекинга."""
    BIKE_TRACKING_HOST: str = "0.0.0.0"
    BIKE_TRACKING_PORT: int = 8089
    WS_PATH: str = "/ws"

    @field_validator("WS_PATH")
    @classmethod
    def ensure_leading_slash(cls, v: str) -> str:
        """Путь WebSocket всегда начинается со слэша."""
        return v if v.startswith("/") else f"/{v}"


class LoggingSettings(BaseModel):
    """Настройки логирования."""
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = False
    LOG_FILE_PATH: str = "logs/app.log"
    LOG_FORMAT: str = "colored"
    LOG_MAX_BYTES: int = 10485760
    LOG_BACKUP_COUNT: int = 5


class TrackingSettings(BaseModel):
    """Параметры симуляции движения и рассылки телеметрии."""
    SIMULATION_INTERVAL: float = Field(default=1.0, gt=0)
    BROADCAST_INTERVAL: float = Field(default=2.0, gt=0)
    ARRIVAL_THRESHOLD_KM: float = Field(default=0.05, gt=0)
    SIMULATION_STEP: float = Field(default=0.00001, gt=0)
    SPEED_MIN_KMH: int = Field(default=5, ge=0)
    SPEED_MAX_KMH: int = Field(default=15, ge=0)
    BATTERY_MIN_INITIAL: float = Field(default=70.0, ge=0, le=100)
    BATTERY_MAX_INITIAL: float = Field(default=100.0, ge=0, le=100)
    BATTERY_DRAIN_MAX: float = Field(default=0.2, ge=0)
    BATTERY_IDLE_DRAIN_MAX: float = Field(default=0.0, ge=0)
    PATH_MAX_POINTS: int = Field(default=500, ge=1)
    SEND_TIMEOUT: float = Field(default=1.0, gt=0)

    @model_validator(mode="after")
    def check_ranges(self) -> "TrackingSettings":
        """Проверяет согласованность диапазонов."""
        if self.SPEED_MIN_KMH > self.SPEED_MAX_KMH:
            raise ValueError("SPEED_MIN_KMH не может быть больше SPEED_MAX_KMH")
        if self.BATTERY_MIN_INITIAL > self.BATTERY_MAX_INITIAL:
            raise ValueError("BATTERY_MIN_INITIAL не может быть больше BATTERY_MAX_INITIAL")
        return self


# =============================================================================
# СБОРКА НАСТРОЕК
# =============================================================================

# Ключи, которые можно переопределить переменными окружения
ENV_OVERRIDES = ("ENVIRONMENT", "BIKE_TRACKING_HOST", "BIKE_TRACKING_PORT")


def _section(model: type[BaseModel], flat: dict[str, Any]) -> BaseModel:
    """Собирает секцию из плоского словаря: берутся только её поля, остальные по умолчанию."""
    return model(**{name: flat[name] for name in model.model_fields if name in flat})


class Settings(BaseSettings):
    """
    Настройки сервиса трекинга.

    config.json плоский: каждый ключ попадает в секцию, где объявлено поле
    с тем же именем (LOG_LEVEL попадает и в system, и в logging).
    """
    system: SystemSettings = Field(default_factory=SystemSettings)
    deployment: DeploymentSettings = Field(default_factory=DeploymentSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    tracking: TrackingSettings = Field(default_factory=TrackingSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def from_config_json(cls) -> "Settings":
        """Читает config.json и применяет переопределения из окружения."""
        flat = {k: v for k, v in load_config_json().items() if not k.startswith("_comment_")}
        for key in ENV_OVERRIDES:
            value = os.getenv(key)
            if value is not None:
                flat[key] = value

        return cls(
            system=_section(SystemSettings, flat),
            deployment=_section(DeploymentSettings, flat),
            logging=_section(LoggingSettings, flat),
            tracking=_section(TrackingSettings, flat),
        )


@lru_cache()
def get_settings() -> Settings:
    """Синглтон настроек. Перед чтением конфига подгружает .env из корня проекта."""
    from dotenv import load_dotenv

    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings.from_config_json()


settings = get_settings()
