# src/common/logger.py
"""
Логирование сервиса трекинга.

Консоль: цветной текст (разработка) или JSON (сбор логов).
Файл (опционально): ротация по размеру с архивами вида ``<имя>_<дата>.log``
и отдельный файл для ошибок.
"""

from __future__ import annotations

import inspect
import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from src.common.constants import LOGGER_NAME, TypeMsg


_LOGGING_INITIALIZED: bool = False

# Файловые хендлеры общие для всех логгеров процесса
_FILE_HANDLERS: list[logging.Handler] = []

_loggers: dict[str, logging.Logger] = {}

_DEFAULT_LOG_OPTIONS: dict[str, Any] = {
    "level": "INFO",
    "format": "colored",
    "to_file": False,
    "file_path": "logs/app.log",
    "max_bytes": 10485760,
    "backup_count": 5,
}

# Шумные сторонние логгеры
_QUIET_LOGGERS = ("uvicorn.access", "websockets", "asyncio")


def _record_time(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


# =============================================================================
# ФОРМАТТЕРЫ
# =============================================================================

class JsonFormatter(logging.Formatter):
    """Одна запись лога = одна JSON строка."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": _record_time(record).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "service": LOGGER_NAME,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            payload["extra"] = extra_data
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    """Цветной вывод для консоли."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    GRAY = "\033[90m"
    RESET = "\033[0m"

    def _caller_suffix(self, record: logging.LogRecord) -> str:
        extra_data = getattr(record, "extra_data", None) or {}
        function = extra_data.get("caller_function")
        if not function:
            return ""
        where = f"{extra_data.get('caller_module')}.{function}():{extra_data.get('caller_line')}"
        return f" {self.GRAY}[{where}]{self.RESET}"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, self.GRAY)
        stamp = _record_time(record).astimezone().strftime("%Y-%m-%d %H:%M:%S")
        line = (
            f"{stamp} {color}[{record.levelname}]{self.RESET}"
            f"{self._caller_suffix(record)} {record.getMessage()}"
        )
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


# =============================================================================
# ФАЙЛОВЫЙ ХЕНДЛЕР
# =============================================================================

class ArchivingRotatingFileHandler(RotatingFileHandler):
    """
    Пишет в ``<log_dir>/<logger_name>.log``.

    Когда файл дорастает до ``max_bytes``, он переименовывается в
    ``<logger_name>_<YYYY-mm-dd_HH-MM-SS>.log``. Хранятся последние
    ``backup_count`` архивов.
    """

    def __init__(
        self,
        log_dir: str,
        max_bytes: int,
        logger_name: str = LOGGER_NAME,
        backup_count: int = 5,
        encoding: str = "utf-8",
    ):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.logger_name = logger_name
        self.archive_limit = backup_count

        # Нумерованные бэкапы RotatingFileHandler не используются
        super().__init__(
            filename=str(self.log_dir / f"{logger_name}.log"),
            maxBytes=max_bytes,
            backupCount=0,
            encoding=encoding,
        )

    def shouldRollover(self, record: logging.LogRecord) -> bool:
        if self.maxBytes <= 0:
            return False
        if self.stream is None:
            self.stream = self._open()
        self.stream.seek(0, os.SEEK_END)
        return self.stream.tell() >= self.maxBytes

    def _archive_path(self) -> Path:
        stamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        return self.log_dir / f"{self.logger_name}_{stamp}.log"

    def doRollover(self) -> None:
        if self.stream:
            self.stream.close()
            self.stream = None

        current = Path(self.baseFilename)
        if current.exists():
            try:
                current.rename(self._archive_path())
            except OSError:
                # Не удалось переименовать: дописываем в тот же файл
                pass

        self._prune_archives()
        self.stream = self._open()

    def _prune_archives(self) -> None:
        if self.archive_limit <= 0:
            return
        archives = sorted(self.log_dir.glob(f"{self.logger_name}_*.log"))
        for stale in archives[:-self.archive_limit]:
            try:
                stale.unlink()
            except OSError:
                pass


# =============================================================================
# НАСТРОЙКА ЛОГГЕРОВ
# =============================================================================

def _read_log_options() -> dict[str, Any]:
    """Параметры логирования из конфига; при недоступном конфиге значения по умолчанию."""
    options = dict(_DEFAULT_LOG_OPTIONS)
    try:
        # Ленивый импорт: конфиг сам может логировать
        from src.config import settings
        log_settings = settings.logging
    except Exception:
        return options

    expected_types = {
        "level": ("LOG_LEVEL", str),
        "format": ("LOG_FORMAT", str),
        "to_file": ("LOG_TO_FILE", bool),
        "file_path": ("LOG_FILE_PATH", str),
        "max_bytes": ("LOG_MAX_BYTES", int),
        "backup_count": ("LOG_BACKUP_COUNT", int),
    }
    for key, (attr, expected) in expected_types.items():
        value = getattr(log_settings, attr, None)
        # MagicMock в тестах отбрасывается проверкой типа
        if isinstance(value, expected):
            options[key] = value
    return options


def _make_formatter(options: dict[str, Any]) -> logging.Formatter:
    return JsonFormatter() if options["format"] == "json" else ColoredFormatter()


def _file_handlers(options: dict[str, Any]) -> list[logging.Handler]:
    """Общие файловые хендлеры: основной лог и лог ошибок."""
    if _FILE_HANDLERS:
        return _FILE_HANDLERS

    log_path = Path(options["file_path"])
    log_name = log_path.stem
    # Несколько инстансов на одном хосте пишут в разные файлы
    instance = os.getenv("SERVICE_NAME")
    if instance:
        log_name = f"{log_name}_{instance}"

    formatter = _make_formatter(options)
    for name, level in ((log_name, logging.NOTSET), ("error", logging.ERROR)):
        handler = ArchivingRotatingFileHandler(
            log_dir=str(log_path.parent),
            max_bytes=options["max_bytes"],
            logger_name=name,
            backup_count=options["backup_count"],
        )
        handler.setLevel(level)
        handler.setFormatter(formatter)
        _FILE_HANDLERS.append(handler)
    return _FILE_HANDLERS


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    """
    Возвращает настроенный логгер (кэшируется по имени).

    Args:
        name: Имя логгера
    """
    cached = _loggers.get(name)
    if cached is not None:
        return cached

    options = _read_log_options()
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, options["level"].upper(), logging.INFO))

    if not logger.handlers:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(_make_formatter(options))
        logger.addHandler(console)

        if options["to_file"]:
            for handler in _file_handlers(options):
                logger.addHandler(handler)

        logger.propagate = False

    _loggers[name] = logger
    return logger


def setup_logging() -> None:
    """Настраивает логгер сервиса. Повторные вызовы ничего не делают."""
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED:
        return
    _LOGGING_INITIALIZED = True

    get_logger(LOGGER_NAME)
    for noisy in _QUIET_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)


# =============================================================================
# АСИНХРОННЫЕ ФУНКЦИИ ЛОГИРОВАНИЯ
# =============================================================================

def _get_caller_info() -> dict[str, Any]:
    """
    Откуда вызвана функция log_*.

    Стек: ``_get_caller_info`` <- ``log_*`` <- вызывающий код.

    Returns:
        caller_function, caller_module, caller_file, caller_line
        (пустой словарь, если стек недоступен)
    """
    frame = inspect.currentframe()
    try:
        caller = frame.f_back.f_back if frame is not None and frame.f_back is not None else None
        if caller is None:
            return {}

        module = inspect.getmodule(caller)
        return {
            "caller_function": caller.f_code.co_name,
            "caller_module": module.__name__ if module else "unknown",
            "caller_file": Path(caller.f_code.co_filename).name,
            "caller_line": caller.f_lineno,
        }
    except Exception:
        return {}
    finally:
        del frame


def _record_extra(caller: dict[str, Any], extra: dict[str, Any] | None) -> dict[str, Any]:
    return {"extra_data": {**caller, **(extra or {})}}


async def log_info(
    message: str,
    *,
    type_msg: TypeMsg = TypeMsg.INFO,
    logger_name: str = LOGGER_NAME,
    extra: dict[str, Any] | None = None,
) -> None:
    """
    Логирует сообщение с уровнем ``type_msg``.

    Args:
        message: Текст
        type_msg: Уровень
        logger_name: Имя логгера
        extra: Структурированные поля (bike_id, user_id, ...)
    """
    logger = get_logger(logger_name)
    record_extra = _record_extra(_get_caller_info(), extra)

    match type_msg:
        case TypeMsg.DEBUG:
            logger.debug(message, extra=record_extra)
        case TypeMsg.WARNING:
            logger.warning(message, extra=record_extra)
        case TypeMsg.ERROR:
            logger.error(message, extra=record_extra)
        case TypeMsg.CRITICAL:
            logger.critical(message, extra=record_extra)
        case _:
            logger.info(message, extra=record_extra)


async def log_debug(
    message: str,
    logger_name: str = LOGGER_NAME,
    extra: dict[str, Any] | None = None,
) -> None:
    await log_info(message, type_msg=TypeMsg.DEBUG, logger_name=logger_name, extra=extra)


async def log_warning(
    message: str,
    logger_name: str = LOGGER_NAME,
    extra: dict[str, Any] | None = None,
) -> None:
    await log_info(message, type_msg=TypeMsg.WARNING, logger_name=logger_name, extra=extra)


async def log_error(
    message: str,
    logger_name: str = LOGGER_NAME,
    extra: dict[str, Any] | None = None,
    exc_info: bool = False,
) -> None:
    """
    Логирует ошибку.

    Args:
        message: Текст
        logger_name: Имя логгера
        extra: Структурированные поля
        exc_info: Добавить трейсбек текущего исключения
    """
    logger = get_logger(logger_name)
    logger.error(message, extra=_record_extra(_get_caller_info(), extra), exc_info=exc_info)
