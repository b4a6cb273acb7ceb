# src/services/__init__.py
"""
Сервисы приложения.

- bike_tracking: WebSocket-трекинг арендованных велосипедов
  (хранилище, реестр соединений, обработчик команд)
- utils: геоутилиты
"""

__all__: list[str] = []
