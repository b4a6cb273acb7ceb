# src/shared/__init__.py
"""
Общий код сервиса.

Модули:
- models: геоточки, запись отслеживаемого велосипеда, сообщения протокола
"""

__all__: list[str] = []
