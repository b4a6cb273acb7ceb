# src/services/bike_tracking/connection_registry.py
"""
Реестр WebSocket соединений.
Связывает user_id с набором живых соединений (несколько устройств на пользователя).
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from fastapi import WebSocket

from src.common.logger import log_debug, log_warning


@dataclass(eq=False)
class Connection:
    """Дескриптор соединения. Сравнивается и хешируется по идентичности."""
    websocket: WebSocket
    connection_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    user_id: int | None = None
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    send_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)


class ConnectionRegistry:
    """
    Реестр соединений.

    Поддерживает:
    - Регистрацию соединения под user_id после auth
    - Удаление при отключении (без ошибок для неаутентифицированных)
    - Доставку сообщения одному соединению и всем соединениям пользователя
    """

    def __init__(self, send_timeout: float = 1.0) -> None:
        # user_id -> set of connections
        self._by_user: dict[int, set[Connection]] = {}

        self._send_timeout = send_timeout

        # Для статистики
        self._total_connections: int = 0
        self._total_messages_sent: int = 0

    @property
    def active_connections(self) -> int:
        """Количество аутентифицированных соединений."""
        return sum(len(conns) for conns in self._by_user.values())

    async def connect(self, websocket: WebSocket) -> Connection:
        """Принимает WebSocket и создаёт дескриптор (ещё не аутентифицирован)."""
        await websocket.accept()
        self._total_connections += 1
        return Connection(websocket=websocket)

    async def register(self, user_id: int, conn: Connection) -> None:
        """
        Регистрирует соединение под user_id.

        Повторный auth под другим пользователем переносит соединение.
        """
        if conn.user_id is not None and conn.user_id != user_id:
            self._discard(conn)

        conn.user_id = user_id
        self._by_user.setdefault(user_id, set()).add(conn)
        await log_debug(
            f"Соединение {conn.connection_id} зарегистрировано для пользователя {user_id}",
            extra={"user_id": user_id, "connections": len(self._by_user[user_id])},
        )

    async def unregister(self, conn: Connection) -> None:
        """Удаляет соединение из реестра. Для незарегистрированного ничего не делает."""
        if conn.user_id is None:
            return
        user_id = conn.user_id
        self._discard(conn)
        await log_debug(
            f"Соединение {conn.connection_id} пользователя {user_id} удалено из реестра",
            extra={"user_id": user_id},
        )

    def _discard(self, conn: Connection) -> None:
        """Внутренний метод удаления: пустой набор удаляется вместе с ключом."""
        user_id = conn.user_id
        if user_id is None:
            return
        conns = self._by_user.get(user_id)
        if conns is not None:
            conns.discard(conn)
            if not conns:
                del self._by_user[user_id]
        conn.user_id = None

    def connections_for(self, user_id: int) -> set[Connection]:
        """Живые соединения пользователя (копия, может быть пустой)."""
        return set(self._by_user.get(user_id, ()))

    def user_of(self, conn: Connection) -> int | None:
        """user_id соединения или None, если оно не аутентифицировано."""
        return conn.user_id

    async def send(self, conn: Connection, message: dict[str, Any]) -> bool:
        """
        Отправить сообщение одному соединению.

        Отправка ограничена таймаутом. Ошибка или таймаут означают мёртвое
        соединение: оно удаляется из реестра и закрывается, цикл чтения
        на сервере завершается, клиент переподключается сам.

        Returns:
            True если сообщение отправлено
        """
        try:
            await asyncio.wait_for(self._send_locked(conn, message), timeout=self._send_timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            await log_warning(
                f"Не удалось отправить сообщение в соединение {conn.connection_id}: {e!r}",
                extra={"user_id": conn.user_id, "type": message.get("type")},
            )
            await self.unregister(conn)
            await self._close_connection(conn)
            return False

        self._total_messages_sent += 1
        return True

    async def _close_connection(self, conn: Connection) -> None:
        """Закрыть соединение. Ошибка закрытия только логируется."""
        try:
            await asyncio.wait_for(conn.websocket.close(), timeout=self._send_timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            await log_debug(f"Соединение {conn.connection_id} уже закрыто: {e!r}")

    async def _send_locked(self, conn: Connection, message: dict[str, Any]) -> None:
        async with conn.send_lock:
            await conn.websocket.send_json(message)

    async def send_to_user(self, user_id: int, message: dict[str, Any]) -> int:
        """
        Отправить сообщение во все соединения пользователя параллельно.

        Returns:
            Количество успешно отправленных сообщений
        """
        conns = self.connections_for(user_id)
        if not conns:
            return 0
        results = await asyncio.gather(*(self.send(conn, message) for conn in conns))
        return sum(1 for ok in results if ok)

    def get_stats(self) -> dict[str, Any]:
        """Получить статистику."""
        return {
            "active_connections": self.active_connections,
            "users_online": len(self._by_user),
            "total_connections_ever": self._total_connections,
            "total_messages_sent": self._total_messages_sent,
        }
