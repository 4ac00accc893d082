"""
app.services.observer_set
~~~~~~~~~~~~~~~~~~~~~~~~~

管理员旁听集合 —— 集合内的连接会收到所有房间的消息副本。

本组件不做任何鉴权，是否加入由 ``AdminControlChannel`` 决定。
"""
from __future__ import annotations

import asyncio
from typing import Any

from app.core.logging import get_logger
from app.services.connection import Connection

logger = get_logger(__name__)


class ObserverSet:
    """无序、去重的旁听连接集合。"""

    def __init__(self) -> None:
        self._observers: set[Connection] = set()

    def promote(self, connection: Connection) -> None:
        """加入旁听集合（幂等）。"""
        self._observers.add(connection)
        connection.is_observer = True

    def demote(self, connection: Connection) -> None:
        """移出旁听集合（幂等，断开连接时自动调用）。"""
        self._observers.discard(connection)
        connection.is_observer = False

    def __contains__(self, connection: object) -> bool:
        return connection in self._observers

    def __len__(self) -> int:
        return len(self._observers)

    def snapshot(self) -> list[Connection]:
        """返回当前成员快照，用于安全迭代。"""
        return list(self._observers)

    async def broadcast_to_observers(self, message: dict[str, Any]) -> int:
        """向所有旁听者投递消息，跳过已断开的连接。

        Returns:
            实际投递成功的旁听者数量。
        """
        targets = [conn for conn in self.snapshot() if not conn.closed]
        if not targets:
            return 0

        results = await asyncio.gather(
            *(conn.send(message) for conn in targets), return_exceptions=True,
        )
        delivered = 0
        for conn, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.warning("旁听消息投递失败 | conn=%s | %s", conn.id, result)
            else:
                delivered += 1
        return delivered
