"""
app.services.connection
~~~~~~~~~~~~~~~~~~~~~~~

单条实时连接的句柄。

``Connection`` 只负责投递和关闭，所属房间与管理员身份
由 ``ConnectionRegistry`` / ``ObserverSet`` 维护，外部不应直接修改。
"""
from __future__ import annotations

import uuid
from typing import Any

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from app.core.logging import get_logger

logger = get_logger(__name__)


class Connection:
    """一个活跃的 WebSocket 会话。

    Attributes:
        id: 连接唯一标识。
        websocket: 底层 WebSocket 连接。
        rooms: 当前已加入的房间名集合。
        is_observer: 是否在管理员旁听集合中。
        closed: 传输层是否已关闭。
    """

    def __init__(self, websocket: WebSocket, connection_id: str | None = None) -> None:
        self.id: str = connection_id or uuid.uuid4().hex
        self.websocket = websocket
        self.rooms: set[str] = set()
        self.is_observer: bool = False
        self.closed: bool = False

    async def send(self, message: dict[str, Any]) -> None:
        """向客户端发送一帧 JSON。已关闭的连接直接跳过。"""
        if self.closed:
            return
        await self.websocket.send_json(message)

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        """强制关闭传输层会话，重复调用无副作用。"""
        if self.closed:
            return
        self.closed = True
        if self.websocket.application_state == WebSocketState.DISCONNECTED:
            return
        try:
            await self.websocket.close(code=code, reason=reason)
        except RuntimeError as e:
            # 客户端已先行断开
            logger.debug("关闭连接时底层已断开 | conn=%s | %s", self.id, e)

    def __repr__(self) -> str:
        return f"<Connection {self.id[:8]} rooms={sorted(self.rooms)} observer={self.is_observer}>"
