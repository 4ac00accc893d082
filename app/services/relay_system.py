"""
app.services.relay_system
~~~~~~~~~~~~~~~~~~~~~~~~~

聊天中继系统 —— 持有注册表、旁听集合、房间中继与管理员通道。

在 FastAPI lifespan 中创建并挂载于 ``app.state.relay_system``，
WebSocket 端点只通过它来登记连接和分发事件。
"""
from __future__ import annotations

from typing import Any

from fastapi import WebSocket

from app.core.logging import get_logger
from app.core.rate_limit import WebSocketRateLimiter
from app.schemas.relay_events import (
    AdminLoginEvent,
    AdminResetEvent,
    ChatMessageEvent,
    ImageMessageEvent,
    InboundEvent,
    JoinRoomEvent,
    LeaveRoomEvent,
    outbound,
)
from app.services.admin_channel import AdminControlChannel
from app.services.connection import Connection
from app.services.connection_registry import ConnectionRegistry
from app.services.observer_set import ObserverSet
from app.services.room_relay import RoomRelay

logger = get_logger(__name__)


class RelaySystem:
    """聊天中继系统。

    - ``connect(websocket)``          → 接受并登记新连接
    - ``disconnect(connection)``      → 注销连接（同时移出房间与旁听集合）
    - ``dispatch(connection, event)`` → 按事件类型路由到对应组件

    Attributes:
        observers: 管理员旁听集合。
        registry: 连接注册表。
        relay: 房间消息中继。
        admin: 管理员控制通道。
        limiter: 单连接消息限流器。
    """

    def __init__(self, admin_secret: str, rate_limit_interval: float = 0.0) -> None:
        self.observers = ObserverSet()
        self.registry = ConnectionRegistry(self.observers)
        self.relay = RoomRelay(self.registry, self.observers)
        self.admin = AdminControlChannel(self.registry, self.observers, admin_secret)
        self.limiter = WebSocketRateLimiter(interval_seconds=rate_limit_interval)

    async def connect(self, websocket: WebSocket) -> Connection:
        """接受 WebSocket 握手并登记连接。"""
        await websocket.accept()
        connection = Connection(websocket)
        self.registry.register(connection)
        logger.info("连接建立 | conn=%s | 在线: %d", connection.id, self.registry.online_count)
        return connection

    def disconnect(self, connection: Connection) -> None:
        """注销连接。重置后已被注销的连接再次调用不会报错。"""
        connection.closed = True
        self.limiter.remove_client(connection.id)
        if self.registry.unregister(connection):
            logger.info("连接断开 | conn=%s | 在线: %d", connection.id, self.registry.online_count)

    async def dispatch(self, connection: Connection, event: InboundEvent) -> None:
        """处理一条已通过校验的入站事件。"""
        if isinstance(event, JoinRoomEvent):
            room = event.data.room
            if self.registry.join_room(connection, room):
                logger.info("加入房间 | conn=%s | room=%s", connection.id, room)
            await connection.send(outbound("room-joined", room=room))

        elif isinstance(event, LeaveRoomEvent):
            room = event.data.room
            if self.registry.leave_room(connection, room):
                logger.info("离开房间 | conn=%s | room=%s", connection.id, room)
            await connection.send(outbound("room-left", room=room))

        elif isinstance(event, ChatMessageEvent):
            if await self._throttled(connection):
                return
            data = event.data
            await self.relay.send(connection, data.room, data.nickname, data.message, "text")

        elif isinstance(event, ImageMessageEvent):
            if await self._throttled(connection):
                return
            data = event.data
            await self.relay.send(connection, data.room, data.nickname, data.image, "image")

        elif isinstance(event, AdminLoginEvent):
            authenticated = self.admin.login(connection, event.data.secret)
            await connection.send(outbound("admin-status", authenticated=authenticated))

        elif isinstance(event, AdminResetEvent):
            if not self.admin.authorize_reset(connection, event.data.secret):
                logger.warning("未授权的重置请求 | conn=%s", connection.id)
                await connection.send(outbound("error", message="无权执行重置"))
                return
            await self.admin.reset_all()

    async def reject(self, connection: Connection, reason: str) -> None:
        """告知客户端该帧被拒绝，连接保持打开。"""
        logger.debug("拒绝入站事件 | conn=%s | %s", connection.id, reason)
        await connection.send(outbound("error", message=reason))

    def stats(self) -> dict[str, Any]:
        """在线人数、旁听者数量与各房间人数。"""
        return {
            "online_count": self.registry.online_count,
            "observer_count": len(self.observers),
            "rooms": self.registry.room_sizes(),
        }

    async def _throttled(self, connection: Connection) -> bool:
        if self.limiter.is_allowed(connection.id):
            return False
        await connection.send(outbound("system", message="发送速度太快啦，请慢一点~"))
        return True
