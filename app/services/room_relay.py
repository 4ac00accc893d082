"""
app.services.room_relay
~~~~~~~~~~~~~~~~~~~~~~~

房间消息中继 —— 把聊天/图片消息转发给同房间的其他成员，
并向旁听集合推送带房间标记的副本。

发送者无需已加入目标房间，任何连接都可以向任意房间名发言。
"""
from __future__ import annotations

import asyncio

from app.core.logging import get_logger
from app.schemas.relay_events import MessageKind, outbound
from app.services.connection import Connection
from app.services.connection_registry import ConnectionRegistry
from app.services.observer_set import ObserverSet

logger = get_logger(__name__)

_PEER_EVENTS: dict[str, tuple[str, str]] = {
    "text": ("chat-message", "message"),
    "image": ("image-message", "image"),
}


class RoomRelay:
    """房间内消息扇出。"""

    def __init__(self, registry: ConnectionRegistry, observers: ObserverSet) -> None:
        self.registry = registry
        self.observers = observers

    async def send(
        self,
        sender: Connection,
        room: str,
        nickname: str,
        payload: str,
        kind: MessageKind,
    ) -> int:
        """扇出一条消息，发完即止，不向发送者回执。

        Args:
            sender: 发送消息的连接，不会收到自己的消息。
            room: 目标房间名。
            nickname: 发送者昵称。
            payload: 文本内容或图片 data URI。
            kind: ``text`` 或 ``image``。

        Returns:
            投递成功的同房间成员数量（不含旁听者）。
        """
        event, field = _PEER_EVENTS[kind]
        peer_message = outbound(event, nickname=nickname, **{field: payload})

        # 先快照成员，投递期间的断开/离开不会影响本轮迭代
        peers = [
            conn for conn in self.registry.members_of(room)
            if conn is not sender and not conn.closed
        ]
        results = await asyncio.gather(
            *(conn.send(peer_message) for conn in peers), return_exceptions=True,
        )
        delivered = 0
        for conn, result in zip(peers, results):
            if isinstance(result, Exception):
                logger.warning("消息投递失败，跳过该连接 | room=%s | conn=%s | %s", room, conn.id, result)
            else:
                delivered += 1

        await self.observers.broadcast_to_observers(
            outbound(
                "admin-message-log",
                room=room,
                nickname=nickname,
                message=payload,
                type=kind,
            ),
        )
        logger.debug("消息已转发 | room=%s | kind=%s | peers=%d", room, kind, delivered)
        return delivered
