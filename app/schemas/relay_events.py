"""
app.schemas.relay_events
~~~~~~~~~~~~~~~~~~~~~~~~

聊天中继的 WebSocket 消息协议。

每一帧都是 ``{"event": <事件名>, "data": {...}}`` 形式的 JSON 文本。
入站事件在边界处按 ``event`` 字段做判别式校验，不合法的帧直接拒绝，
不会有任何字段被悄悄忽略后继续处理。
"""
from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

MessageKind = Literal["text", "image"]

RoomName = Annotated[str, Field(min_length=1, max_length=100, description="房间名")]
Nickname = Annotated[str, Field(min_length=1, max_length=50, description="昵称")]


class _Payload(BaseModel):
    model_config = ConfigDict(extra="forbid")


# ── 入站负载 ──────────────────────────────────────────────────────────

class RoomPayload(_Payload):
    """join-room / leave-room 的负载。"""

    room: RoomName


class ChatPayload(_Payload):
    """chat-message 的负载。"""

    room: RoomName
    nickname: Nickname
    message: str = Field(..., min_length=1, max_length=2000, description="文本消息")


class ImagePayload(_Payload):
    """image-message 的负载，``image`` 为 data URI。"""

    room: RoomName
    nickname: Nickname
    image: str = Field(..., pattern=r"^data:image/[\w.+-]+;base64,", description="图片 data URI")


class AdminPayload(_Payload):
    """admin-login / admin-reset 的负载。"""

    secret: str = Field(..., min_length=1, description="管理员共享口令")


# ── 入站事件 ──────────────────────────────────────────────────────────

class JoinRoomEvent(BaseModel):
    event: Literal["join-room"]
    data: RoomPayload


class LeaveRoomEvent(BaseModel):
    event: Literal["leave-room"]
    data: RoomPayload


class ChatMessageEvent(BaseModel):
    event: Literal["chat-message"]
    data: ChatPayload


class ImageMessageEvent(BaseModel):
    event: Literal["image-message"]
    data: ImagePayload


class AdminLoginEvent(BaseModel):
    event: Literal["admin-login"]
    data: AdminPayload


class AdminResetEvent(BaseModel):
    event: Literal["admin-reset"]
    data: AdminPayload


InboundEvent = Annotated[
    Union[
        JoinRoomEvent,
        LeaveRoomEvent,
        ChatMessageEvent,
        ImageMessageEvent,
        AdminLoginEvent,
        AdminResetEvent,
    ],
    Field(discriminator="event"),
]

inbound_event_adapter: TypeAdapter[InboundEvent] = TypeAdapter(InboundEvent)


def parse_inbound(raw: str) -> InboundEvent:
    """解析一帧入站 JSON 文本。

    Raises:
        pydantic.ValidationError: JSON 不合法、事件名未知或负载不符合约定。
    """
    return inbound_event_adapter.validate_json(raw)


# ── 出站事件 ──────────────────────────────────────────────────────────

def outbound(event: str, **data: Any) -> dict[str, Any]:
    """构造一帧出站消息。"""
    return {"event": event, "data": data}
