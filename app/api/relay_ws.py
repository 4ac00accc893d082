"""
app.api.relay_ws
~~~~~~~~~~~~~~~~

聊天中继 WebSocket 接口。

提供 ``/ws`` 端点，每个连接可以加入任意多个房间。消息协议见
``app.schemas.relay_events``：

  - 入站：``join-room`` / ``leave-room`` / ``chat-message`` / ``image-message``
    / ``admin-login`` / ``admin-reset``
  - 出站：``chat-message`` / ``image-message`` / ``admin-message-log``
    / ``room-joined`` / ``room-left`` / ``admin-status`` / ``error`` / ``system``
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from app.api.deps import get_relay_system
from app.core.logging import get_logger, request_id_ctx_var
from app.schemas.relay_events import parse_inbound
from app.services.relay_system import RelaySystem

logger = get_logger(__name__)

router: APIRouter = APIRouter()


def _describe(exc: ValidationError) -> str:
    first = exc.errors()[0] if exc.errors() else {}
    loc = ".".join(str(part) for part in first.get("loc", ()))
    return f"无效的事件: {loc or 'frame'} {first.get('msg', '')}".strip()


@router.websocket("/ws")
async def websocket_relay_endpoint(
    websocket: WebSocket,
    system: RelaySystem = Depends(get_relay_system),
) -> None:
    """聊天中继端点。

    断开连接属于正常生命周期；格式不合法的帧会收到 ``error`` 事件，连接保持打开。
    管理员重置会从服务端关闭本连接，此时循环直接结束。
    """
    token = request_id_ctx_var.set(f"ws-{uuid.uuid4().hex[:8]}")
    connection = await system.connect(websocket)
    try:
        while not connection.closed:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
            raw: str | None = message.get("text")
            if raw is None:
                # 二进制帧不属于协议的一部分
                await system.reject(connection, "仅支持 JSON 文本帧")
                continue
            try:
                event = parse_inbound(raw)
            except ValidationError as e:
                await system.reject(connection, _describe(e))
                continue
            await system.dispatch(connection, event)
    except WebSocketDisconnect:
        pass  # 正常断开
    except Exception as e:
        logger.error("WebSocket 处理异常: %s | conn=%s", e, connection.id, exc_info=True)
    finally:
        system.disconnect(connection)
        request_id_ctx_var.reset(token)
