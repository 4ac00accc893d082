"""
tests.test_rate_limit
~~~~~~~~~~~~~~~~~~~~~

WebSocketRateLimiter 单元测试。
"""
from __future__ import annotations

import time

from app.core.rate_limit import WebSocketRateLimiter


def test_websocket_rate_limiter_unit() -> None:
    """测试 WebSocket 内存限流器的基础逻辑"""
    limiter = WebSocketRateLimiter(interval_seconds=0.2)
    client_id = "conn-1"

    # 第一次发消息应该允许
    assert limiter.is_allowed(client_id) is True

    # 立刻发第二次应该被拦截
    assert limiter.is_allowed(client_id) is False

    # 其他连接不受影响
    assert limiter.is_allowed("conn-2") is True

    # 等待超过间隔时间后应该放行
    time.sleep(0.25)
    assert limiter.is_allowed(client_id) is True

    # 最后清理记录
    limiter.remove_client(client_id)
    assert client_id not in limiter._last_message_time


def test_zero_interval_disables_limit() -> None:
    limiter = WebSocketRateLimiter(interval_seconds=0)

    assert all(limiter.is_allowed("conn") for _ in range(100))
    assert limiter._last_message_time == {}
