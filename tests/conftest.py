"""
tests.conftest
~~~~~~~~~~~~~~

共享 pytest fixtures —— 用假的 WebSocket 替代真实传输层，
使中继相关的单元测试无需启动服务即可运行。
"""
from __future__ import annotations

import os
from typing import Any

import pytest

# ── 在所有测试导入前设置环境变量 ─────────────────────────────────────
os.environ.setdefault("ENVIRONMENT", "test")  # 激活 .env.test 配置
os.environ.setdefault("ADMIN_SECRET", "test-secret")
os.environ.setdefault("HTTP_RATE_LIMIT", "1000/minute")

from app.services.connection import Connection  # noqa: E402
from app.services.relay_system import RelaySystem  # noqa: E402
from tests.fakes import FakeWebSocket  # noqa: E402

ADMIN_SECRET: str = os.environ["ADMIN_SECRET"]


@pytest.fixture()
def admin_secret() -> str:
    return ADMIN_SECRET


@pytest.fixture()
def relay_system() -> RelaySystem:
    return RelaySystem(admin_secret=ADMIN_SECRET)


@pytest.fixture()
def connect(relay_system: RelaySystem):
    """通过 ``RelaySystem.connect`` 登记一个假连接。"""

    async def _connect(**kwargs: Any) -> Connection:
        return await relay_system.connect(FakeWebSocket(**kwargs))

    return _connect
