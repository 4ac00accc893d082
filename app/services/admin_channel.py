"""
app.services.admin_channel
~~~~~~~~~~~~~~~~~~~~~~~~~~

管理员控制通道 —— 口令校验、旁听授权与全员强制下线。
"""
from __future__ import annotations

import asyncio
import hmac

from app.core.logging import get_logger
from app.services.connection import Connection
from app.services.connection_registry import ConnectionRegistry
from app.services.observer_set import ObserverSet

logger = get_logger(__name__)

# 管理员重置时使用的关闭码（Going Away）
RESET_CLOSE_CODE: int = 1001


class AdminControlChannel:
    """管理员操作入口。

    口令在进程启动时固定，错误口令只是不授权，不做锁定也不做限频。

    Attributes:
        registry: 连接注册表。
        observers: 旁听集合。
    """

    def __init__(self, registry: ConnectionRegistry, observers: ObserverSet, secret: str) -> None:
        self.registry = registry
        self.observers = observers
        self._secret = secret

    def authenticate(self, supplied_secret: str | None) -> bool:
        """常数时间比较口令。"""
        if not supplied_secret:
            return False
        return hmac.compare_digest(supplied_secret.encode(), self._secret.encode())

    def login(self, connection: Connection, supplied_secret: str | None) -> bool:
        """校验口令，成功则把该连接加入旁听集合。"""
        if not self.authenticate(supplied_secret):
            logger.warning("管理员登录失败 | conn=%s", connection.id)
            return False
        self.observers.promote(connection)
        logger.info("管理员登录成功 | conn=%s | 旁听者: %d", connection.id, len(self.observers))
        return True

    def authorize_reset(self, connection: Connection, supplied_secret: str | None) -> bool:
        """重置属于特权操作：必须已是旁听者，且本次请求再次携带正确口令。"""
        return connection in self.observers and self.authenticate(supplied_secret)

    async def reset_all(self) -> int:
        """强制断开所有已登记连接（包括管理员自己），不可撤销。

        先全部注销再关闭传输层，重置完成时注册表必然为空。

        Returns:
            被断开的连接数。
        """
        victims = list(self.registry.all_connections())
        for conn in victims:
            self.registry.unregister(conn)

        results = await asyncio.gather(
            *(conn.close(code=RESET_CLOSE_CODE, reason="admin reset") for conn in victims),
            return_exceptions=True,
        )
        for conn, result in zip(victims, results):
            if isinstance(result, Exception):
                logger.warning("重置时关闭连接失败 | conn=%s | %s", conn.id, result)

        logger.warning("管理员执行全员重置 | 断开连接数: %d", len(victims))
        return len(victims)
