"""
app.schemas.api_response
~~~~~~~~~~~~~~~~~~~~~~~~

统一错误应答体。

代理接口的成功响应保持外部约定的原始 JSON 形状（数组 / 对象），
所有失败响应（4xx / 5xx）则统一包装为 ``ApiResponse`` 结构。
"""
from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """统一 JSON 应答体。

    .. code-block:: json

        {"code": 400, "data": null, "msg": "无效的视频 ID"}

    Attributes:
        code: 业务状态码，与 HTTP 状态码一致。
        data: 业务数据，失败时为 ``None``。
        msg: 人类可读的状态消息。
    """

    code: int = Field(default=200, description="业务状态码")
    data: T = Field(..., description="业务数据")
    msg: str = Field(default="success", description="状态消息")

    @classmethod
    def fail(cls, msg: str = "error", code: int = 500, data: Any = None) -> ApiResponse[Any]:
        """快捷构造失败响应。"""
        return cls(code=code, data=data, msg=msg)
