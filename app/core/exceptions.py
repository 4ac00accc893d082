"""
app.core.exceptions
~~~~~~~~~~~~~~~~~~~

视频代理的外部依赖异常。由 ``app.main`` 中的异常处理器统一映射为 HTTP 状态码。
"""
from __future__ import annotations


class MediaBackendError(Exception):
    """外部媒体后端（yt-dlp / 缩略图主机）相关错误的基类。"""

    status_code: int = 502
    public_message: str = "外部服务暂时不可用，请稍后重试"


class MediaBackendUnavailable(MediaBackendError):
    """后端客户端未初始化或初始化失败。"""

    status_code = 503
    public_message = "视频后端尚未就绪，请稍后重试"


class MediaBackendTimeout(MediaBackendError):
    """外部调用超过 ``EXTERNAL_TIMEOUT``。"""

    public_message = "外部服务响应超时，请稍后重试"


class MediaLookupFailed(MediaBackendError):
    """外部调用返回错误（视频不存在、被限制等）。"""
