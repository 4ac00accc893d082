"""
app.api.media_endpoints
~~~~~~~~~~~~~~~~~~~~~~~

视频代理 REST 接口，路由前缀 ``/api``。

端点:
  - ``GET /search?q=``     → 搜索结果数组
  - ``GET /stream/{id}``   → 最佳播放源（缓存 30 秒）
  - ``GET /yt-img?id=``    → 302 跳转到存在的最高画质缩略图
  - ``GET /health``        → 服务与后端状态
"""
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import RedirectResponse

from app.api.deps import get_media_backend, require_backend
from app.core.logging import get_logger
from app.core.rate_limit import http_rate_limit, limiter
from app.core.settings import settings
from app.schemas.media import SearchResultItem, StreamInfo
from app.services.media_backend import YouTubeBackend, is_valid_video_id

logger = get_logger(__name__)

router: APIRouter = APIRouter()

INVALID_ID_MESSAGE: str = "无效的视频 ID"


@router.get("/search", summary="搜索视频", response_model=list[SearchResultItem])
@limiter.limit(http_rate_limit)
async def search(
    request: Request,
    q: str = Query("", max_length=200, description="搜索关键词"),
    backend: YouTubeBackend | None = Depends(get_media_backend),
) -> list[SearchResultItem]:
    """按关键词搜索视频。关键词为空时返回 400。"""
    query = q.strip()
    if not query:
        raise HTTPException(status_code=400, detail="请输入搜索关键词")
    results = await require_backend(backend).search(query)
    logger.info("搜索完成 | q=%r | 结果: %d", query, len(results))
    return results


@router.get("/stream/{video_id}", summary="获取播放源", response_model=StreamInfo)
@limiter.limit(http_rate_limit)
async def stream(
    request: Request,
    response: Response,
    video_id: str,
    backend: YouTubeBackend | None = Depends(get_media_backend),
) -> StreamInfo:
    """返回最佳 muxed 播放源，或最佳 video + audio 组合。

    ID 不符合 11 位格式时直接返回 400，不会访问外部服务。
    """
    if not is_valid_video_id(video_id):
        raise HTTPException(status_code=400, detail=INVALID_ID_MESSAGE)
    info = await require_backend(backend).get_stream_info(video_id)
    response.headers["Cache-Control"] = f"public, max-age={settings.STREAM_CACHE_SECONDS}"
    return info


@router.get("/yt-img", summary="缩略图跳转")
@limiter.limit(http_rate_limit)
async def thumbnail(
    request: Request,
    id: str = Query("", description="视频 ID"),
    backend: YouTubeBackend | None = Depends(get_media_backend),
) -> RedirectResponse:
    """跳转到按画质从高到低第一个存在的缩略图，全部不存在时返回 404。"""
    if not is_valid_video_id(id):
        raise HTTPException(status_code=400, detail=INVALID_ID_MESSAGE)
    url = await require_backend(backend).resolve_thumbnail(id)
    if url is None:
        raise HTTPException(status_code=404, detail="未找到缩略图")
    return RedirectResponse(url=url, status_code=302)


@router.get("/health", summary="健康检查")
async def health(backend: YouTubeBackend | None = Depends(get_media_backend)) -> dict[str, Any]:
    """``ytdlp`` 表示视频后端是否已初始化。"""
    return {
        "ok": True,
        "ytdlp": backend is not None,
        "time": datetime.now(timezone.utc).isoformat(),
    }
