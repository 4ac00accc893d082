"""
app.services.media_backend
~~~~~~~~~~~~~~~~~~~~~~~~~~

视频代理后端 —— 封装 yt-dlp（搜索 / 格式提取）与缩略图主机探测。

yt-dlp 是同步阻塞库，所有调用都放进线程池执行，并由
``asyncio.wait_for`` 施加超时：结果与超时谁先到达以谁为准，
另一方被丢弃，调用方只会收到一次结果或一次异常。
"""
from __future__ import annotations

import asyncio
import re
from collections.abc import Callable
from typing import Any, TypeVar

import httpx
import yt_dlp
from yt_dlp.utils import DownloadError

from app.core.exceptions import MediaBackendTimeout, MediaLookupFailed
from app.core.logging import get_logger
from app.core.settings import settings
from app.schemas.media import (
    MediaRendition,
    SearchResultItem,
    StreamInfo,
    Thumbnail,
)
from app.services.format_selector import select_best

logger = get_logger(__name__)

T = TypeVar("T")

VIDEO_ID_PATTERN: re.Pattern[str] = re.compile(r"^[A-Za-z0-9_-]{11}$")

_BASE_YDL_OPTS: dict[str, Any] = {
    "quiet": True,
    "no_warnings": True,
    "skip_download": True,
    "noplaylist": True,
}


def is_valid_video_id(video_id: str | None) -> bool:
    """视频 ID 必须是 11 位 ``[A-Za-z0-9_-]``。"""
    return bool(video_id) and VIDEO_ID_PATTERN.fullmatch(video_id) is not None


def _has_track(codec: str | None) -> bool:
    return codec not in (None, "none")


def rendition_from_format(fmt: dict[str, Any]) -> MediaRendition | None:
    """把 yt-dlp 的 format 字典转换为 ``MediaRendition``，无直链时返回 ``None``。"""
    url = fmt.get("url")
    if not url:
        return None
    height = fmt.get("height")
    resolution = fmt.get("format_note") or fmt.get("resolution") or (f"{height}p" if height else None)
    return MediaRendition(
        url=url,
        container=fmt.get("ext"),
        bitrate=fmt.get("tbr"),
        has_video=_has_track(fmt.get("vcodec")),
        has_audio=_has_track(fmt.get("acodec")),
        audio_bitrate=fmt.get("abr"),
        resolution=resolution,
    )


class YouTubeBackend:
    """yt-dlp + 缩略图主机的异步门面。

    Attributes:
        timeout: 单次外部调用的超时时间（秒）。
        thumbnail_host: 缩略图主机根地址。
        thumbnail_qualities: 按画质从高到低排列的缩略图文件名。
    """

    def __init__(
        self,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
        ydl_factory: Callable[[dict[str, Any]], Any] | None = None,
    ) -> None:
        self.timeout: float = timeout or settings.EXTERNAL_TIMEOUT
        self.thumbnail_host: str = settings.THUMBNAIL_HOST.rstrip("/")
        self.thumbnail_qualities: list[str] = list(settings.THUMBNAIL_QUALITIES)
        self._http: httpx.AsyncClient = http_client or httpx.AsyncClient(
            timeout=self.timeout, follow_redirects=False,
        )
        self._ydl_factory = ydl_factory or yt_dlp.YoutubeDL

    async def aclose(self) -> None:
        await self._http.aclose()

    # ── 搜索 ──────────────────────────────────────────────────────────

    async def search(self, query: str, limit: int | None = None) -> list[SearchResultItem]:
        """按关键词搜索视频。"""
        n = limit or settings.SEARCH_LIMIT
        opts = {**_BASE_YDL_OPTS, "extract_flat": "in_playlist"}
        info = await self._run_with_timeout(
            self._extract, opts, f"ytsearch{n}:{query}", what=f"search q={query!r}",
        )
        entries = info.get("entries") or []
        return [item for item in (self._to_search_item(e) for e in entries if e) if item]

    def _to_search_item(self, entry: dict[str, Any]) -> SearchResultItem | None:
        video_id = entry.get("id")
        if not is_valid_video_id(video_id):
            return None
        thumbnails = [
            Thumbnail(url=t["url"], width=t.get("width"), height=t.get("height"))
            for t in entry.get("thumbnails") or []
            if t.get("url")
        ]
        # yt-dlp 的缩略图按画质升序排列，最后一个最清晰
        thumbnail = thumbnails[-1].url if thumbnails else self.thumbnail_url(video_id, "hqdefault")
        return SearchResultItem(
            id=video_id,
            title=entry.get("title") or "",
            thumbnail=thumbnail,
            thumbnails=thumbnails,
            author=entry.get("channel") or entry.get("uploader"),
            views=entry.get("view_count"),
            duration=entry.get("duration"),
        )

    # ── 播放源 ────────────────────────────────────────────────────────

    async def get_stream_info(self, video_id: str) -> StreamInfo:
        """提取视频的全部格式并选出最佳播放源。"""
        info = await self._run_with_timeout(
            self._extract,
            dict(_BASE_YDL_OPTS),
            f"https://www.youtube.com/watch?v={video_id}",
            what=f"stream id={video_id}",
        )
        renditions = [r for r in (rendition_from_format(f) for f in info.get("formats") or []) if r]
        selection = select_best(renditions)
        logger.debug(
            "格式选择完成 | id=%s | 候选=%d | muxed=%s",
            video_id, len(renditions), selection.muxed is not None,
        )
        return StreamInfo(id=video_id, muxed=selection.muxed, adaptive=selection.adaptive)

    # ── 缩略图 ────────────────────────────────────────────────────────

    def thumbnail_url(self, video_id: str, quality: str) -> str:
        return f"{self.thumbnail_host}/vi/{video_id}/{quality}.jpg"

    async def resolve_thumbnail(self, video_id: str) -> str | None:
        """按画质从高到低探测，返回第一个存在的缩略图地址。"""
        for quality in self.thumbnail_qualities:
            url = self.thumbnail_url(video_id, quality)
            try:
                resp = await self._http.head(url, timeout=self.timeout)
            except httpx.TimeoutException:
                logger.warning("缩略图探测超时 | %s", url)
                continue
            except httpx.HTTPError as e:
                logger.warning("缩略图探测失败 | %s | %s", url, e)
                continue
            if resp.status_code == 200:
                return url
        return None

    # ── 内部工具 ──────────────────────────────────────────────────────

    def _extract(self, opts: dict[str, Any], url: str) -> dict[str, Any]:
        with self._ydl_factory(opts) as ydl:
            info = ydl.extract_info(url, download=False)
        if not info:
            raise MediaLookupFailed(f"yt-dlp returned no info for {url}")
        return info

    async def _run_with_timeout(self, func: Callable[..., T], *args: Any, what: str) -> T:
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.warning("外部调用超时 | %s | timeout=%.1fs", what, self.timeout)
            raise MediaBackendTimeout(what) from e
        except DownloadError as e:
            logger.warning("yt-dlp 调用失败 | %s | %s", what, e)
            raise MediaLookupFailed(what) from e
