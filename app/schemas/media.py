"""
app.schemas.media
~~~~~~~~~~~~~~~~~

视频代理相关的 Pydantic 模型。
"""
from __future__ import annotations

from pydantic import BaseModel, Field


class MediaRendition(BaseModel):
    """某个视频的一种具体编码版本。"""

    url: str = Field(..., description="直链地址")
    container: str | None = Field(default=None, description="容器格式，如 mp4 / webm")
    bitrate: float | None = Field(default=None, description="总码率（kbps）")
    has_video: bool = Field(default=False, description="是否包含视频轨")
    has_audio: bool = Field(default=False, description="是否包含音频轨")
    audio_bitrate: float | None = Field(default=None, description="音频码率（kbps）")
    resolution: str | None = Field(default=None, description="分辨率标签，如 720p")


class AdaptivePair(BaseModel):
    """分离的视频轨 + 音频轨，由客户端自行合成。"""

    video: MediaRendition | None = None
    audio: MediaRendition | None = None


class FormatSelection(BaseModel):
    """格式选择结果：``muxed`` 与 ``adaptive`` 二者至多一个非空。"""

    muxed: MediaRendition | None = None
    adaptive: AdaptivePair | None = None


class StreamInfo(FormatSelection):
    """``GET /api/stream/{id}`` 的响应体。"""

    id: str = Field(..., description="视频 ID")


class Thumbnail(BaseModel):
    url: str
    width: int | None = None
    height: int | None = None


class SearchResultItem(BaseModel):
    """``GET /api/search`` 响应数组中的一项。"""

    id: str = Field(..., description="视频 ID")
    title: str = Field(default="", description="标题")
    thumbnail: str = Field(..., description="首选缩略图地址")
    thumbnails: list[Thumbnail] = Field(default_factory=list, description="所有缩略图")
    author: str | None = Field(default=None, description="频道 / 上传者")
    views: int | None = Field(default=None, description="播放数")
    duration: float | None = Field(default=None, description="时长（秒）")
