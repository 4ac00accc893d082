"""
app.services.format_selector
~~~~~~~~~~~~~~~~~~~~~~~~~~~~

从外部库返回的格式列表中挑选最佳播放源。

纯函数，无 I/O：
  1. 存在音视频合一（muxed）的版本时，取码率最高者；
  2. 否则分别取码率最高的纯视频版本、音频码率最高的纯音频版本。

缺失码率按 0 处理；码率相同时保留先出现的那一个。
"""
from __future__ import annotations

from collections.abc import Iterable

from app.schemas.media import AdaptivePair, FormatSelection, MediaRendition


def _bitrate(rendition: MediaRendition) -> float:
    return rendition.bitrate or 0.0


def _audio_bitrate(rendition: MediaRendition) -> float:
    return rendition.audio_bitrate or 0.0


def select_best(renditions: Iterable[MediaRendition]) -> FormatSelection:
    """选出最佳 muxed 版本，或最佳 video + audio 组合。永不抛异常。"""
    candidates = list(renditions)

    muxed = [r for r in candidates if r.has_video and r.has_audio]
    if muxed:
        # sorted 是稳定排序，reverse=True 也保持同码率元素的原始顺序
        return FormatSelection(muxed=sorted(muxed, key=_bitrate, reverse=True)[0], adaptive=None)

    video_only = [r for r in candidates if r.has_video and not r.has_audio]
    audio_only = [r for r in candidates if r.has_audio and not r.has_video]
    return FormatSelection(
        muxed=None,
        adaptive=AdaptivePair(
            video=max(video_only, key=_bitrate, default=None),
            audio=max(audio_only, key=_audio_bitrate, default=None),
        ),
    )
