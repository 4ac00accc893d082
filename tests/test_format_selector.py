"""
tests.test_format_selector
~~~~~~~~~~~~~~~~~~~~~~~~~~

select_best 最佳格式选择测试。
"""
from __future__ import annotations

from app.schemas.media import MediaRendition
from app.services.format_selector import select_best


def rendition(name: str, video: bool, audio: bool, bitrate: float | None = None, abr: float | None = None) -> MediaRendition:
    return MediaRendition(
        url=f"https://cdn.example/{name}",
        container="mp4",
        bitrate=bitrate,
        has_video=video,
        has_audio=audio,
        audio_bitrate=abr,
    )


def test_empty_input() -> None:
    result = select_best([])

    assert result.muxed is None
    assert result.adaptive is not None
    assert result.adaptive.video is None
    assert result.adaptive.audio is None


def test_highest_bitrate_muxed_wins() -> None:
    low = rendition("low", True, True, bitrate=100)
    high = rendition("high", True, True, bitrate=200)

    result = select_best([low, high])

    assert result.muxed == high
    assert result.adaptive is None


def test_muxed_preferred_over_higher_bitrate_adaptive() -> None:
    muxed = rendition("muxed", True, True, bitrate=50)
    video = rendition("video", True, False, bitrate=5000)

    assert select_best([video, muxed]).muxed == muxed


def test_adaptive_fallback() -> None:
    video = rendition("video", True, False, bitrate=50)
    audio = rendition("audio", False, True, abr=30)

    result = select_best([video, audio])

    assert result.muxed is None
    assert result.adaptive.video == video
    assert result.adaptive.audio == audio


def test_adaptive_picks_best_of_each_side() -> None:
    v1 = rendition("v1", True, False, bitrate=300)
    v2 = rendition("v2", True, False, bitrate=900)
    a1 = rendition("a1", False, True, bitrate=999, abr=48)
    a2 = rendition("a2", False, True, bitrate=10, abr=160)

    result = select_best([v1, a1, v2, a2])

    assert result.adaptive.video == v2
    # 音频按音频码率而非总码率选择
    assert result.adaptive.audio == a2


def test_only_video_leaves_audio_empty() -> None:
    video = rendition("video", True, False, bitrate=10)

    result = select_best([video])

    assert result.adaptive.video == video
    assert result.adaptive.audio is None


def test_missing_bitrate_counts_as_zero() -> None:
    unknown = rendition("unknown", True, True, bitrate=None)
    known = rendition("known", True, True, bitrate=1)

    assert select_best([unknown, known]).muxed == known


def test_ties_keep_first_occurrence() -> None:
    first = rendition("first", True, True, bitrate=100)
    second = rendition("second", True, True, bitrate=100)
    v1 = rendition("v1", True, False)
    v2 = rendition("v2", True, False)

    assert select_best([first, second]).muxed == first
    assert select_best([v1, v2]).adaptive.video == v1


def test_trackless_renditions_are_ignored() -> None:
    storyboard = rendition("sb", False, False, bitrate=1)

    result = select_best([storyboard])

    assert result.muxed is None
    assert result.adaptive.video is None
    assert result.adaptive.audio is None
