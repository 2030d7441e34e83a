from __future__ import annotations

from typing import Optional

# Typical bitrates (bits per second). These only feed a rough estimate; the
# engine-reported duration replaces it when available.
_BITRATES = {
    "audio/wav": 1_411_000,
    "audio/flac": 700_000,
    "audio/mpeg": 128_000,
    "audio/mp3": 128_000,
    "audio/m4a": 128_000,
    "audio/x-m4a": 128_000,
    "audio/mp4": 128_000,
    "audio/ogg": 128_000,
    "audio/webm": 128_000,
}
_DEFAULT_AUDIO_BITRATE = 128_000
_DEFAULT_VIDEO_BITRATE = 2_000_000


def estimate_duration_seconds(size_bytes: int, content_type: Optional[str]) -> Optional[float]:
    """Estimate playback length from byte size. Not authoritative."""

    if size_bytes <= 0:
        return None
    mime = (content_type or "").split(";", 1)[0].strip().lower()
    if mime.startswith("video/"):
        bitrate = _DEFAULT_VIDEO_BITRATE
    else:
        bitrate = _BITRATES.get(mime, _DEFAULT_AUDIO_BITRATE)
    return round(size_bytes * 8 / bitrate, 1)
