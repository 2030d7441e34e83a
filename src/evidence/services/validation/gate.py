from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from src.evidence.config import settings


@dataclass(frozen=True)
class ValidationOutcome:
    accepted: bool
    reason: Optional[str] = None
    too_large: bool = False


ACCEPTED = ValidationOutcome(accepted=True)


class ValidationGate:
    """Upload constraints checked before anything is stored.

    ``check`` is pure and total: the same (size, content type) always gives
    the same outcome and it never raises.
    """

    def __init__(self, *, max_bytes: int, allowed_types: Iterable[str]) -> None:
        self._max_bytes = max_bytes
        self._allowed_types = frozenset(t.strip().lower() for t in allowed_types if t and t.strip())

    @classmethod
    def from_settings(cls) -> "ValidationGate":
        return cls(max_bytes=settings.max_upload_bytes, allowed_types=settings.allowed_media_types)

    @property
    def max_bytes(self) -> int:
        return self._max_bytes

    def check(self, size: Optional[int], content_type: Optional[str]) -> ValidationOutcome:
        if not isinstance(size, int) or isinstance(size, bool) or size < 0:
            return ValidationOutcome(accepted=False, reason="File size is unknown or invalid")
        if size == 0:
            return ValidationOutcome(accepted=False, reason="File is empty")
        if size > self._max_bytes:
            return ValidationOutcome(
                accepted=False,
                reason=f"File size exceeds {_format_bytes(self._max_bytes)} limit",
                too_large=True,
            )

        normalized = _normalize_content_type(content_type)
        if normalized is None or normalized not in self._allowed_types:
            return ValidationOutcome(accepted=False, reason="Unsupported file format")

        return ACCEPTED


def _normalize_content_type(content_type: Optional[str]) -> Optional[str]:
    if not isinstance(content_type, str):
        return None
    # Strip parameters such as "; codecs=opus".
    base = content_type.split(";", 1)[0].strip().lower()
    return base or None


def _format_bytes(size: int) -> str:
    for unit, factor in (("GB", 1024 ** 3), ("MB", 1024 ** 2), ("KB", 1024)):
        if size >= factor and size % factor == 0:
            return f"{size // factor}{unit}"
    return f"{size} bytes"
