from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional
from uuid import uuid4

from src.evidence.domain.models.media_file import MediaFile, MediaKind, TranscriptionStatus
from src.evidence.domain.models.transcription import RecognitionSegment, TranscriptionRequest
from src.evidence.services.transcription.backends import CompletedOperation

T0 = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


class FakeClock:
    """Settable UTC clock."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


class ScriptedSpeechEngine:
    """Speech engine that replays queued outcomes and records every request.

    An outcome is a list of segments, or an exception raised from ``wait``.
    When the queue is empty the default outcome is used. ``on_start`` runs
    before each recognition starts, standing in for work done elsewhere while
    a transcription is in flight.
    """

    def __init__(self, default: Optional[List[RecognitionSegment]] = None) -> None:
        self.requests: List[TranscriptionRequest] = []
        self.outcomes: list = []
        self.default = default if default is not None else [
            RecognitionSegment(transcript="the defendant pleads not guilty", confidence=0.92)
        ]
        self.on_start: Optional[Callable[[], None]] = None

    def queue(self, *outcomes) -> None:
        self.outcomes.extend(outcomes)

    def start(self, request: TranscriptionRequest):
        self.requests.append(request)
        if self.on_start is not None:
            self.on_start()
        outcome = self.outcomes.pop(0) if self.outcomes else self.default
        if isinstance(outcome, Exception):
            return _FailingOperation(outcome)
        return CompletedOperation(outcome)


class _FailingOperation:
    def __init__(self, exc: Exception) -> None:
        self._exc = exc

    def wait(self, timeout: float):
        raise self._exc


def make_record(**overrides) -> MediaFile:
    media_file_id = overrides.pop("id", uuid4())
    values = dict(
        id=media_file_id,
        original_filename="interview.mp3",
        storage_path=f"{media_file_id}/interview.mp3",
        media_kind=MediaKind.AUDIO,
        file_size=1024,
        content_type="audio/mpeg",
        transcription_status=TranscriptionStatus.PENDING,
        created_at=T0,
        updated_at=T0,
    )
    values.update(overrides)
    return MediaFile(**values)
