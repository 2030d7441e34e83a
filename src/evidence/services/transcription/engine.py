from __future__ import annotations

import logging
from typing import List, Optional

from src.evidence.domain.errors import EngineError, EngineTimeoutError
from src.evidence.domain.models.transcription import (
    RecognitionSegment,
    ResultErrorKind,
    TranscriptionOverrides,
    TranscriptionRequest,
    TranscriptionResult,
)
from src.evidence.services.transcription.backends import SpeechEngine

logger = logging.getLogger(__name__)

# Silence, an unsupported/misreported encoding and a corrupted file all look
# the same from the response alone.
EMPTY_RESULT_MESSAGE = (
    "No transcription results returned. The audio may be silent, in an "
    "unsupported or misreported format, or corrupted."
)


class TranscriptionEngineAdapter:
    """Single-shot recognition against a staged URI.

    Applies the default profile (LINEAR16, 16 kHz, en-US, default model,
    enhanced on, diarization off) plus caller overrides, always injects the
    legal vocabulary boost, and folds the engine's outcome into a
    :class:`TranscriptionResult`. It never retries.
    """

    def __init__(self, engine: SpeechEngine, *, timeout_seconds: float) -> None:
        self._engine = engine
        self._timeout_seconds = timeout_seconds

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    def build_request(
        self, staged_uri: str, overrides: Optional[TranscriptionOverrides] = None
    ) -> TranscriptionRequest:
        return TranscriptionRequest(source_uri=staged_uri).with_overrides(overrides)

    def transcribe(
        self, staged_uri: str, overrides: Optional[TranscriptionOverrides] = None
    ) -> TranscriptionResult:
        request = self.build_request(staged_uri, overrides)

        try:
            operation = self._engine.start(request)
            segments = operation.wait(self._timeout_seconds)
        except EngineTimeoutError as exc:
            logger.warning("Recognition timed out for %s", staged_uri)
            return TranscriptionResult(
                language_code=request.language_code,
                error=str(exc),
                error_kind=ResultErrorKind.TIMEOUT,
            )
        except EngineError as exc:
            logger.warning("Recognition failed for %s: %s", staged_uri, exc)
            return TranscriptionResult(
                language_code=request.language_code,
                error=str(exc),
                error_kind=ResultErrorKind.ENGINE_ERROR,
            )

        return summarize_segments(segments, request)


def summarize_segments(
    segments: List[RecognitionSegment], request: TranscriptionRequest
) -> TranscriptionResult:
    """Combine engine segments into a single result.

    Confidence is the mean over segments that carried text; no such segments
    means an empty result with confidence 0.
    """

    texts: List[str] = []
    confidences: List[float] = []
    speaker_count = 0
    duration = 0.0

    for segment in segments:
        duration = max(duration, segment.end_offset_seconds)
        if segment.speaker_tags:
            speaker_count = max(speaker_count, len(set(segment.speaker_tags)))
        text = segment.transcript.strip()
        if text:
            texts.append(text)
            confidences.append(segment.confidence or 0.0)

    if not texts:
        return TranscriptionResult(
            language_code=request.language_code,
            duration_seconds=duration,
            error=EMPTY_RESULT_MESSAGE,
            error_kind=ResultErrorKind.EMPTY_RESULT,
        )

    return TranscriptionResult(
        transcript=" ".join(texts),
        confidence=sum(confidences) / len(confidences),
        language_code=request.language_code,
        duration_seconds=duration,
        speaker_count=speaker_count if request.enable_speaker_diarization and speaker_count > 0 else None,
    )
