from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from src.evidence.config import settings
from src.evidence.domain.models.transcription import (
    AudioEncoding,
    RecognitionModel,
    TranscriptionOverrides,
    TranscriptionResult,
)
from src.evidence.services.transcription.engine import TranscriptionEngineAdapter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TranscriptionVariant:
    name: str
    overrides: TranscriptionOverrides


# Ranked by how often each profile produced a usable transcript for
# phone/body-cam style recordings.
DEFAULT_VARIANTS: tuple[TranscriptionVariant, ...] = (
    TranscriptionVariant(
        "Default (LINEAR16, 16kHz)",
        TranscriptionOverrides(
            encoding=AudioEncoding.LINEAR16,
            sample_rate_hertz=16000,
            model=RecognitionModel.DEFAULT,
            use_enhanced=True,
            enable_speaker_diarization=False,
        ),
    ),
    TranscriptionVariant(
        "FLAC, 44.1kHz",
        TranscriptionOverrides(
            encoding=AudioEncoding.FLAC,
            sample_rate_hertz=44100,
            model=RecognitionModel.DEFAULT,
            use_enhanced=True,
            enable_speaker_diarization=False,
        ),
    ),
    TranscriptionVariant(
        "MP3, 44.1kHz",
        TranscriptionOverrides(
            encoding=AudioEncoding.MP3,
            sample_rate_hertz=44100,
            model=RecognitionModel.DEFAULT,
            use_enhanced=True,
            enable_speaker_diarization=False,
        ),
    ),
    TranscriptionVariant(
        "Phone call model",
        TranscriptionOverrides(
            encoding=AudioEncoding.LINEAR16,
            sample_rate_hertz=16000,
            model=RecognitionModel.PHONE_CALL,
            use_enhanced=True,
            enable_speaker_diarization=False,
        ),
    ),
    TranscriptionVariant(
        "Video model",
        TranscriptionOverrides(
            encoding=AudioEncoding.LINEAR16,
            sample_rate_hertz=16000,
            model=RecognitionModel.VIDEO,
            use_enhanced=True,
            enable_speaker_diarization=False,
        ),
    ),
)


@dataclass
class VariantAttempt:
    variant: str
    result: TranscriptionResult


@dataclass
class VariantOutcome:
    result: TranscriptionResult
    variant: Optional[str]
    accepted: bool
    attempts: List[VariantAttempt] = field(default_factory=list)


class VariantStrategy:
    """Try a ranked list of recognition profiles against one staged file.

    Stops at the first result whose confidence and transcript length clear
    the thresholds. When none does, the best attempt wins (highest
    confidence, then longest transcript).
    """

    def __init__(
        self,
        adapter: TranscriptionEngineAdapter,
        variants: Sequence[TranscriptionVariant] = DEFAULT_VARIANTS,
        *,
        min_confidence: Optional[float] = None,
        min_chars: Optional[int] = None,
    ) -> None:
        if not variants:
            raise ValueError("VariantStrategy needs at least one variant")
        self._adapter = adapter
        self._variants = tuple(variants)
        self._min_confidence = settings.variant_min_confidence if min_confidence is None else min_confidence
        self._min_chars = settings.variant_min_chars if min_chars is None else min_chars

    @property
    def variants(self) -> tuple[TranscriptionVariant, ...]:
        return self._variants

    def is_acceptable(self, result: TranscriptionResult) -> bool:
        return (
            result.ok
            and result.confidence >= self._min_confidence
            and len(result.transcript.strip()) >= self._min_chars
        )

    def transcribe(
        self, staged_uri: str, base: Optional[TranscriptionOverrides] = None
    ) -> VariantOutcome:
        attempts: List[VariantAttempt] = []

        for variant in self._variants:
            overrides = _merge(base, variant.overrides)
            result = self._adapter.transcribe(staged_uri, overrides)
            attempts.append(VariantAttempt(variant=variant.name, result=result))
            logger.info(
                "Variant %r for %s: confidence=%.2f chars=%d error=%s",
                variant.name,
                staged_uri,
                result.confidence,
                len(result.transcript),
                result.error,
            )
            if self.is_acceptable(result):
                return VariantOutcome(result=result, variant=variant.name, accepted=True, attempts=attempts)

        best = _best_attempt(attempts)
        return VariantOutcome(result=best.result, variant=best.variant, accepted=False, attempts=attempts)


def _merge(
    base: Optional[TranscriptionOverrides], variant: TranscriptionOverrides
) -> TranscriptionOverrides:
    if base is None:
        return variant
    return base.model_copy(update=variant.model_dump(exclude_none=True))


def _best_attempt(attempts: List[VariantAttempt]) -> VariantAttempt:
    usable = [a for a in attempts if a.result.ok]
    if not usable:
        return attempts[0]
    return max(usable, key=lambda a: (a.result.confidence, len(a.result.transcript)))
