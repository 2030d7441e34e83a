from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class AudioEncoding(str, Enum):
    LINEAR16 = "LINEAR16"
    FLAC = "FLAC"
    MP3 = "MP3"
    OGG_OPUS = "OGG_OPUS"
    WEBM_OPUS = "WEBM_OPUS"
    MULAW = "MULAW"


class RecognitionModel(str, Enum):
    DEFAULT = "default"
    PHONE_CALL = "phone_call"
    VIDEO = "video"
    LATEST_LONG = "latest_long"
    LATEST_SHORT = "latest_short"


# Always injected into the recognition context to bias the engine toward
# courtroom vocabulary over common homophones.
LEGAL_VOCABULARY: tuple[str, ...] = (
    "court", "judge", "attorney", "lawyer", "defendant", "plaintiff",
    "deposition", "testimony", "evidence", "objection", "sustained",
    "overruled", "guilty", "not guilty", "plea", "bail", "sentencing",
    "probation", "parole", "appeal", "motion", "hearing", "trial",
    "jury", "verdict", "subpoena", "warrant", "arrest", "charge",
    "indictment", "arraignment", "preliminary hearing", "discovery",
    "settlement", "mediation", "arbitration", "litigation", "lawsuit",
)
LEGAL_VOCABULARY_BOOST = 20.0


class TranscriptionOverrides(BaseModel):
    """Caller-supplied knobs layered over the default recognition profile.

    Compressed consumer formats often misreport their real encoding, so the
    encoding, sample rate and model are all exposed rather than detected.
    """

    encoding: Optional[AudioEncoding] = None
    sample_rate_hertz: Optional[int] = Field(default=None, gt=0)
    language_code: Optional[str] = None
    model: Optional[RecognitionModel] = None
    use_enhanced: Optional[bool] = None
    enable_speaker_diarization: Optional[bool] = None
    diarization_speaker_count: Optional[int] = Field(default=None, ge=1)


@dataclass(frozen=True)
class TranscriptionRequest:
    """Fully resolved engine invocation. Never persisted."""

    source_uri: str
    encoding: AudioEncoding = AudioEncoding.LINEAR16
    sample_rate_hertz: int = 16000
    language_code: str = "en-US"
    model: RecognitionModel = RecognitionModel.DEFAULT
    use_enhanced: bool = True
    enable_speaker_diarization: bool = False
    diarization_speaker_count: Optional[int] = None
    boost_phrases: tuple[str, ...] = LEGAL_VOCABULARY
    boost: float = LEGAL_VOCABULARY_BOOST

    def with_overrides(self, overrides: Optional[TranscriptionOverrides]) -> "TranscriptionRequest":
        if overrides is None:
            return self
        values = {
            key: value
            for key, value in overrides.model_dump().items()
            if value is not None
        }
        return replace(self, **values)


@dataclass
class RecognitionSegment:
    """One result block returned by the engine (first alternative only)."""

    transcript: str
    confidence: float = 0.0
    end_offset_seconds: float = 0.0
    speaker_tags: List[int] = field(default_factory=list)


class ResultErrorKind(str, Enum):
    EMPTY_RESULT = "empty_result"
    TIMEOUT = "timeout"
    ENGINE_ERROR = "engine_error"


class TranscriptionResult(BaseModel):
    transcript: str = ""
    confidence: float = 0.0
    language_code: str = "en-US"
    duration_seconds: float = 0.0
    speaker_count: Optional[int] = None
    error: Optional[str] = None
    error_kind: Optional[ResultErrorKind] = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.transcript)
