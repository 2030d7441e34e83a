from __future__ import annotations

import concurrent.futures
import logging
from typing import Any, List, Protocol

from google.api_core import exceptions as gcp_exceptions
from google.cloud import speech_v1 as speech

from src.evidence.config import settings
from src.evidence.domain.errors import EngineError, EngineTimeoutError
from src.evidence.domain.models.transcription import RecognitionSegment, TranscriptionRequest
from src.evidence.infra.gcp import load_service_account_info

logger = logging.getLogger(__name__)


class RecognitionOperation(Protocol):
    """Handle for a submitted long-running recognition."""

    def wait(self, timeout: float) -> List[RecognitionSegment]:  # pragma: no cover - interface
        """Block until the operation finishes.

        Raises EngineTimeoutError when ``timeout`` elapses first and
        EngineError when the engine reports a failure.
        """
        raise NotImplementedError


class SpeechEngine(Protocol):
    """Protocol for speech recognition backends that read audio by URI."""

    def start(self, request: TranscriptionRequest) -> RecognitionOperation:  # pragma: no cover - interface
        raise NotImplementedError


class CompletedOperation:
    """Operation whose segments are already known."""

    def __init__(self, segments: List[RecognitionSegment]) -> None:
        self._segments = segments

    def wait(self, timeout: float) -> List[RecognitionSegment]:
        return list(self._segments)


class DemoSpeechEngine:
    """Deterministic offline backend.

    Returns a placeholder transcript so the service and its tests run without
    cloud credentials.
    """

    def start(self, request: TranscriptionRequest) -> RecognitionOperation:
        text = f"Demo transcript for {request.source_uri} ({request.model.value} model)"
        return CompletedOperation([RecognitionSegment(transcript=text, confidence=0.9)])


class GoogleRecognitionOperation:
    def __init__(self, operation: Any) -> None:
        self._operation = operation

    def wait(self, timeout: float) -> List[RecognitionSegment]:
        try:
            response = self._operation.result(timeout=timeout)
        except concurrent.futures.TimeoutError as exc:
            raise EngineTimeoutError(timeout) from exc
        except gcp_exceptions.GoogleAPIError as exc:
            raise EngineError(f"Speech recognition failed: {exc}") from exc
        return [_segment_from_result(result) for result in response.results]


def _segment_from_result(result: Any) -> RecognitionSegment:
    if not result.alternatives:
        return RecognitionSegment(transcript="", confidence=0.0)

    alternative = result.alternatives[0]
    end_offset = 0.0
    if getattr(result, "result_end_time", None) is not None:
        end_offset = result.result_end_time.total_seconds()
    return RecognitionSegment(
        transcript=alternative.transcript,
        confidence=alternative.confidence or 0.0,
        end_offset_seconds=end_offset,
        speaker_tags=[word.speaker_tag for word in alternative.words if word.speaker_tag],
    )


class GoogleSpeechEngine:
    """Speech-to-Text v1 backend using ``long_running_recognize``.

    Audio is always referenced by ``gs://`` URI; the engine never receives
    raw bytes.
    """

    def __init__(self, client: speech.SpeechClient) -> None:
        self._client = client

    def build_config(self, request: TranscriptionRequest) -> speech.RecognitionConfig:
        config = speech.RecognitionConfig(
            encoding=speech.RecognitionConfig.AudioEncoding[request.encoding.value],
            sample_rate_hertz=request.sample_rate_hertz,
            language_code=request.language_code,
            model=request.model.value,
            use_enhanced=request.use_enhanced,
            enable_automatic_punctuation=True,
            speech_contexts=[
                speech.SpeechContext(phrases=list(request.boost_phrases), boost=request.boost)
            ],
        )
        if request.enable_speaker_diarization:
            speaker_count = request.diarization_speaker_count or 2
            config.diarization_config = speech.SpeakerDiarizationConfig(
                enable_speaker_diarization=True,
                min_speaker_count=speaker_count,
                max_speaker_count=speaker_count,
            )
        return config

    def start(self, request: TranscriptionRequest) -> RecognitionOperation:
        config = self.build_config(request)
        audio = speech.RecognitionAudio(uri=request.source_uri)
        logger.info(
            "Starting long-running recognition for %s (encoding=%s, rate=%s, model=%s)",
            request.source_uri,
            request.encoding.value,
            request.sample_rate_hertz,
            request.model.value,
        )
        try:
            operation = self._client.long_running_recognize(config=config, audio=audio)
        except gcp_exceptions.GoogleAPIError as exc:
            raise EngineError(f"Speech recognition request rejected: {exc}") from exc
        return GoogleRecognitionOperation(operation)


demo_speech_engine = DemoSpeechEngine()


def get_speech_engine_from_env() -> SpeechEngine:
    """Select a speech backend based on the SPEECH_BACKEND environment variable.

    - SPEECH_BACKEND=google → GoogleSpeechEngine
    - Anything else (or unset) → DemoSpeechEngine
    """

    backend_name = settings.speech_backend.lower()
    if backend_name == "google":
        info = load_service_account_info()
        if info is not None:
            client = speech.SpeechClient.from_service_account_info(info)
        else:
            # Falls back to application default credentials.
            client = speech.SpeechClient()
        return GoogleSpeechEngine(client)
    return demo_speech_engine
