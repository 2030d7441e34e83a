from src.evidence.domain.errors import EngineError, EngineTimeoutError
from src.evidence.domain.models.transcription import (
    LEGAL_VOCABULARY_BOOST,
    AudioEncoding,
    RecognitionModel,
    RecognitionSegment,
    ResultErrorKind,
    TranscriptionOverrides,
)
from src.evidence.services.transcription.backends import DemoSpeechEngine
from src.evidence.services.transcription.engine import EMPTY_RESULT_MESSAGE, TranscriptionEngineAdapter
from tests.evidence.fakes import ScriptedSpeechEngine

URI = "gs://temp-transcription/transcription-1-abc-clip.wav"


def test_default_request_profile():
    engine = ScriptedSpeechEngine()
    TranscriptionEngineAdapter(engine, timeout_seconds=60).transcribe(URI)

    [request] = engine.requests
    assert request.source_uri == URI
    assert request.encoding == AudioEncoding.LINEAR16
    assert request.sample_rate_hertz == 16000
    assert request.language_code == "en-US"
    assert request.model == RecognitionModel.DEFAULT
    assert request.use_enhanced is True
    assert request.enable_speaker_diarization is False
    assert "subpoena" in request.boost_phrases
    assert "plea" in request.boost_phrases
    assert request.boost == LEGAL_VOCABULARY_BOOST


def test_overrides_replace_only_the_given_fields():
    engine = ScriptedSpeechEngine()
    adapter = TranscriptionEngineAdapter(engine, timeout_seconds=60)

    adapter.transcribe(
        URI,
        TranscriptionOverrides(
            encoding=AudioEncoding.MP3,
            sample_rate_hertz=44100,
            model=RecognitionModel.PHONE_CALL,
            enable_speaker_diarization=True,
            diarization_speaker_count=3,
        ),
    )

    [request] = engine.requests
    assert request.encoding == AudioEncoding.MP3
    assert request.sample_rate_hertz == 44100
    assert request.model == RecognitionModel.PHONE_CALL
    assert request.enable_speaker_diarization is True
    assert request.diarization_speaker_count == 3
    assert request.language_code == "en-US"
    assert request.boost_phrases


def test_confidence_is_mean_of_segments_and_text_is_joined():
    engine = ScriptedSpeechEngine(
        default=[
            RecognitionSegment(transcript="the court is in session", confidence=0.9, end_offset_seconds=4.0),
            RecognitionSegment(transcript=" please be seated ", confidence=0.7, end_offset_seconds=7.5),
        ]
    )
    result = TranscriptionEngineAdapter(engine, timeout_seconds=60).transcribe(URI)

    assert result.ok
    assert result.transcript == "the court is in session please be seated"
    assert abs(result.confidence - 0.8) < 1e-9
    assert result.duration_seconds == 7.5
    assert result.speaker_count is None


def test_speaker_count_only_reported_with_diarization():
    segments = [RecognitionSegment(transcript="objection", confidence=0.8, speaker_tags=[1, 2, 2, 1])]
    adapter = TranscriptionEngineAdapter(ScriptedSpeechEngine(default=segments), timeout_seconds=60)

    without = adapter.transcribe(URI)
    with_diarization = adapter.transcribe(URI, TranscriptionOverrides(enable_speaker_diarization=True))

    assert without.speaker_count is None
    assert with_diarization.speaker_count == 2


def test_zero_segments_is_an_empty_result_not_an_exception():
    adapter = TranscriptionEngineAdapter(ScriptedSpeechEngine(default=[]), timeout_seconds=60)

    result = adapter.transcribe(URI)

    assert not result.ok
    assert result.transcript == ""
    assert result.confidence == 0.0
    assert result.error == EMPTY_RESULT_MESSAGE
    assert result.error_kind == ResultErrorKind.EMPTY_RESULT
    for cause in ("silent", "format", "corrupted"):
        assert cause in result.error


def test_blank_segments_count_as_empty():
    engine = ScriptedSpeechEngine(default=[RecognitionSegment(transcript="   ", confidence=0.4)])
    result = TranscriptionEngineAdapter(engine, timeout_seconds=60).transcribe(URI)
    assert result.error_kind == ResultErrorKind.EMPTY_RESULT


def test_timeout_is_reported_distinctly_from_empty_result():
    engine = ScriptedSpeechEngine()
    engine.queue(EngineTimeoutError(30))

    result = TranscriptionEngineAdapter(engine, timeout_seconds=30).transcribe(URI)

    assert result.error_kind == ResultErrorKind.TIMEOUT
    assert result.error == "Speech recognition did not finish within 30 seconds"
    assert result.error != EMPTY_RESULT_MESSAGE


def test_engine_error_is_folded_into_the_result():
    engine = ScriptedSpeechEngine()
    engine.queue(EngineError("Speech recognition failed: 400 bad encoding"))

    result = TranscriptionEngineAdapter(engine, timeout_seconds=30).transcribe(URI)

    assert result.error_kind == ResultErrorKind.ENGINE_ERROR
    assert "bad encoding" in result.error


def test_adapter_never_retries():
    engine = ScriptedSpeechEngine()
    engine.queue(EngineError("boom"))
    TranscriptionEngineAdapter(engine, timeout_seconds=30).transcribe(URI)
    assert len(engine.requests) == 1


def test_demo_engine_mentions_model():
    adapter = TranscriptionEngineAdapter(DemoSpeechEngine(), timeout_seconds=1)
    result = adapter.transcribe(URI, TranscriptionOverrides(model=RecognitionModel.VIDEO))
    assert result.ok
    assert "video model" in result.transcript
