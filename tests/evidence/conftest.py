from __future__ import annotations

import pytest

from src.evidence.container import ServiceContainer, build_container
from src.evidence.infra.db.inmemory import InMemoryMediaFileRepository
from src.evidence.infra.storage.primary import InMemoryObjectStore
from src.evidence.infra.storage.staging import InMemoryStagingBucket
from tests.evidence.fakes import FakeClock, ScriptedSpeechEngine


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def speech_engine() -> ScriptedSpeechEngine:
    return ScriptedSpeechEngine()


@pytest.fixture
def container(clock: FakeClock, speech_engine: ScriptedSpeechEngine) -> ServiceContainer:
    built = build_container(
        repository=InMemoryMediaFileRepository(),
        primary_store=InMemoryObjectStore(),
        staging_bucket=InMemoryStagingBucket(),
        speech_engine=speech_engine,
        clock=clock,
    )
    yield built
    built.close()
