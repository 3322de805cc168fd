"""Shared fakes for the pronunciation pipeline tests."""

from __future__ import annotations

import asyncio
import io
from dataclasses import dataclass, field
from pathlib import Path
import sys
from typing import Any

import pytest
from botocore.exceptions import ClientError

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from songlingo.pipelines.pronunciation import (  # noqa: E402
    Difficulty,
    ExerciseRequest,
    NewExercise,
    PersistedExercise,
    SongSnapshot,
    VocabularyEntry,
)
from songlingo.services.errors import ExercisePersistenceError  # noqa: E402
from songlingo.services.provider_gateway import (  # noqa: E402
    GENERATION_TOOL_NAME,
    ProviderConfig,
    ProviderGateway,
)
from songlingo.services.storage import ReferenceAudioStorage  # noqa: E402
from songlingo.services.transcribe import TranscriptionResult  # noqa: E402

VOICES = {"spanish": "Lucia", "italian": "Bianca"}


def client_error(code: str, status: int, operation: str = "Operation") -> ClientError:
    return ClientError(
        {
            "Error": {"Code": code, "Message": f"{code} raised"},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


def exercise_item(index: int, **overrides: Any) -> dict[str, Any]:
    item = {
        "word_or_phrase": f"palabra{index}",
        "phonetic_transcription": f"/pa'la.βɾa{index}/",
        "context_sentence": f"Esta es la palabra{index} en una frase larga.",
    }
    item.update(overrides)
    return item


def tool_response(items: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "output": {
            "message": {
                "role": "assistant",
                "content": [
                    {
                        "toolUse": {
                            "toolUseId": "tool-1",
                            "name": GENERATION_TOOL_NAME,
                            "input": {"exercises": items},
                        }
                    }
                ],
            }
        }
    }


class FakeBedrockClient:
    def __init__(self, response: dict[str, Any] | None = None, error: Exception | None = None):
        self.response = response
        self.error = error
        self.calls: list[dict[str, Any]] = []

    def converse(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.response


class FakePollyClient:
    """Returns deterministic bytes; ``fail_texts`` raise a service error."""

    def __init__(self, fail_texts: set[str] | None = None, error: Exception | None = None):
        self.fail_texts = fail_texts or set()
        self.error = error
        self.calls: list[dict[str, Any]] = []

    def synthesize_speech(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        if kwargs["Text"] in self.fail_texts:
            raise client_error("ServiceFailureException", 500, "SynthesizeSpeech")
        return {"AudioStream": io.BytesIO(f"mp3:{kwargs['Text']}".encode("utf-8"))}


class FakeTranscriber:
    def __init__(self, result: TranscriptionResult | None = None, delay: float = 0.0):
        self.result = result or TranscriptionResult(text="hola mundo", confidence=0.92)
        self.delay = delay
        self.calls: list[dict[str, Any]] = []

    async def transcribe(self, audio_bytes: bytes, *, language_code: str, mime_type: str):
        self.calls.append(
            {"size": len(audio_bytes), "language_code": language_code, "mime_type": mime_type}
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.result


class FakeS3Client:
    """Records uploads; keys for ``fail_indexes`` raise a service error."""

    def __init__(self, events: list[tuple[str, str]], fail_indexes: set[int] | None = None):
        self.events = events
        self.fail_indexes = fail_indexes or set()
        self.objects: dict[str, dict[str, Any]] = {}

    def put_object(self, **kwargs):
        if any(f"/exercise-{i}-" in kwargs["Key"] for i in self.fail_indexes):
            raise client_error("InternalError", 500, "PutObject")
        self.objects[kwargs["Key"]] = kwargs
        self.events.append(("upload", kwargs["Key"]))
        return {"ETag": '"etag"'}


@dataclass
class RecordingRepository:
    """In-memory exercise repository that records write order."""

    events: list[tuple[str, str]]
    fail: bool = False
    errors: dict[str, Exception] = field(default_factory=dict)
    rows: list[PersistedExercise] = field(default_factory=list)
    cached: list[PersistedExercise] = field(default_factory=list)

    async def insert(self, new: NewExercise) -> PersistedExercise:
        self.events.append(("insert", new.reference_audio_url))
        if self.fail:
            raise ExercisePersistenceError("Database error: connection refused")
        if new.exercise.word_or_phrase in self.errors:
            raise self.errors[new.exercise.word_or_phrase]
        row = PersistedExercise(
            id=f"row-{len(self.rows) + 1}",
            song_id=new.song_id,
            word_or_phrase=new.exercise.word_or_phrase,
            phonetic_transcription=new.exercise.phonetic_transcription,
            context_sentence=new.exercise.context_sentence,
            reference_audio_url=new.reference_audio_url,
            difficulty=new.difficulty.value,
            language=new.language,
            vocabulary_record_id=new.exercise.vocabulary_record_id,
        )
        self.rows.append(row)
        return row

    async def list_for_song(
        self, song_id: str, difficulty: str, language: str | None = None
    ) -> list[PersistedExercise]:
        return [
            row
            for row in self.cached
            if row.song_id == song_id
            and row.difficulty == difficulty
            and (language is None or row.language == language)
        ]


class FakeSongRepository:
    def __init__(self, song: SongSnapshot):
        self.song = song
        self.calls: list[str] = []

    async def get_song(self, song_id: str) -> SongSnapshot:
        self.calls.append(song_id)
        return self.song


def make_gateway(
    *,
    bedrock: FakeBedrockClient | None = None,
    polly: FakePollyClient | None = None,
    transcriber: FakeTranscriber | None = None,
    max_audio_bytes: int = 1024,
    timeout_seconds: float = 5.0,
) -> ProviderGateway:
    config = ProviderConfig(
        voices=VOICES,
        stt_language_codes={"spanish": "es-ES", "italian": "it-IT"},
        max_audio_bytes=max_audio_bytes,
        timeout_seconds=timeout_seconds,
    )
    return ProviderGateway(
        config,
        llm_client=bedrock or FakeBedrockClient(tool_response([])),
        tts_client=polly or FakePollyClient(),
        transcriber=transcriber or FakeTranscriber(),
    )


def make_storage(
    events: list[tuple[str, str]],
    fail_indexes: set[int] | None = None,
) -> tuple[ReferenceAudioStorage, FakeS3Client]:
    s3 = FakeS3Client(events, fail_indexes)
    storage = ReferenceAudioStorage(
        bucket="songlingo-test",
        region="us-east-1",
        client=s3,
        public_base_url="https://cdn.example.com",
    )
    return storage, s3


@pytest.fixture
def song() -> SongSnapshot:
    return SongSnapshot(
        song_id="s1",
        title="Despacito",
        artist="Luis Fonsi",
        lyrics="Despacito\nQuiero respirar tu cuello despacito\nPasito a pasito, suave suavecito",
    )


@pytest.fixture
def request_beginner() -> ExerciseRequest:
    return ExerciseRequest(
        song_id="s1",
        difficulty=Difficulty.BEGINNER,
        language="spanish",
        vocabulary=(
            VocabularyEntry(
                word="cuello",
                translation="neck",
                mastery_score=20,
                vocabulary_record_id="uv-1",
            ),
            VocabularyEntry(
                word="suave",
                translation="soft",
                mastery_score=80,
                vocabulary_record_id="uv-2",
            ),
        ),
    )
