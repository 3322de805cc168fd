"""HTTP contract tests for the pronunciation endpoints."""

from __future__ import annotations

import time

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from conftest import FakeTranscriber, make_gateway
from songlingo.config.settings import settings
from songlingo.controllers.dependencies import get_exercise_service, get_transcription_service
from songlingo.main import app
from songlingo.pipelines.pronunciation import (
    PersistedExercise,
    PipelineResult,
    TranscriptionService,
)
from songlingo.services.errors import (
    PipelineExhausted,
    ProviderAuthFailure,
    ProviderUnavailable,
    SongNotFound,
    UnsupportedLanguage,
)

REQUEST_BODY = {
    "songId": "s1",
    "difficulty": "Beginner",
    "language": "Spanish",
    "userVocabulary": [
        {
            "id": "vocab-1",
            "word": "cuello",
            "translation": "neck",
            "mastery_score": 20,
            "user_vocabulary_id": "uv-1",
        }
    ],
}


def _token(**claims) -> str:
    payload = {
        "sub": "user-1",
        "exp": int(time.time()) + 3600,
        "aud": settings.security.jwt_audience,
        "email": "learner@example.com",
    }
    payload.update(claims)
    return jwt.encode(
        payload,
        settings.security.jwt_secret_key.get_secret_value(),
        algorithm=settings.security.jwt_algorithm,
    )


AUTH = {"Authorization": f"Bearer {_token()}"}


def _persisted(index: int) -> PersistedExercise:
    return PersistedExercise(
        id=f"ex-{index}",
        song_id="s1",
        word_or_phrase=f"palabra{index}",
        phonetic_transcription="/pa'la.βɾa/",
        context_sentence="Una frase de ejemplo.",
        reference_audio_url=f"https://cdn.example.com/pronunciation/s1/exercise-{index}.mp3",
        difficulty="beginner",
        language="spanish",
        vocabulary_record_id="uv-1" if index == 1 else None,
    )


class FakeExerciseService:
    def __init__(self, result: PipelineResult | None = None, error: Exception | None = None):
        self.result = result
        self.error = error
        self.requests = []
        self.cached_calls = []

    async def generate(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.result

    async def cached(self, song_id, difficulty, language=None):
        self.cached_calls.append((song_id, difficulty, language))
        return [_persisted(1)] if (song_id, difficulty) == ("s1", "beginner") else []


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


def _use_service(service: FakeExerciseService) -> FakeExerciseService:
    app.dependency_overrides[get_exercise_service] = lambda: service
    return service


def test_generation_requires_a_bearer_token(client):
    service = _use_service(FakeExerciseService())

    response = client.post("/pronunciation/exercises", json=REQUEST_BODY)

    assert response.status_code == 401
    body = response.json()
    assert body["status"] == 401
    assert body["error"] == "Authorization required"
    assert "timestamp" in body
    assert service.requests == []


def test_generation_rejects_a_token_for_another_audience(client):
    _use_service(FakeExerciseService())
    headers = {"Authorization": f"Bearer {_token(aud='someone-else')}"}

    response = client.post("/pronunciation/exercises", json=REQUEST_BODY, headers=headers)

    assert response.status_code == 401
    assert response.json()["error"] == "Invalid token"


def test_generation_returns_persisted_exercises(client):
    result = PipelineResult(cached=True, cached_exercises=(_persisted(1), _persisted(2)))
    service = _use_service(FakeExerciseService(result=result))

    response = client.post("/pronunciation/exercises", json=REQUEST_BODY, headers=AUTH)

    assert response.status_code == 200
    exercises = response.json()["exercises"]
    assert [e["id"] for e in exercises] == ["ex-1", "ex-2"]
    assert exercises[0] == {
        "id": "ex-1",
        "song_id": "s1",
        "word_or_phrase": "palabra1",
        "phonetic_transcription": "/pa'la.βɾa/",
        "context_sentence": "Una frase de ejemplo.",
        "reference_audio_url": "https://cdn.example.com/pronunciation/s1/exercise-1.mp3",
        "difficulty_level": "beginner",
        "language": "spanish",
        "user_vocabulary_id": "uv-1",
    }

    request = service.requests[0]
    assert request.song_id == "s1"
    assert request.difficulty.value == "beginner"
    assert request.language == "spanish"
    assert request.vocabulary_ids == frozenset({"uv-1"})


def test_invalid_body_is_a_bad_request(client):
    _use_service(FakeExerciseService())
    body = dict(REQUEST_BODY, difficulty="expert")

    response = client.post("/pronunciation/exercises", json=body, headers=AUTH)

    assert response.status_code == 400
    assert response.json()["status"] == 400


@pytest.mark.parametrize(
    ("error", "status", "message"),
    [
        (
            ProviderUnavailable("bedrock", "slow down", status_code=429),
            429,
            "Rate limit exceeded. Please try again later.",
        ),
        (
            ProviderAuthFailure("bedrock", "denied", status_code=403),
            401,
            "Authentication failed with AI service.",
        ),
        (SongNotFound("s1"), 404, "Song not found"),
        (UnsupportedLanguage("klingon"), 400, "Unsupported language: klingon"),
        (PipelineExhausted(6), 500, "None of the 6 generated exercises could be materialized."),
        (ProviderUnavailable("polly", "boom", status_code=500), 500, None),
    ],
)
def test_pipeline_errors_map_to_status_codes(client, error, status, message):
    _use_service(FakeExerciseService(error=error))

    response = client.post("/pronunciation/exercises", json=REQUEST_BODY, headers=AUTH)

    assert response.status_code == status
    body = response.json()
    assert body["status"] == status
    if message is not None:
        assert body["error"] == message


def test_cached_exercises_can_be_listed(client):
    service = _use_service(FakeExerciseService())

    response = client.get(
        "/pronunciation/exercises",
        params={"songId": "s1", "difficulty": "beginner", "language": "Spanish"},
        headers=AUTH,
    )

    assert response.status_code == 200
    assert [e["id"] for e in response.json()["exercises"]] == ["ex-1"]
    assert service.cached_calls == [("s1", "beginner", "spanish")]


def _use_transcriber(transcriber: FakeTranscriber) -> None:
    service = TranscriptionService(make_gateway(transcriber=transcriber))
    app.dependency_overrides[get_transcription_service] = lambda: service


def test_transcription_returns_text_and_confidence(client):
    transcriber = FakeTranscriber()
    _use_transcriber(transcriber)

    response = client.post(
        "/pronunciation/transcriptions",
        files={"audio": ("recording.webm", b"opus-bytes", "audio/webm")},
        data={"language": "spanish"},
        headers=AUTH,
    )

    assert response.status_code == 200
    assert response.json() == {"text": "hola mundo", "confidence": 0.92}
    assert transcriber.calls[0]["mime_type"] == "audio/webm"


def test_transcription_without_audio_is_a_bad_request(client):
    transcriber = FakeTranscriber()
    _use_transcriber(transcriber)

    response = client.post(
        "/pronunciation/transcriptions",
        data={"language": "spanish"},
        headers=AUTH,
    )

    assert response.status_code == 400
    assert response.json()["error"] == "No audio file provided"
    assert transcriber.calls == []


def test_transcription_rejects_empty_upload(client):
    transcriber = FakeTranscriber()
    _use_transcriber(transcriber)

    response = client.post(
        "/pronunciation/transcriptions",
        files={"audio": ("recording.webm", b"", "audio/webm")},
        headers=AUTH,
    )

    assert response.status_code == 400
    assert transcriber.calls == []


def test_preflight_returns_empty_204_with_cors_headers(client):
    response = client.options(
        "/pronunciation/exercises",
        headers={
            "Origin": "http://localhost:3000",
            "Access-Control-Request-Method": "POST",
        },
    )

    assert response.status_code == 204
    assert response.content == b""
    assert response.headers["access-control-allow-origin"] == "*"
    assert "POST" in response.headers["access-control-allow-methods"]
    assert "Authorization" in response.headers["access-control-allow-headers"]


def test_cors_headers_are_added_to_regular_responses(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"


def test_request_id_is_echoed(client):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})

    assert response.headers["x-request-id"] == "req-123"
