"""Per-exercise isolation, write ordering and caching in the pipeline."""

from __future__ import annotations

import asyncio

import pytest

from conftest import (
    FakeBedrockClient,
    FakePollyClient,
    FakeSongRepository,
    RecordingRepository,
    exercise_item,
    make_gateway,
    make_storage,
    tool_response,
)
from songlingo.pipelines.pronunciation import (
    AudioMaterializer,
    Difficulty,
    ExerciseRequest,
    ExerciseSynthesizer,
    PersistedExercise,
    PronunciationExerciseService,
    PronunciationPipeline,
)
from songlingo.services.errors import PipelineExhausted, UnsupportedLanguage


def _build(
    count: int = 6,
    *,
    fail_texts: set[str] | None = None,
    failing_repository: bool = False,
    failing_uploads: set[int] | None = None,
    insert_errors: dict[str, Exception] | None = None,
    parallel: bool = False,
):
    events: list[tuple[str, str]] = []
    bedrock = FakeBedrockClient(tool_response([exercise_item(i) for i in range(1, count + 1)]))
    polly = FakePollyClient(fail_texts=fail_texts)
    gateway = make_gateway(bedrock=bedrock, polly=polly)
    storage, s3 = make_storage(events, failing_uploads)
    repository = RecordingRepository(
        events, fail=failing_repository, errors=dict(insert_errors or {})
    )
    pipeline = PronunciationPipeline(
        ExerciseSynthesizer(gateway),
        AudioMaterializer(gateway, storage),
        repository,
        parallel=parallel,
    )
    return pipeline, repository, events, s3, bedrock, polly


def test_end_to_end_persists_every_exercise_in_order(request_beginner, song):
    pipeline, repository, _, s3, _, _ = _build(6)

    result = asyncio.run(pipeline.run(request_beginner, song))

    exercises = result.exercises
    assert len(exercises) == 6
    assert [e.word_or_phrase for e in exercises] == [f"palabra{i}" for i in range(1, 7)]
    urls = [e.reference_audio_url for e in exercises]
    assert len(set(urls)) == 6
    assert all(url.startswith("https://cdn.example.com/pronunciation/s1/") for url in urls)
    assert all(e.difficulty == "beginner" and e.language == "spanish" for e in exercises)
    assert result.skipped == []
    assert len(s3.objects) == 6
    assert all(obj["IfNoneMatch"] == "*" for obj in s3.objects.values())


def test_one_failing_exercise_does_not_abort_the_rest(request_beginner, song):
    pipeline, repository, _, _, _, _ = _build(6, fail_texts={"palabra3"})

    result = asyncio.run(pipeline.run(request_beginner, song))

    assert [e.word_or_phrase for e in result.exercises] == [
        "palabra1",
        "palabra2",
        "palabra4",
        "palabra5",
        "palabra6",
    ]
    assert len(result.skipped) == 1
    skipped = result.skipped[0]
    assert skipped.index == 3
    assert "ProviderUnavailable" in skipped.skip_reason


def test_every_exercise_failing_raises_pipeline_exhausted(request_beginner, song):
    texts = {f"palabra{i}" for i in range(1, 6)}
    pipeline, repository, _, _, _, _ = _build(5, fail_texts=texts)

    with pytest.raises(PipelineExhausted) as info:
        asyncio.run(pipeline.run(request_beginner, song))

    assert info.value.attempted == 5
    assert len(info.value.reasons) == 5
    assert repository.rows == []


def test_upload_completes_before_the_row_is_written(request_beginner, song):
    pipeline, repository, events, s3, _, _ = _build(5, failing_repository=True)

    with pytest.raises(PipelineExhausted):
        asyncio.run(pipeline.run(request_beginner, song))

    assert [kind for kind, _ in events] == ["upload", "insert"] * 5
    for (_, key), (_, url) in zip(events[::2], events[1::2]):
        assert url == f"https://cdn.example.com/{key}"
    # Orphaned uploads are acceptable; rows without audio are not.
    assert len(s3.objects) == 5


def test_unsupported_language_fails_before_generation(song):
    pipeline, repository, events, _, bedrock, polly = _build(6)
    request = ExerciseRequest(song_id="s1", difficulty=Difficulty.BEGINNER, language="klingon")

    with pytest.raises(UnsupportedLanguage):
        asyncio.run(pipeline.run(request, song))

    assert bedrock.calls == []
    assert polly.calls == []
    assert events == []


def test_parallel_mode_keeps_isolation_and_order(request_beginner, song):
    pipeline, repository, _, _, _, _ = _build(7, fail_texts={"palabra2"}, parallel=True)

    result = asyncio.run(pipeline.run(request_beginner, song))

    assert [o.index for o in result.outcomes] == list(range(1, 8))
    assert len(result.exercises) == 6
    assert [o.index for o in result.skipped] == [2]


def _cached_row(index: int) -> PersistedExercise:
    return PersistedExercise(
        id=f"cached-{index}",
        song_id="s1",
        word_or_phrase=f"guardada{index}",
        phonetic_transcription="",
        context_sentence="",
        reference_audio_url=f"https://cdn.example.com/cached-{index}.mp3",
        difficulty="beginner",
        language="spanish",
    )


def test_service_returns_cached_exercises_without_running_pipeline(request_beginner, song):
    pipeline, repository, _, _, bedrock, _ = _build(6)
    repository.cached = [_cached_row(1), _cached_row(2)]
    songs = FakeSongRepository(song)
    service = PronunciationExerciseService(pipeline, songs, repository)

    result = asyncio.run(service.generate(request_beginner))

    assert result.cached
    assert [e.id for e in result.exercises] == ["cached-1", "cached-2"]
    assert bedrock.calls == []
    assert songs.calls == []


def test_service_generates_when_cache_is_disabled(request_beginner, song):
    pipeline, repository, _, _, _, _ = _build(5)
    repository.cached = [_cached_row(1)]
    songs = FakeSongRepository(song)
    service = PronunciationExerciseService(pipeline, songs, repository, reuse_cached=False)

    result = asyncio.run(service.generate(request_beginner))

    assert not result.cached
    assert len(result.exercises) == 5
    assert songs.calls == ["s1"]


@pytest.mark.parametrize("parallel", [False, True])
def test_unexpected_insert_failure_only_skips_that_exercise(request_beginner, song, parallel):
    refused = ConnectionRefusedError(111, "Connect call failed")
    pipeline, repository, _, _, _, _ = _build(
        6, insert_errors={"palabra3": refused}, parallel=parallel
    )

    result = asyncio.run(pipeline.run(request_beginner, song))

    assert len(result.exercises) == 5
    assert "palabra3" not in [e.word_or_phrase for e in result.exercises]
    assert [o.index for o in result.skipped] == [3]
    assert result.skipped[0].skip_reason.startswith("ConnectionRefusedError")


def test_failed_upload_skips_the_exercise_without_writing_a_row(request_beginner, song):
    pipeline, repository, events, s3, _, _ = _build(6, failing_uploads={4})

    result = asyncio.run(pipeline.run(request_beginner, song))

    assert [o.index for o in result.skipped] == [4]
    assert "StorageError" in result.skipped[0].skip_reason
    assert len(repository.rows) == 5
    assert len(s3.objects) == 5
    assert not any("/exercise-4-" in url for kind, url in events if kind == "insert")


def test_cached_exercises_in_another_language_are_not_reused(song):
    pipeline, repository, _, _, bedrock, _ = _build(5)
    repository.cached = [_cached_row(1)]
    service = PronunciationExerciseService(pipeline, FakeSongRepository(song), repository)
    request = ExerciseRequest(song_id="s1", difficulty=Difficulty.BEGINNER, language="italian")

    result = asyncio.run(service.generate(request))

    assert not result.cached
    assert len(result.exercises) == 5
    assert all(e.language == "italian" for e in result.exercises)
    assert len(bedrock.calls) == 1
