"""Validation rules applied to generated exercise lists."""

from __future__ import annotations

import asyncio

import pytest

from conftest import FakeBedrockClient, exercise_item, make_gateway, tool_response
from songlingo.pipelines.pronunciation import (
    ExerciseSynthesizer,
    build_exercise_prompt,
    validate_exercises,
)
from songlingo.services.errors import SchemaViolation


def test_fewer_than_five_valid_items_is_a_schema_violation(request_beginner):
    items = [exercise_item(i) for i in range(1, 5)]

    with pytest.raises(SchemaViolation):
        validate_exercises({"exercises": items}, request_beginner)


def test_long_phrases_are_rejected_individually(request_beginner):
    items = [exercise_item(i) for i in range(1, 6)]
    items.append(exercise_item(6, word_or_phrase="quiero respirar tu cuello"))

    exercises = validate_exercises({"exercises": items}, request_beginner)

    assert [e.word_or_phrase for e in exercises] == [f"palabra{i}" for i in range(1, 6)]


def test_rejections_can_drop_below_minimum(request_beginner):
    items = [exercise_item(i) for i in range(1, 5)]
    items.append(exercise_item(5, word_or_phrase="   "))

    with pytest.raises(SchemaViolation):
        validate_exercises({"exercises": items}, request_beginner)


def test_over_production_is_clamped_to_eight(request_beginner):
    items = [exercise_item(i) for i in range(1, 11)]

    exercises = validate_exercises({"exercises": items}, request_beginner)

    assert len(exercises) == 8
    assert exercises[-1].word_or_phrase == "palabra8"


def test_unknown_vocabulary_ids_are_cleared(request_beginner):
    items = [exercise_item(i) for i in range(1, 6)]
    items[0]["user_vocabulary_id"] = "uv-1"
    items[1]["user_vocabulary_id"] = "made-up"
    items[2]["user_vocabulary_id"] = ""

    exercises = validate_exercises({"exercises": items}, request_beginner)

    assert exercises[0].vocabulary_record_id == "uv-1"
    assert exercises[1].vocabulary_record_id is None
    assert exercises[2].vocabulary_record_id is None


def test_prompt_lists_struggling_and_in_song_words(request_beginner, song):
    prompt = build_exercise_prompt(request_beginner, song)

    assert "Struggling words (mastery_score < 50): cuello" in prompt
    assert "Vocabulary words that appear in the lyrics: cuello, suave" in prompt
    assert "Quiero respirar tu cuello despacito" in prompt
    assert "1 to 3 words" in prompt


def test_synthesizer_sends_prompt_and_returns_ordered_exercises(request_beginner, song):
    items = [exercise_item(i) for i in range(1, 7)]
    bedrock = FakeBedrockClient(tool_response(items))
    synthesizer = ExerciseSynthesizer(make_gateway(bedrock=bedrock))

    exercises = asyncio.run(synthesizer.synthesize(request_beginner, song))

    assert [e.word_or_phrase for e in exercises] == [f"palabra{i}" for i in range(1, 7)]
    prompt = bedrock.calls[0]["messages"][0]["content"][0]["text"]
    assert "Despacito" in prompt


def test_unspaced_sentences_are_rejected(request_beginner):
    items = [exercise_item(i) for i in range(1, 6)]
    items.append(exercise_item(6, word_or_phrase="我每天早上都去学校上课"))
    items.append(exercise_item(7, word_or_phrase="私は学生です。"))
    items.append(exercise_item(8, word_or_phrase="ありがとうございます"))
    items.append(exercise_item(9, word_or_phrase="你好"))

    exercises = validate_exercises({"exercises": items}, request_beginner)

    phrases = [e.word_or_phrase for e in exercises]
    assert "我每天早上都去学校上课" not in phrases
    assert "私は学生です。" not in phrases
    assert phrases[-2:] == ["ありがとうございます", "你好"]
