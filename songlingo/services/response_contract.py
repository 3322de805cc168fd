"""Pydantic models and JSON schema for the exercise-generation contract.

The schema is sent to the generative model as a forced tool input; the
models validate each returned item so downstream code receives normalized,
type-safe objects.
"""

from __future__ import annotations

import json
import re
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from .errors import SchemaViolation

MIN_EXERCISES = 5
MAX_EXERCISES = 8
MAX_PHRASE_TOKENS = 3
# Japanese and Chinese are written without spaces; bound them by characters.
MAX_UNSPACED_CHARS = 10

_UNSPACED_SCRIPT = re.compile(r"[\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uff66-\uff9f]")
_SENTENCE_END = re.compile(r"[。！？.!?]$")

PRONUNCIATION_EXERCISE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "exercises": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "word_or_phrase": {
                        "type": "string",
                        "description": "The target word or short phrase (1-3 words) to pronounce",
                    },
                    "phonetic_transcription": {
                        "type": "string",
                        "description": "IPA notation (can be approximate)",
                    },
                    "context_sentence": {
                        "type": "string",
                        "description": "A longer example sentence using the word or phrase",
                    },
                    "user_vocabulary_id": {
                        "type": "string",
                        "description": "Include if the word exists in the user's vocabulary",
                    },
                },
                "required": [
                    "word_or_phrase",
                    "phonetic_transcription",
                    "context_sentence",
                ],
            },
            "minItems": MIN_EXERCISES,
            "maxItems": MAX_EXERCISES,
            "description": "5-8 pronunciation exercises",
        }
    },
    "required": ["exercises"],
}


def count_tokens(text: str) -> int:
    return len(text.split())


def count_unspaced_chars(text: str) -> int:
    return len(_UNSPACED_SCRIPT.findall(text))


class GeneratedExercise(BaseModel):
    """One exercise as produced by the model, before audio and persistence."""

    word_or_phrase: str
    phonetic_transcription: str
    context_sentence: str
    vocabulary_record_id: Optional[str] = Field(default=None, alias="user_vocabulary_id")

    model_config = {"populate_by_name": True, "extra": "ignore", "frozen": True}

    @field_validator("word_or_phrase")
    @classmethod
    def check_phrase(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("word_or_phrase is empty")
        if count_tokens(value) > MAX_PHRASE_TOKENS:
            raise ValueError(
                f"word_or_phrase has more than {MAX_PHRASE_TOKENS} tokens"
            )
        if count_unspaced_chars(value) > MAX_UNSPACED_CHARS:
            raise ValueError(
                f"word_or_phrase has more than {MAX_UNSPACED_CHARS} characters"
            )
        if count_unspaced_chars(value) and _SENTENCE_END.search(value):
            raise ValueError("word_or_phrase is a full sentence")
        return value

    @field_validator("phonetic_transcription", "context_sentence")
    @classmethod
    def strip_text(cls, value: str) -> str:
        return value.strip()

    @field_validator("vocabulary_record_id", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


def parse_json_payload(payload: str) -> dict[str, Any]:
    """Parse a text model answer into a JSON object or raise ``SchemaViolation``."""

    cleaned = _clean_json_payload(payload)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise SchemaViolation(f"Model response is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise SchemaViolation("Model response is not a JSON object.")
    return data


def _clean_json_payload(payload: str) -> str:
    """Strip Markdown code blocks and find the first/last brace to extract JSON."""
    if not payload:
        return ""

    cleaned = payload.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]

    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]

    cleaned = cleaned.strip()

    start = cleaned.find("{")
    end = cleaned.rfind("}")

    if start != -1 and end != -1 and end > start:
        cleaned = cleaned[start : end + 1]

    return cleaned


__all__ = [
    "GeneratedExercise",
    "PRONUNCIATION_EXERCISE_SCHEMA",
    "MIN_EXERCISES",
    "MAX_EXERCISES",
    "MAX_PHRASE_TOKENS",
    "MAX_UNSPACED_CHARS",
    "count_tokens",
    "count_unspaced_chars",
    "parse_json_payload",
]
