"""Prompt construction stage for the pronunciation pipeline.

Turns the song, its lyrics and the learner's vocabulary into the single
natural-language prompt sent to the generative model.
"""

from __future__ import annotations

import json
import logging
import re

from .types import Difficulty, ExerciseRequest, SongSnapshot

logger = logging.getLogger("songlingo.pipelines.pronunciation")

DIFFICULTY_GUIDELINES = {
    Difficulty.BEGINNER: "Simple vocabulary, basic sounds, clear pronunciation patterns",
    Difficulty.INTERMEDIATE: "Moderate vocabulary, some challenging sounds, rhythm patterns",
    Difficulty.ADVANCED: "Complex vocabulary, difficult sounds, advanced pronunciation features",
}

_WORD_PATTERN = re.compile(r"\w+", re.UNICODE)


def lyric_words(lyrics: str) -> set[str]:
    return {match.group(0).lower() for match in _WORD_PATTERN.finditer(lyrics)}


def _vocabulary_payload(request: ExerciseRequest, lyrics: str) -> list[dict[str, object]]:
    in_song = lyric_words(lyrics)
    payload = []
    for entry in request.vocabulary:
        payload.append(
            {
                "user_vocabulary_id": entry.vocabulary_record_id,
                "word": entry.word,
                "translation": entry.translation,
                "mastery_score": entry.mastery_score,
                "struggling": entry.is_struggling,
                "in_song": entry.word.lower() in in_song
                or entry.word.lower() in lyrics.lower(),
            }
        )
    return payload


def _truncate(value: str, max_length: int = 240) -> str:
    if len(value) <= max_length:
        return value
    return value[: max_length - 3] + "..."


def build_exercise_prompt(request: ExerciseRequest, song: SongSnapshot) -> str:
    """Render the generation prompt for one request."""

    vocabulary = _vocabulary_payload(request, song.lyrics)
    struggling = [v["word"] for v in vocabulary if v["struggling"]]
    in_song = [v["word"] for v in vocabulary if v["in_song"]]
    guidelines = "\n".join(
        f"- {level.value.capitalize()}: {text}" for level, text in DIFFICULTY_GUIDELINES.items()
    )

    prompt = f"""You are a pronunciation teacher creating exercises for {request.language} language learners.

Song: "{song.title}" by {song.artist}
Difficulty: {request.difficulty.value}
User's vocabulary: {json.dumps(vocabulary, ensure_ascii=False)}
Struggling words (mastery_score < 50): {", ".join(struggling) or "none"}
Vocabulary words that appear in the lyrics: {", ".join(in_song) or "none"}

Lyrics:
{song.lyrics}

Create 5-8 pronunciation exercises prioritizing, in this order:
1. **User's struggling words** (mastery_score < 50)
2. **Words from the song lyrics** that appear in the user's vocabulary
3. **Common pronunciation challenges** for {request.language}
4. **Difficulty-appropriate phonetic patterns**

DIFFICULTY GUIDELINES:
{guidelines}

For each exercise, provide:
- word_or_phrase: the target word or a short phrase of 1 to 3 words. Never a full sentence.
  For languages written without spaces, at most 10 characters.
- phonetic_transcription: IPA notation (can be approximate)
- context_sentence: a different, longer example sentence that uses the word or phrase
- user_vocabulary_id: only when the word comes from the user's vocabulary, copied exactly from the list above

Return the exercises through the provided tool, matching its JSON schema."""

    logger.info(
        "Prompt generated song=%s difficulty=%s vocabulary=%s struggling=%s\n%s",
        request.song_id,
        request.difficulty.value,
        len(vocabulary),
        len(struggling),
        _truncate(prompt, 500),
    )
    return prompt


__all__ = ["build_exercise_prompt", "lyric_words", "DIFFICULTY_GUIDELINES"]
