"""Per-test typing metrics.

Pure functions that turn one test's target/typed word arrays and keystroke
events into WPM, accuracy, character comparisons and n-gram timings.

Conventions shared with the stored results:
- WPM uses 5 characters per word and is always a whole number.
- Percentages are rounded to one decimal place.
- Sequence timings are rounded to the nearest millisecond.
All rounding is half-up (2.5 -> 3), not Python's round-half-to-even.
"""

import math
import time
from collections import defaultdict
from enum import Enum
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from models.exceptions import InvalidSequenceLengthError
from models.keystroke import KeystrokeEvent

CHARS_PER_WORD = 5


class CharacterStatus(str, Enum):
    """Display status of one character of a target word."""

    CORRECT = "correct"
    INCORRECT = "incorrect"
    PENDING = "pending"


class CharacterComparison(BaseModel):
    """One character of a word comparison."""

    char: str
    status: CharacterStatus

    model_config = {"frozen": True}


class AccuracyResult(BaseModel):
    """Word and character accuracy for one test."""

    accuracy: float = Field(..., ge=0.0)
    per_character_accuracy: float = Field(..., ge=0.0)
    correct_count: int = Field(..., ge=0)
    incorrect_count: int = Field(..., ge=0)
    total_typed: int = Field(..., ge=0)

    model_config = {"frozen": True}


class SequenceTiming(BaseModel):
    """Average latency of one n-gram within a test."""

    sequence: str = Field(..., min_length=1)
    average_time: int = Field(..., description="Average ms from first to last keystroke")
    occurrences: int = Field(..., ge=1)

    model_config = {"frozen": True}


def round_half_up(value: float, digits: int = 0) -> float:
    """Round half away from zero for positive values (2.5 -> 3, 0.05 -> 0.1)."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def _word_at(words: Sequence[str], index: int) -> str:
    return words[index] if index < len(words) and words[index] else ""


def _correct_word_chars(target_words: Sequence[str], typed_words: Sequence[str]) -> int:
    """Characters of exactly-correct words, plus the space after each but the last word."""
    correct_chars = 0
    last_index = len(target_words) - 1
    for i in range(len(target_words)):
        target_word = _word_at(target_words, i)
        if target_word == _word_at(typed_words, i):
            correct_chars += len(target_word)
            if i < last_index:
                correct_chars += 1
    return correct_chars


def calculate_wpm(
    target_words: Sequence[str], typed_words: Sequence[str], duration_seconds: float
) -> int:
    """Calculate words per minute counting only correctly typed words.

    Args:
        target_words: Words the user was asked to type
        typed_words: Words the user typed, parallel to ``target_words``
        duration_seconds: Test duration in seconds

    Returns:
        WPM rounded to a whole number, or 0 when the duration is not positive
    """
    if duration_seconds <= 0:
        return 0
    words = _correct_word_chars(target_words, typed_words) / CHARS_PER_WORD
    minutes = duration_seconds / 60
    return int(round_half_up(words / minutes))


def calculate_accuracy(
    target_words: Sequence[str],
    typed_words: Sequence[str],
    is_strict_or_time_trial: bool = False,
    strict_mode_errors: int = 0,
) -> AccuracyResult:
    """Calculate word accuracy and per-character accuracy.

    Untyped (empty) words are skipped entirely. In strict and time-trial
    tests incorrect keystrokes never reach the typed text, so both values are
    reported as the error rate ``strict_mode_errors / characters typed``.
    """
    correct_count = 0
    incorrect_count = 0
    correct_chars = 0
    total_chars = 0

    for i in range(len(target_words)):
        target_word = _word_at(target_words, i)
        typed_word = _word_at(typed_words, i)
        if not typed_word:
            continue

        if target_word == typed_word:
            correct_count += 1
        else:
            incorrect_count += 1

        positions = max(len(target_word), len(typed_word))
        total_chars += positions
        correct_chars += sum(
            1
            for j in range(min(len(target_word), len(typed_word)))
            if target_word[j] == typed_word[j]
        )

    total_typed = correct_count + incorrect_count

    if is_strict_or_time_trial:
        typed_chars = sum(len(word) for word in typed_words[:total_typed] if word)
        error_rate = strict_mode_errors / typed_chars * 100 if typed_chars > 0 else 0.0
        accuracy = error_rate
        per_character_accuracy = error_rate
    else:
        accuracy = correct_count / total_typed * 100 if total_typed > 0 else 0.0
        per_character_accuracy = correct_chars / total_chars * 100 if total_chars > 0 else 0.0

    return AccuracyResult(
        accuracy=round_half_up(accuracy, 1),
        per_character_accuracy=round_half_up(per_character_accuracy, 1),
        correct_count=correct_count,
        incorrect_count=incorrect_count,
        total_typed=total_typed,
    )


def has_input_error(current_input: str, target: str) -> bool:
    """True if any typed character differs from the target at the same position."""
    for i, char in enumerate(current_input):
        if i >= len(target) or char != target[i]:
            return True
    return False


def compare_words(target: str, typed: str) -> List[CharacterComparison]:
    """Compare a typed word to its target character by character.

    The result always has ``len(target)`` entries; characters typed past the
    end of the target are not represented. Incorrect positions show the
    character that was typed.
    """
    result: List[CharacterComparison] = []
    for i, target_char in enumerate(target):
        if i >= len(typed):
            result.append(CharacterComparison(char=target_char, status=CharacterStatus.PENDING))
        elif typed[i] == target_char:
            result.append(CharacterComparison(char=target_char, status=CharacterStatus.CORRECT))
        else:
            result.append(CharacterComparison(char=typed[i], status=CharacterStatus.INCORRECT))
    return result


def normalize_typed_words(target_words: Sequence[str], completed_words: Sequence[str]) -> List[str]:
    """Pad the typed words with empty strings up to the number of target words."""
    result = list(completed_words)
    while len(result) < len(target_words):
        result.append("")
    return result


def validate_sequence_length(sequence_length: int) -> None:
    """Raise InvalidSequenceLengthError unless ``sequence_length`` is at least 1."""
    if sequence_length < 1:
        raise InvalidSequenceLengthError(
            f"sequence_length must be a positive integer, got {sequence_length}"
        )


def collect_sequence_samples(
    keystrokes: Sequence[KeystrokeEvent], sequence_length: int
) -> Dict[str, List[float]]:
    """Collect every latency sample per n-gram, in first-seen order.

    Only single-character, non-backspace keystrokes take part (space does).
    Each window of ``sequence_length`` consecutive keystrokes is one sample,
    timed from its first to its last keystroke.

    Raises:
        InvalidSequenceLengthError: If ``sequence_length`` is less than 1
    """
    validate_sequence_length(sequence_length)
    typed = [k for k in keystrokes if k.is_character]
    samples: Dict[str, List[float]] = defaultdict(list)
    for i in range(len(typed) - sequence_length + 1):
        window = typed[i : i + sequence_length]
        sequence = "".join(k.key for k in window)
        samples[sequence].append(window[-1].timestamp - window[0].timestamp)
    return dict(samples)


def calculate_sequence_timings(
    keystrokes: Sequence[KeystrokeEvent],
    target_words: Sequence[str],
    sequence_length: int,
    top_n: int = 10,
) -> List[SequenceTiming]:
    """Return the ``top_n`` slowest n-grams of one test.

    ``target_words`` is accepted for call-site symmetry with the other
    per-test metrics; timings come from the keys actually pressed.
    """
    samples = collect_sequence_samples(keystrokes, sequence_length)
    timings = [
        SequenceTiming(
            sequence=sequence,
            average_time=int(round_half_up(sum(times) / len(times))),
            occurrences=len(times),
        )
        for sequence, times in samples.items()
    ]
    timings.sort(key=lambda t: t.average_time, reverse=True)
    return timings[:top_n]


def calculate_live_wpm(
    target_words: Sequence[str],
    completed_words: Sequence[str],
    current_input: str,
    current_word_index: int,
    start_time_ms: float,
    now_ms: Optional[float] = None,
    min_elapsed_ms: float = 100.0,
) -> float:
    """WPM of an in-progress test, for the live speedometer.

    Completed words count like in ``calculate_wpm``; the word being typed
    adds its correct characters so far. Returns 0 during the first
    ``min_elapsed_ms`` to avoid early spikes.

    Args:
        now_ms: Current time on the same clock as ``start_time_ms``;
            defaults to ``time.perf_counter()`` in milliseconds
    """
    if now_ms is None:
        now_ms = time.perf_counter() * 1000
    elapsed_ms = now_ms - start_time_ms
    if elapsed_ms < min_elapsed_ms:
        return 0.0

    correct_chars = 0
    last_index = len(target_words) - 1
    for i, typed_word in enumerate(completed_words):
        target_word = _word_at(target_words, i)
        if typed_word == target_word:
            correct_chars += len(target_word)
            if i < last_index:
                correct_chars += 1

    current_target = _word_at(target_words, current_word_index)
    for j in range(min(len(current_input), len(current_target))):
        if current_input[j] == current_target[j]:
            correct_chars += 1

    minutes = elapsed_ms / 60000
    wpm = (correct_chars / CHARS_PER_WORD) / minutes
    return max(0.0, wpm)
