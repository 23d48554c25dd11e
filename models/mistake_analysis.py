"""Per-test mistake analysis.

Extracts character substitutions (typed X instead of Y), n-gram sequences
that contain mistakes, and commonly mistyped whole words from one test.
"""

from collections import Counter, defaultdict
from typing import Dict, List, Sequence, Set, Tuple

from pydantic import BaseModel, Field

from models.keystroke import SPACE_KEY, TAB_KEY, KeystrokeEvent
from models.typing_metrics import round_half_up, validate_sequence_length

TOP_ITEMS = 10
MISTAKE_SEQUENCE_LENGTHS = (2, 3)


class CharacterSubstitution(BaseModel):
    """Typed ``actual`` where ``expected`` was wanted, ``count`` times."""

    expected: str
    actual: str
    count: int = Field(..., ge=1)

    model_config = {"frozen": True}


class MistakeSequence(BaseModel):
    """An n-gram of typed keys that contained at least one incorrect keystroke."""

    sequence: str = Field(..., min_length=1)
    frequency: int = Field(..., ge=1)
    mistake_positions: List[int] = Field(default_factory=list)

    model_config = {"frozen": True}


class MistypedWord(BaseModel):
    """A target word and the wrong text typed for it."""

    target: str
    typed: str
    count: int = Field(..., ge=1)

    model_config = {"frozen": True}


class MistakeAnalysis(BaseModel):
    """Complete mistake analysis of one test."""

    total_mistakes: int = Field(default=0, ge=0)
    total_corrections: int = Field(default=0, ge=0)
    mistake_rate: float = Field(default=0.0, ge=0.0, description="% of keystrokes that were mistakes")
    character_substitutions: List[CharacterSubstitution] = Field(default_factory=list)
    mistake_sequences: List[MistakeSequence] = Field(default_factory=list)
    common_mistyped_words: List[MistypedWord] = Field(default_factory=list)

    model_config = {"frozen": True}


def analyze_mistakes(
    keystrokes: Sequence[KeystrokeEvent],
    target_words: Sequence[str],
    typed_words: Sequence[str],
) -> MistakeAnalysis:
    """Analyze all mistakes of one test.

    A backspace counts as a correction. Any other incorrect keystroke counts
    as a mistake, except space and Tab, which skip words rather than confuse
    characters and so are left out of the substitution tally.
    """
    total_mistakes = 0
    total_corrections = 0

    # expected char -> typed char -> count, grouped by first-seen expected char
    substitutions: Dict[str, Counter] = defaultdict(Counter)
    for keystroke in keystrokes:
        if keystroke.is_backspace:
            total_corrections += 1
        elif not keystroke.was_correct and keystroke.key not in (SPACE_KEY, TAB_KEY):
            total_mistakes += 1
            if keystroke.expected_char and keystroke.key:
                substitutions[keystroke.expected_char][keystroke.key] += 1

    word_mistakes: Dict[str, Counter] = defaultdict(Counter)
    for target, typed in zip(target_words, typed_words):
        if target and typed and target != typed:
            word_mistakes[target][typed] += 1

    character_substitutions = [
        CharacterSubstitution(expected=expected, actual=actual, count=count)
        for expected, actuals in substitutions.items()
        for actual, count in actuals.items()
    ]
    character_substitutions.sort(key=lambda s: s.count, reverse=True)

    common_mistyped_words = [
        MistypedWord(target=target, typed=typed, count=count)
        for target, typed_counts in word_mistakes.items()
        for typed, count in typed_counts.items()
    ]
    common_mistyped_words.sort(key=lambda w: w.count, reverse=True)

    mistake_sequences: List[MistakeSequence] = []
    for length in MISTAKE_SEQUENCE_LENGTHS:
        mistake_sequences.extend(find_mistake_sequences(keystrokes, length))
    mistake_sequences.sort(key=lambda s: s.frequency, reverse=True)

    total_keystrokes = len(keystrokes)
    mistake_rate = total_mistakes / total_keystrokes * 100 if total_keystrokes > 0 else 0.0

    return MistakeAnalysis(
        total_mistakes=total_mistakes,
        total_corrections=total_corrections,
        mistake_rate=round_half_up(mistake_rate, 1),
        character_substitutions=character_substitutions[:TOP_ITEMS],
        mistake_sequences=mistake_sequences[:TOP_ITEMS],
        common_mistyped_words=common_mistyped_words[:TOP_ITEMS],
    )


def find_mistake_sequences(
    keystrokes: Sequence[KeystrokeEvent], sequence_length: int
) -> List[MistakeSequence]:
    """Find n-grams of typed keys that contain at least one incorrect keystroke.

    ``mistake_positions`` is the union, over every occurrence of the same
    text, of the in-window indices that were incorrect.
    """
    validate_sequence_length(sequence_length)
    typed = [k for k in keystrokes if k.is_character]
    if len(typed) < sequence_length:
        return []

    counts: Dict[str, int] = {}
    positions: Dict[str, Set[int]] = {}
    for i in range(len(typed) - sequence_length + 1):
        window = typed[i : i + sequence_length]
        wrong = [idx for idx, k in enumerate(window) if not k.was_correct]
        if not wrong:
            continue
        sequence = "".join(k.key for k in window)
        counts[sequence] = counts.get(sequence, 0) + 1
        positions.setdefault(sequence, set()).update(wrong)

    return [
        MistakeSequence(
            sequence=sequence, frequency=count, mistake_positions=sorted(positions[sequence])
        )
        for sequence, count in counts.items()
    ]


def get_mistake_sequences_for_practice(
    analysis: MistakeAnalysis, max_sequences: int = 5
) -> List[str]:
    """Pick the character sequences most worth drilling in a targeted practice test.

    The top three substitutions become ``expected + actual`` pairs weighted
    double; mistake sequences are weighted by frequency. Duplicates are
    dropped, keeping the highest-scoring occurrence.
    """
    candidates: List[Tuple[str, int]] = [
        (sub.expected + sub.actual, sub.count * 2) for sub in analysis.character_substitutions[:3]
    ]
    candidates.extend((seq.sequence, seq.frequency) for seq in analysis.mistake_sequences)
    candidates.sort(key=lambda c: c[1], reverse=True)

    result: List[str] = []
    for text, _score in candidates:
        if len(result) >= max_sequences:
            break
        if text not in result:
            result.append(text)
    return result
