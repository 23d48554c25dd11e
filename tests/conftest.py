"""Pytest configuration and shared fixtures for the analytics test suite."""

import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

import pytest

project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from models.keystroke import BACKSPACE_KEY, KeystrokeEvent  # noqa: E402
from models.typing_result import ResultStatus, TypingTestResult  # noqa: E402

FIXED_NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

KeyTiming = Tuple[str, float]


def _type_text(
    text: str,
    expected: Optional[str] = None,
    start: float = 0.0,
    interval: float = 100.0,
) -> List[KeystrokeEvent]:
    """Keystrokes for ``text`` typed at a fixed interval, checked against ``expected``."""
    expected = text if expected is None else expected
    events: List[KeystrokeEvent] = []
    for i, key in enumerate(text):
        expected_char = expected[i] if i < len(expected) else None
        events.append(
            KeystrokeEvent(
                timestamp=start + i * interval,
                key=key,
                word_index=0,
                char_index=i,
                expected_char=expected_char,
                was_correct=key == expected_char,
            )
        )
    return events


def _timed_keys(pairs: Sequence[KeyTiming], wrong: Sequence[int] = ()) -> List[KeystrokeEvent]:
    """Keystrokes from (key, timestamp) pairs; indices in ``wrong`` are incorrect."""
    events: List[KeystrokeEvent] = []
    for i, (key, timestamp) in enumerate(pairs):
        is_backspace = key == BACKSPACE_KEY
        events.append(
            KeystrokeEvent(
                timestamp=timestamp,
                key=key,
                char_index=i,
                expected_char=None if is_backspace else key,
                was_correct=is_backspace or i not in wrong,
                is_backspace=is_backspace,
            )
        )
    return events


def _make_result(
    target_words: Optional[List[str]] = None,
    typed_words: Optional[List[str]] = None,
    keystrokes: Optional[List[KeystrokeEvent]] = None,
    created_at: Optional[datetime] = None,
    status: ResultStatus = ResultStatus.COMPLETE,
) -> TypingTestResult:
    target = ["the", "cat"] if target_words is None else target_words
    return TypingTestResult(
        user_id="user-1",
        created_at=created_at or FIXED_NOW,
        duration=30,
        status=status,
        target_words=target,
        typed_words=list(target) if typed_words is None else typed_words,
        keystroke_timings=keystrokes or [],
    )


@pytest.fixture
def type_text() -> Callable[..., List[KeystrokeEvent]]:
    """Factory for keystrokes typed at a fixed interval."""
    return _type_text


@pytest.fixture
def timed_keys() -> Callable[..., List[KeystrokeEvent]]:
    """Factory for keystrokes with explicit timestamps."""
    return _timed_keys


@pytest.fixture
def make_result() -> Callable[..., TypingTestResult]:
    """Factory for completed test results."""
    return _make_result


@pytest.fixture
def fixed_now() -> datetime:
    """A fixed reference time for date filters."""
    return FIXED_NOW
