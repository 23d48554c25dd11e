"""Tests for the TypingTestResult model."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from models.keystroke import KeystrokeEvent
from models.typing_result import ResultStatus, TypingTestResult


class TestTypingTestResult:
    """Test TypingTestResult construction, status changes and serialization."""

    def test_defaults(self) -> None:
        """A bare result is complete, has an id and a timezone-aware timestamp."""
        result = TypingTestResult()
        assert result.id
        assert result.status == ResultStatus.COMPLETE
        assert result.created_at.tzinfo is not None
        assert result.keystroke_timings == []
        assert result.has_keystrokes is False

    def test_has_keystrokes(self, make_result, type_text) -> None:
        """Results carrying keystroke evidence report it."""
        assert make_result(keystrokes=type_text("the")).has_keystrokes is True
        assert make_result().has_keystrokes is False

    def test_naive_created_at_is_utc(self) -> None:
        """Naive timestamps are read as UTC."""
        result = TypingTestResult(created_at=datetime(2024, 1, 2, 3, 4, 5))
        assert result.created_at == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    def test_negative_wpm_rejected(self) -> None:
        """Metric fields are non-negative."""
        with pytest.raises(ValidationError):
            TypingTestResult(wpm=-1)

    def test_mark_deleted_and_restore(self, make_result) -> None:
        """Soft delete returns a copy and can be undone."""
        result = make_result()
        deleted = result.mark_deleted()

        assert deleted.is_deleted
        assert not result.is_deleted
        assert deleted.id == result.id
        assert deleted.restore().status == ResultStatus.COMPLETE

    def test_from_dict_accepts_stored_document(self) -> None:
        """A camelCase document with legacy nulls loads."""
        result = TypingTestResult.from_dict(
            {
                "id": "abc",
                "userId": "u1",
                "createdAt": "2024-05-01T10:00:00Z",
                "duration": 30,
                "status": None,
                "targetWords": ["hi"],
                "typedWords": None,
                "wpm": 12,
                "accuracy": 100.0,
                "keystrokeTimings": [
                    {"timestamp": 0, "key": "h", "expectedChar": "h", "wasCorrect": True}
                ],
                "legacyField": "ignored",
            }
        )
        assert result.user_id == "u1"
        assert result.status == ResultStatus.COMPLETE
        assert result.typed_words == []
        assert result.keystroke_timings[0] == KeystrokeEvent(
            timestamp=0, key="h", expected_char="h", was_correct=True
        )

    def test_from_dict_wraps_validation_errors(self) -> None:
        """Invalid documents raise ValueError with context."""
        with pytest.raises(ValueError, match="Invalid test result data"):
            TypingTestResult.from_dict({"wpm": "fast"})

    def test_to_dict_uses_camel_case_and_drops_none(self, make_result) -> None:
        """Serialized documents use stored names and omit unset optionals."""
        result = make_result()
        data = result.to_dict()
        assert data["userId"] == "user-1"
        assert data["status"] == "COMPLETE"
        assert data["targetWords"] == ["the", "cat"]
        assert "timeTrialId" not in data
        assert TypingTestResult.from_dict(data) == result
