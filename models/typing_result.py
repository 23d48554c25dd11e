"""Typing test result model.

A result is created once when a test completes and is never edited
afterwards, except for its status: deleting a result only flips it to
``DELETED`` so it can be restored later.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

from models.keystroke import KeystrokeEvent


class ResultStatus(str, Enum):
    """Lifecycle status of a stored result."""

    COMPLETE = "COMPLETE"
    DELETED = "DELETED"


class TypingTestResult(BaseModel):
    """One completed typing test, as stored for a user."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    duration: float = Field(default=0.0, ge=0.0, description="Test duration in seconds")
    status: ResultStatus = ResultStatus.COMPLETE

    test_content_id: str = ""
    target_words: List[str] = Field(default_factory=list)
    typed_words: List[str] = Field(default_factory=list)
    iteration: Optional[int] = Field(default=None, ge=1)

    wpm: int = Field(default=0, ge=0)
    accuracy: float = Field(default=0.0, ge=0.0)
    per_character_accuracy: Optional[float] = Field(default=None, ge=0.0)
    correct_word_count: int = Field(default=0, ge=0)
    incorrect_word_count: int = Field(default=0, ge=0)
    total_words: int = Field(default=0, ge=0)
    total_typed_words: int = Field(default=0, ge=0)

    keystroke_timings: List[KeystrokeEvent] = Field(default_factory=list)

    is_practice: bool = False
    practice_sequences: Optional[List[str]] = None
    mistake_count: Optional[int] = Field(default=None, ge=0)
    correction_count: Optional[int] = Field(default=None, ge=0)
    character_substitutions: Optional[Dict[str, List[str]]] = None
    labels: Optional[List[str]] = None

    is_time_trial: bool = False
    time_trial_id: Optional[str] = None
    completion_time: Optional[float] = Field(default=None, ge=0.0)
    previous_best_time: Optional[float] = Field(default=None, ge=0.0)

    model_config = {
        "frozen": True,
        "extra": "ignore",
        "populate_by_name": True,
        "alias_generator": to_camel,
    }

    @field_validator("status", mode="before")
    @classmethod
    def _default_status(cls, v: object) -> object:
        """Legacy records without a status are complete."""
        return ResultStatus.COMPLETE if v is None else v

    @field_validator("target_words", "typed_words", mode="before")
    @classmethod
    def _none_words(cls, v: object) -> object:
        return [] if v is None else v

    @field_validator("keystroke_timings", mode="before")
    @classmethod
    def _none_keystrokes(cls, v: object) -> object:
        return [] if v is None else v

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, v: datetime) -> datetime:
        """Interpret naive timestamps as UTC so date filters can compare them."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def is_deleted(self) -> bool:
        """True when the result has been soft-deleted."""
        return self.status == ResultStatus.DELETED

    @property
    def has_keystrokes(self) -> bool:
        return bool(self.keystroke_timings)

    def mark_deleted(self) -> "TypingTestResult":
        """Return a soft-deleted copy of this result."""
        return self.model_copy(update={"status": ResultStatus.DELETED})

    def restore(self) -> "TypingTestResult":
        """Return a restored (complete) copy of this result."""
        return self.model_copy(update={"status": ResultStatus.COMPLETE})

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a stored document with camelCase keys, dropping unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TypingTestResult":
        """Create a TypingTestResult from a stored document.

        Raises:
            ValueError: If the document does not describe a valid result.
        """
        try:
            return cls.model_validate(d)
        except ValueError as e:
            raise ValueError(f"Invalid test result data: {str(e)}") from e
