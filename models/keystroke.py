"""Keystroke event model for keypresses recorded during a typing test."""

import logging
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

BACKSPACE_KEY = "Backspace"
TAB_KEY = "Tab"
SPACE_KEY = " "


class KeystrokeEvent(BaseModel):
    """Immutable record of one keypress.

    Produced by the input layer and consumed read-only by the metrics and
    mistake analysis code. Stored documents use camelCase field names
    (``wordIndex``, ``expectedChar``, ...); both spellings are accepted.
    """

    timestamp: float = Field(
        ..., ge=0.0, description="Monotonic milliseconds since the test started"
    )
    key: str = Field(..., description="Character typed, or a Backspace/Tab sentinel")
    word_index: int = Field(default=0, ge=0, description="Index of the target word")
    char_index: int = Field(default=0, ge=0, description="Position within the target word")
    expected_char: Optional[str] = Field(
        default=None, description="Character that should have been typed at this position"
    )
    was_correct: bool = False
    is_backspace: bool = False

    model_config = {
        "frozen": True,
        "extra": "ignore",
        "populate_by_name": True,
        "alias_generator": to_camel,
    }

    @field_validator("expected_char", mode="before")
    @classmethod
    def _empty_expected_char(cls, v: object) -> Optional[str]:
        """Treat an empty expected character as missing."""
        if v is None or v == "":
            return None
        return str(v)

    @property
    def is_character(self) -> bool:
        """True for a non-backspace entry of exactly one character (space included)."""
        return not self.is_backspace and len(self.key) == 1

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KeystrokeEvent":
        """Create a KeystrokeEvent from a stored document.

        A missing ``isBackspace`` flag is inferred from the Backspace sentinel
        key, as older records did not always carry it.
        """
        values = dict(data)
        if "isBackspace" not in values and "is_backspace" not in values:
            values["is_backspace"] = values.get("key") == BACKSPACE_KEY
            logger.debug("Inferred is_backspace=%s for legacy keystroke", values["is_backspace"])
        return cls.model_validate(values)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the camelCase names of the stored document."""
        return self.model_dump(by_alias=True)
