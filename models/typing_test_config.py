"""Typing test configuration: correction modes, content categories and labels."""

from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator
from pydantic.alias_generators import to_camel

CONTENT_LENGTH = "content-length"


class CorrectionMode(str, Enum):
    """How mistakes and corrections are handled while typing."""

    NORMAL = "normal"  # Mistakes allowed, backspace allowed
    SPEED = "speed"  # Space skips to the next word, no backspace
    STRICT = "strict"  # Incorrect keystrokes are blocked and counted


class ContentCategory(str, Enum):
    """Category of the text being typed."""

    QUOTE = "quote"
    PROSE = "prose"
    TECHNICAL = "technical"
    COMMON = "common"
    TIME_TRIAL = "time-trial"
    AI_PROSE = "ai-prose"


class TypingTestConfig(BaseModel):
    """Configuration of a single typing test, passed explicitly to the services."""

    duration: Union[int, Literal["content-length"]] = 30
    correction_mode: CorrectionMode = CorrectionMode.NORMAL
    test_content_id: str = ""
    content_category: Optional[ContentCategory] = None
    is_practice: bool = False
    practice_sequences: List[str] = Field(default_factory=list)
    user_labels: List[str] = Field(default_factory=list)
    is_time_trial: bool = False
    time_trial_id: Optional[str] = None

    model_config = {
        "extra": "forbid",
        "frozen": True,
        "populate_by_name": True,
        "alias_generator": to_camel,
    }

    @model_validator(mode="after")
    def check_duration_and_trial(self) -> "TypingTestConfig":
        """Validate the duration and the time-trial fields together."""
        if isinstance(self.duration, int) and self.duration <= 0:
            raise ValueError("duration must be a positive number of seconds or 'content-length'")
        if self.time_trial_id and not self.is_time_trial:
            raise ValueError("time_trial_id requires is_time_trial")
        return self

    @property
    def is_content_length(self) -> bool:
        """True when the test runs until the content is finished."""
        return self.duration == CONTENT_LENGTH

    @property
    def effective_correction_mode(self) -> CorrectionMode:
        """Time trials always run in strict mode."""
        if self.is_time_trial:
            return CorrectionMode.STRICT
        return self.correction_mode

    def auto_labels(self) -> List[str]:
        """Labels derived from the configuration itself."""
        labels: List[str] = []
        if self.is_content_length:
            labels.append("content-length-mode")
        else:
            labels.append(f"time-{self.duration}s")
        labels.append(f"correction-mode-{self.effective_correction_mode.value}")
        if self.content_category is not None:
            labels.append(self.content_category.value.lower())
        if self.is_practice:
            labels.append("practice-mode")
        return labels
