"""Analytics configuration passed explicitly into the aggregate services.

Defaults reproduce the thresholds used by the stats pages: a 10-test recency
window, a floor of 3 observations, ±10% for timing trends and ±25% for
mistake trends. Any field can be overridden through environment variables
named ``TYPING_ANALYTICS_<FIELD_NAME>`` (see ``AnalyticsConfig.from_env``).
"""

import logging
import os
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)

ENV_PREFIX = "TYPING_ANALYTICS_"


class ResultOrder(str, Enum):
    """Order in which a user's test results are handed to the aggregates."""

    NEWEST_FIRST = "newest_first"
    OLDEST_FIRST = "oldest_first"


class AnalyticsConfig(BaseModel):
    """Thresholds and windows for the aggregate analytics."""

    recent_test_window: int = Field(default=10, ge=1, description="Tests counted as 'recent'")
    min_sequence_occurrences: int = Field(
        default=3, ge=1, description="Observations needed before a sequence is reported"
    )
    min_recent_tests_for_trend: int = Field(
        default=3, ge=1, description="Recent tests needed before a trend is not 'stable'"
    )
    sequence_trend_threshold_pct: float = Field(default=10.0, ge=0.0)
    mistake_trend_threshold_pct: float = Field(default=25.0, ge=0.0)
    slow_sequence_candidates: int = Field(default=50, ge=1)
    aggregate_sequence_candidates: int = Field(default=100, ge=1)
    top_mistake_items: int = Field(default=10, ge=1)
    problematic_word_min_count: int = Field(default=1, ge=1)
    results_order: ResultOrder = ResultOrder.NEWEST_FIRST
    per_occurrence_samples: bool = False
    live_wpm_min_elapsed_ms: float = Field(default=100.0, ge=0.0)

    model_config = {
        "extra": "forbid",
        "frozen": True,
    }

    @model_validator(mode="after")
    def check_trend_window(self) -> "AnalyticsConfig":
        """A trend can never be reported if it needs more tests than the window holds."""
        if self.min_recent_tests_for_trend > self.recent_test_window:
            raise ValueError("min_recent_tests_for_trend must be <= recent_test_window")
        return self

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AnalyticsConfig":
        """Build a config from ``TYPING_ANALYTICS_*`` environment variables.

        Unset variables keep their defaults; values are validated by pydantic.
        """
        env = os.environ if environ is None else environ
        overrides: Dict[str, Any] = {}
        for name in cls.model_fields:
            value = env.get(f"{ENV_PREFIX}{name.upper()}")
            if value is not None:
                overrides[name] = value
        if overrides:
            logger.debug("Analytics config overrides from environment: %s", sorted(overrides))
        return cls.model_validate(overrides)
