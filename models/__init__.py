"""
Models package for the typing analytics engine.

This package contains the keystroke and result models, the per-test metrics
and mistake analysis, and the aggregate analytics across a user's history.
"""

from models.aggregate_analytics import AggregateAnalyticsService
from models.analytics_config import AnalyticsConfig
from models.keystroke import KeystrokeEvent
from models.typing_result import TypingTestResult

__all__ = [
    "AggregateAnalyticsService",
    "AnalyticsConfig",
    "KeystrokeEvent",
    "TypingTestResult",
]
