"""Service initialization module.

Factory helpers to create and wire services with their dependencies.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Tuple

from helpers.debug_util import DebugUtil
from models.analytics_config import AnalyticsConfig

if TYPE_CHECKING:  # Avoid import cycles at runtime
    from models.aggregate_analytics import AggregateAnalyticsService
    from services.completion_service import CompletionService


def init_services(
    config: Optional[AnalyticsConfig] = None,
) -> Tuple["AggregateAnalyticsService", "CompletionService"]:
    """Initialize and return the analytics and completion services.

    Both share one DebugUtil. Without an explicit config the thresholds are
    read from the environment.

    Example:
        analytics, completion = init_services().
    """
    from models.aggregate_analytics import AggregateAnalyticsService
    from services.completion_service import CompletionService

    config = config or AnalyticsConfig.from_env()
    debug_util = DebugUtil()
    analytics = AggregateAnalyticsService(config, debug_util)
    completion = CompletionService(config, debug_util)
    return analytics, completion
