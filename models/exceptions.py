"""
Custom exceptions for the typing analytics engine.
"""


class AnalyticsError(Exception):
    """Base class for all analytics-related exceptions."""


class InvalidSequenceLengthError(AnalyticsError, ValueError):
    """Raised when an n-gram window size is not a positive integer."""
