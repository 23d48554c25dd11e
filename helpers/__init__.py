"""Helper utilities shared by the analytics services."""

from .debug_util import DebugUtil  # noqa: F401
