"""Debug utilities for controlling diagnostic output of the analytics services.

Two modes are supported, selected by the TYPING_ANALYTICS_DEBUG_MODE
environment variable: "quiet" sends messages to the logger at DEBUG level,
"loud" prints them to stdout.
"""

import logging
import os
from typing import IO, Optional

DEBUG_MODE_ENV = "TYPING_ANALYTICS_DEBUG_MODE"
_MODES = ("quiet", "loud")


class DebugUtil:
    """Route debug messages to the logger or to stdout."""

    def __init__(self, mode: Optional[str] = None) -> None:
        """Initialize from ``mode`` or, when omitted, from the environment.

        Unknown values fall back to "quiet".
        """
        if mode is None:
            mode = os.environ.get(DEBUG_MODE_ENV, "quiet")
        self._mode = self._normalize(mode)

        self._logger = logging.getLogger(self.__class__.__name__)
        if not self._logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(
                logging.Formatter(
                    fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )
            self._logger.addHandler(handler)
            self._logger.setLevel(logging.DEBUG)

    @staticmethod
    def _normalize(mode: str) -> str:
        mode = mode.lower()
        return mode if mode in _MODES else "quiet"

    def debug_mode(self) -> str:
        """Get the current debug mode ("quiet" or "loud")."""
        return self._mode

    def debugMessage(self, *args: object, file: Optional[IO[str]] = None) -> None:
        """Output a debug message according to the current mode.

        Args:
            *args: Message parts, joined with spaces.
            file: Stream for loud mode; defaults to stdout.
        """
        if self._mode == "loud":
            print("[DEBUG]", *args, file=file)
            return
        message = " ".join(str(arg) for arg in args)
        if message:
            self._logger.debug(message)

    def set_mode(self, mode: str) -> None:
        """Change the debug mode; invalid values become "quiet"."""
        self._mode = self._normalize(mode)

    def is_loud(self) -> bool:
        return self._mode == "loud"

    def is_quiet(self) -> bool:
        return self._mode == "quiet"
