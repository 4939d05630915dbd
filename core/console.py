"""Levelled console output shared by the command line tools."""
from __future__ import annotations

from typing import TextIO
import sys


class Console:
    """Print tagged messages up to the configured verbosity.

    ``none`` silences everything and ``debug`` shows everything. Dry-run
    notices are printed whenever ``dry_run`` is set, whatever the level.
    """

    LEVELS = ("none", "error", "info", "debug")

    def __init__(self, level: str = "none", dry_run: bool = False):
        if level not in self.LEVELS:
            raise ValueError(
                f"Unknown log level '{level}'. Expected one of: {', '.join(self.LEVELS)}")
        self.level_name = level
        self.dry_run = dry_run

    @classmethod
    def from_flags(cls, level: str, *, verbose: bool = False, dry_run: bool = False) -> "Console":
        """Build a console from ``--log``; ``--verbose`` forces debug."""

        return cls("debug" if verbose else level, dry_run=dry_run)

    def enabled(self, level: str) -> bool:
        return self.LEVELS.index(level) <= self.LEVELS.index(self.level_name)

    @staticmethod
    def _emit(tag: str, message: str, stream: TextIO | None = None) -> None:
        print(f"[{tag}] {message}", file=stream if stream is not None else sys.stdout)

    def error(self, message: str) -> None:
        if self.enabled("error"):
            self._emit("ERROR", message, sys.stderr)

    def info(self, message: str) -> None:
        if self.enabled("info"):
            self._emit("INFO", message)

    def debug(self, message: str) -> None:
        if self.enabled("debug"):
            self._emit("DEBUG", message)

    def dry(self, message: str) -> None:
        if self.dry_run:
            self._emit("DRY", message)


__all__ = ["Console"]
