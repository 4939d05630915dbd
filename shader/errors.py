"""Exceptions raised while producing a shaded archive."""
from __future__ import annotations

from typing import Sequence


class PackagingError(RuntimeError):
    """Base class for every fatal packaging failure."""


class ArchiveReadError(PackagingError):
    """Raised when an input archive cannot be opened or is corrupt."""

    def __init__(self, path: object, reason: str):
        super().__init__(f"Cannot read archive '{path}': {reason}")
        self.path = path
        self.reason = reason


class ArchiveWriteError(PackagingError):
    """Raised when the output archive cannot be written."""

    def __init__(self, path: object, reason: str):
        super().__init__(f"Cannot write archive '{path}': {reason}")
        self.path = path
        self.reason = reason


class DuplicateEntryError(PackagingError):
    """Raised when two inputs provide the same path under the ``fail`` policy."""

    def __init__(self, path: str, source: object | None = None):
        message = f"Duplicate entry '{path}'"
        if source is not None:
            message = f"{message} (from '{source}')"
        super().__init__(message)
        self.path = path
        self.source = source


class RelocationOverflowError(PackagingError):
    """Raised when relocating an entry pushes a class constant past its size limit."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Cannot relocate '{path}': {reason}")
        self.path = path
        self.reason = reason


class RelocationConflict(PackagingError):
    """Raised when relocation rules disagree on where a namespace should go."""

    def __init__(self, namespace: str, targets: Sequence[str]):
        joined = ", ".join(f"'{target}'" for target in targets)
        super().__init__(f"Namespace '{namespace}' is relocated to more than one target: {joined}")
        self.namespace = namespace
        self.targets = tuple(targets)


__all__ = [
    "ArchiveReadError",
    "ArchiveWriteError",
    "DuplicateEntryError",
    "PackagingError",
    "RelocationConflict",
    "RelocationOverflowError",
]
