"""Merge dependency archives into one artifact with relocated namespaces."""

from .config import DuplicatePolicy, DuplicateRule, ShadeConfiguration, load_shade_configuration
from .engine import ArchiveSource, EngineState, MergedArchive, ShadeEngine
from .errors import (
    ArchiveReadError,
    ArchiveWriteError,
    DuplicateEntryError,
    PackagingError,
    RelocationConflict,
    RelocationOverflowError,
)
from .naming import ArchiveNamer, ProjectIdentity, compute_name
from .patterns import DEFAULT_EXCLUSIONS, PatternSet
from .relocation import RelocationMap, RelocationRule
from .cli import main

__all__ = [
    "ArchiveNamer",
    "ArchiveReadError",
    "ArchiveSource",
    "ArchiveWriteError",
    "DEFAULT_EXCLUSIONS",
    "DuplicateEntryError",
    "DuplicatePolicy",
    "DuplicateRule",
    "EngineState",
    "MergedArchive",
    "PackagingError",
    "PatternSet",
    "ProjectIdentity",
    "RelocationConflict",
    "RelocationOverflowError",
    "RelocationMap",
    "RelocationRule",
    "ShadeConfiguration",
    "ShadeEngine",
    "compute_name",
    "load_shade_configuration",
    "main",
]
