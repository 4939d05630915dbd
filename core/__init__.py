"""Shared core utilities for archive handling, configuration and console output."""

from .archive import ArchiveConsole, ArchiveEntry, ArchiveManager
from .config_loader import (
    load_config_file,
    load_config_files,
    merge_mappings,
    normalize_string_list,
)
from .console import Console

__all__ = [
    "ArchiveConsole",
    "ArchiveEntry",
    "ArchiveManager",
    "load_config_file",
    "load_config_files",
    "merge_mappings",
    "normalize_string_list",
    "Console",
]
