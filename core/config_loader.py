"""Read configuration mappings from TOML, JSON and YAML files."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Tuple

import json
import tomllib

import yaml


# suffix -> (opened in binary mode, decoder)
_DECODERS: Dict[str, Tuple[bool, Callable[[Any], Any]]] = {
    ".toml": (True, tomllib.load),
    ".json": (False, json.load),
    ".yaml": (False, yaml.safe_load),
    ".yml": (False, yaml.safe_load),
}

SUPPORTED_SUFFIXES: Tuple[str, ...] = tuple(sorted(_DECODERS))


def load_config_file(path: Path) -> Mapping[str, Any]:
    """Decode the mapping stored in *path*.

    An empty document yields ``{}``. Syntax errors from every format are
    reported as :class:`ValueError` naming the file.
    """

    try:
        binary, decode = _DECODERS[path.suffix.lower()]
    except KeyError:
        raise ValueError(
            f"Cannot load '{path}': expected one of {', '.join(SUPPORTED_SUFFIXES)}") from None

    try:
        if binary:
            with path.open("rb") as handle:
                document = decode(handle)
        else:
            with path.open("r", encoding="utf-8") as handle:
                document = decode(handle)
    except yaml.YAMLError as exc:
        raise ValueError(f"Cannot parse '{path}': {exc}") from exc

    if document is None:
        return {}
    if not isinstance(document, Mapping):
        raise TypeError(
            f"Configuration file '{path}' must hold a mapping, not {type(document).__name__}")
    return document


def load_config_files(paths: Iterable[Path]) -> Dict[str, Any]:
    """Layer every file in *paths*; later files win key by key."""

    layered: Dict[str, Any] = {}
    for path in paths:
        layered = merge_mappings(layered, load_config_file(Path(path)))
    return layered


def merge_mappings(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in overlay.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            value = merge_mappings(current, value)
        merged[key] = value
    return merged


def normalize_string_list(value: Any, *, field_name: str | None = None) -> List[str]:
    """Return *value* as a list of stripped, non-blank strings.

    A single string counts as a one item list; ``None`` as an empty one.
    """

    label = f"{field_name} " if field_name else ""
    if value is None:
        return []
    items = [value] if isinstance(value, str) else value
    if not isinstance(items, (list, tuple)):
        raise TypeError(f"{label}must be a string or a list of strings")

    result: List[str] = []
    for item in items:
        if not isinstance(item, str):
            raise TypeError(f"{label}entries must be strings, got {type(item).__name__}")
        if item.strip():
            result.append(item.strip())
    return result


__all__ = [
    "SUPPORTED_SUFFIXES",
    "load_config_file",
    "load_config_files",
    "merge_mappings",
    "normalize_string_list",
]
