"""Exclusion patterns deciding which archive entries are dropped."""
from __future__ import annotations

from fnmatch import fnmatchcase
from typing import Iterable, Iterator, List

# Namespaces provided by the host process or pulled in transitively by the
# server API. They are never bundled into a shaded artifact.
DEFAULT_EXCLUSIONS: tuple[str, ...] = (
    "*exclude.jar",
    "com/github/angeschossen/",
    "org/spigotmc/",
    "org/bukkit/",
    "org/yaml/snakeyaml/",
    "com/google/",
    "net/md_5/bungee/",
    "org/apache/commons/",
    "mojang-translations/",
    "javax/annotation/",
    "org/joml/",
    "org/checkerframework/",
    "META-INF/proguard/",
    "META-INF/versions/",
    "META-INF/maven/com.google.code.findbugs/",
    "META-INF/maven/com.google.code.gson/",
    "META-INF/maven/com.google.errorprone/",
    "META-INF/maven/com.google.guava/",
    "META-INF/maven/net.md-5/",
    "META-INF/maven/org.joml/",
    "META-INF/maven/org.spigotmc/",
    "META-INF/maven/org.yaml/",
)

_GLOB_CHARS = frozenset("*?[")


def pattern_matches(pattern: str, path: str) -> bool:
    """Return ``True`` when *pattern* selects the entry *path*.

    ``*suffix`` matches any path ending with ``suffix``, ``prefix/`` matches
    any path below that directory and other glob patterns match the whole
    path. A plain string matches the exact path or anything below it.
    """

    if pattern.startswith("*") and not _GLOB_CHARS.intersection(pattern[1:]):
        return path.endswith(pattern[1:])
    if pattern.endswith("/") and not _GLOB_CHARS.intersection(pattern):
        return path.startswith(pattern)
    if _GLOB_CHARS.intersection(pattern):
        return fnmatchcase(path, pattern)
    return path == pattern or path.startswith(pattern + "/")


class PatternSet:
    """An ordered, de-duplicated set of exclusion patterns."""

    def __init__(self, patterns: Iterable[str] = ()) -> None:
        self._patterns: List[str] = []
        self.extend(patterns)

    def add(self, pattern: str) -> None:
        if not isinstance(pattern, str):
            raise TypeError("Exclusion patterns must be strings")
        text = pattern.strip()
        if text and text not in self._patterns:
            self._patterns.append(text)

    def extend(self, patterns: Iterable[str]) -> None:
        for pattern in patterns:
            self.add(pattern)

    def should_exclude(self, path: str) -> bool:
        return any(pattern_matches(pattern, path) for pattern in self._patterns)

    def matching_pattern(self, path: str) -> str | None:
        """Return the first pattern that excludes *path*, if any."""

        for pattern in self._patterns:
            if pattern_matches(pattern, path):
                return pattern
        return None

    @property
    def patterns(self) -> tuple[str, ...]:
        return tuple(self._patterns)

    def __contains__(self, pattern: object) -> bool:
        return pattern in self._patterns

    def __iter__(self) -> Iterator[str]:
        return iter(self._patterns)

    def __len__(self) -> int:
        return len(self._patterns)

    def __repr__(self) -> str:
        return f"PatternSet({self._patterns!r})"


__all__ = ["DEFAULT_EXCLUSIONS", "PatternSet", "pattern_matches"]
