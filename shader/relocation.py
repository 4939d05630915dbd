"""Namespace relocation of archive entry paths and payloads."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Pattern, Tuple
import re

from .classfile import ConstantTooLongError, rewrite_constant_pool
from .errors import RelocationConflict, RelocationOverflowError

SERVICES_PREFIX = "META-INF/services/"

_SEPARATORS = "./"


def _normalize(namespace: str, separator: str) -> str:
    other = "/" if separator == "." else "."
    return namespace.strip().replace(other, separator).strip(separator)


def is_text_payload(content: bytes) -> bool:
    """Return ``True`` when *content* decodes as UTF-8."""

    try:
        content.decode("utf-8")
    except UnicodeDecodeError:
        return False
    return True


@dataclass(frozen=True, slots=True)
class RelocationRule:
    """Move everything under ``from_namespace`` to ``to_namespace``.

    A trailing separator on ``from_namespace`` (``com.foo.`` or ``com/foo/``)
    limits the rule to whole segments, so ``com.foobar`` is left alone.
    """

    from_namespace: str
    to_namespace: str

    def __post_init__(self) -> None:
        if not _normalize(self.from_namespace, "."):
            raise ValueError("Relocation source namespace cannot be empty")
        if not _normalize(self.to_namespace, "."):
            raise ValueError(
                f"Relocation target for '{self.from_namespace}' cannot be empty")

    @property
    def segment_bounded(self) -> bool:
        return self.from_namespace.strip().endswith(tuple(_SEPARATORS))

    @property
    def source_dotted(self) -> str:
        return _normalize(self.from_namespace, ".")

    @property
    def source_path(self) -> str:
        return _normalize(self.from_namespace, "/")

    @property
    def target_dotted(self) -> str:
        return _normalize(self.to_namespace, ".")

    @property
    def target_path(self) -> str:
        return _normalize(self.to_namespace, "/")

    def prefixes(self, separator: str) -> Tuple[str, str]:
        """Return the ``(source, target)`` prefix pair matched in *separator* form."""

        source = _normalize(self.from_namespace, separator)
        target = _normalize(self.to_namespace, separator)
        if self.segment_bounded:
            return source + separator, target + separator
        return source, target


class RelocationMap:
    """Ordered relocation rules; the longest matching source namespace wins."""

    def __init__(self, rules: Iterable[RelocationRule] = ()) -> None:
        self._rules: List[RelocationRule] = []
        self._compiled: Tuple[Pattern[bytes], Dict[bytes, bytes]] | None = None
        for rule in rules:
            self.add(rule)

    def add(self, rule: RelocationRule) -> None:
        source = rule.prefixes("/")[0]
        for existing in self._rules:
            if existing.prefixes("/")[0] != source:
                continue
            if existing.prefixes("/")[1] != rule.prefixes("/")[1]:
                raise RelocationConflict(
                    rule.source_dotted, [existing.target_dotted, rule.target_dotted])
            return
        self._rules.append(rule)
        self._compiled = None

    @property
    def rules(self) -> tuple[RelocationRule, ...]:
        return tuple(self._rules)

    def __iter__(self) -> Iterator[RelocationRule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __bool__(self) -> bool:
        return bool(self._rules)

    def find_rule(self, path: str, separator: str = "/") -> RelocationRule | None:
        """Return the rule with the longest source prefix of *path*."""

        best: RelocationRule | None = None
        best_length = -1
        for rule in self._rules:
            source = rule.prefixes(separator)[0]
            if path.startswith(source) and len(source) > best_length:
                best, best_length = rule, len(source)
        return best

    def rewrite_path(self, path: str) -> str:
        """Return the relocated form of the entry *path*.

        Service registration files are named after the dotted interface they
        provide, so their file name is relocated in dotted form.
        """

        rule = self.find_rule(path)
        if rule is not None:
            source, target = rule.prefixes("/")
            return target + path[len(source):]

        if path.startswith(SERVICES_PREFIX):
            name = path[len(SERVICES_PREFIX):]
            if name and "/" not in name:
                dotted = self.find_rule(name, ".")
                if dotted is not None:
                    source, target = dotted.prefixes(".")
                    return SERVICES_PREFIX + target + name[len(source):]
        return path

    def rewrite_references(self, content: bytes, path: str = "") -> bytes:
        """Return *content* with namespace references relocated.

        Class files are rewritten through their constant pool and any payload
        that decodes as UTF-8 as plain text. Other binaries are returned
        unchanged.
        """

        if not self._rules or not content:
            return content
        if path.endswith(".class"):
            try:
                return rewrite_constant_pool(content, self.replace_bytes)
            except ConstantTooLongError as exc:
                raise RelocationOverflowError(path, str(exc)) from exc
        if is_text_payload(content):
            return self.replace_bytes(content)
        return content

    def replace_bytes(self, data: bytes) -> bytes:
        """Replace every dotted and slashed source namespace in *data*.

        Matching is exact and happens in a single left-to-right pass, so a
        target namespace is never rewritten a second time.
        """

        if not self._rules:
            return data
        pattern, table = self._replacement_table()
        return pattern.sub(lambda match: table[match.group(0)], data)

    def _replacement_table(self) -> Tuple[Pattern[bytes], Dict[bytes, bytes]]:
        if self._compiled is None:
            table: Dict[bytes, bytes] = {}
            for rule in self._rules:
                path_source, path_target = (part.encode("utf-8") for part in rule.prefixes("/"))
                dotted_source, dotted_target = (part.encode("utf-8") for part in rule.prefixes("."))
                table[path_source] = path_target
                table[dotted_source] = dotted_target
                if dotted_source == path_source:
                    # Single segment: the separator that follows picks the form.
                    table[dotted_source + b"."] = dotted_target + b"."
                    table[path_source + b"/"] = path_target + b"/"
            ordered = sorted(table, key=len, reverse=True)
            pattern = re.compile(b"|".join(re.escape(key) for key in ordered))
            self._compiled = (pattern, table)
        return self._compiled

    def __repr__(self) -> str:
        pairs = ", ".join(f"{rule.source_dotted} -> {rule.target_dotted}" for rule in self._rules)
        return f"RelocationMap({pairs})"


__all__ = [
    "RelocationMap",
    "RelocationRule",
    "SERVICES_PREFIX",
    "is_text_payload",
]
