"""Merge input archives into a single shaded archive."""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, Sequence

from core.archive import READ_ERRORS, ArchiveConsole, ArchiveEntry, ArchiveManager
from core.console import Console

from .config import DuplicatePolicy, ShadeConfiguration
from .errors import ArchiveReadError, ArchiveWriteError, DuplicateEntryError, PackagingError


class EngineState(str, Enum):
    IDLE = "idle"
    MERGING = "merging"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class ArchiveSource:
    """An input archive of the dependency closure."""

    path: Path
    name: str | None = None
    format_hint: str | None = None

    @property
    def label(self) -> str:
        return self.name or self.path.name

    @classmethod
    def coerce(cls, value: "ArchiveSource | Path | str") -> "ArchiveSource":
        if isinstance(value, ArchiveSource):
            return value
        return cls(path=Path(value))


@dataclass(slots=True)
class MergeStats:
    read: int = 0
    excluded: int = 0
    relocated: int = 0
    duplicates: int = 0
    merged: int = 0


def merge_lines(existing: bytes, incoming: bytes) -> bytes:
    """Concatenate the logical lines of two payloads without repeats.

    Lines keep their first-seen order; blank lines are dropped.
    """

    seen: Dict[bytes, None] = {}
    for payload in (existing, incoming):
        for raw in payload.splitlines():
            line = raw.strip()
            if line:
                seen.setdefault(line, None)
    if not seen:
        return b""
    return b"\n".join(seen) + b"\n"


class MergedArchive:
    """The output entry set, populated once and finalized once."""

    def __init__(self, file_name: str, archive_format: str) -> None:
        self.file_name = file_name
        self.archive_format = archive_format
        self._entries: Dict[str, ArchiveEntry] = {}
        self._origins: Dict[str, str] = {}
        self.path: Path | None = None
        self.planned_path: Path | None = None

    @property
    def finalized(self) -> bool:
        """``True`` once the archive exists on disk."""

        return self.path is not None

    @property
    def closed(self) -> bool:
        return self.finalized or self.planned_path is not None

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ArchiveEntry]:
        return iter(self._entries.values())

    def get(self, path: str) -> ArchiveEntry | None:
        return self._entries.get(path)

    def origin(self, path: str) -> str | None:
        """Return the label of the input that supplied *path*."""

        return self._origins.get(path)

    def paths(self) -> List[str]:
        return list(self._entries)

    def put(self, entry: ArchiveEntry, origin: str) -> None:
        if self.closed:
            raise PackagingError(f"Archive '{self.file_name}' is already finalized")
        self._entries[entry.path] = entry
        self._origins[entry.path] = origin

    def finalize(
        self,
        manager: ArchiveManager,
        output_dir: Path,
        *,
        overwrite: bool = True,
    ) -> Path:
        """Write the archive, or only record its target when *manager* is in dry-run mode."""

        if self.closed:
            raise PackagingError(f"Archive '{self.file_name}' is already finalized")
        target = Path(output_dir) / self.file_name
        try:
            written = manager.write_archive(
                entries=self._entries.values(),
                target_path=target,
                format_hint=self.archive_format,
                overwrite=overwrite,
            )
        except (OSError, ValueError, RuntimeError) as exc:
            raise ArchiveWriteError(target, str(exc)) from exc
        if manager.dry_run:
            self.planned_path = written
        else:
            self.path = written
        return written


@dataclass(slots=True)
class _PreparedInput:
    source: ArchiveSource
    entries: List[ArchiveEntry] = field(default_factory=list)
    stats: MergeStats = field(default_factory=MergeStats)


class ShadeEngine:
    """Filter, relocate and merge archives for one packaging invocation.

    An engine moves through ``idle -> merging -> finalizing -> done`` and
    ends in ``failed`` on any error. It cannot be reused.
    """

    def __init__(
        self,
        console: ArchiveConsole | None = None,
        archive_manager: ArchiveManager | None = None,
    ) -> None:
        self._console = console if console is not None else Console()
        self._archives = archive_manager or ArchiveManager(self._console)
        self._state = EngineState.IDLE
        self._merged: MergedArchive | None = None
        self.stats = MergeStats()

    @property
    def state(self) -> EngineState:
        return self._state

    def _transition(self, expected: EngineState, target: EngineState) -> None:
        if self._state is not expected:
            raise PackagingError(
                f"Cannot move from '{self._state.value}' to '{target.value}'; "
                "create a new engine for every packaging run")
        self._state = target

    def merge(
        self,
        inputs: Sequence[ArchiveSource | Path | str],
        config: ShadeConfiguration,
    ) -> MergedArchive:
        """Merge *inputs* in order according to *config*."""

        self._transition(EngineState.IDLE, EngineState.MERGING)
        merged = MergedArchive(config.output_name, config.archive_format)
        sources = [ArchiveSource.coerce(item) for item in inputs]

        try:
            if config.workers > 1 and len(sources) > 1:
                # Inputs are read concurrently; map() hands them back in input order.
                with ThreadPoolExecutor(max_workers=config.workers) as executor:
                    for prepared in executor.map(lambda source: self._prepare(source, config), sources):
                        self._apply(merged, prepared, config)
            else:
                for source in sources:
                    self._apply(merged, self._prepare(source, config), config)
        except BaseException:
            self._state = EngineState.FAILED
            raise

        self._merged = merged
        self._console.info(
            f"Merged {len(sources)} archive(s) into {len(merged)} entries for {merged.file_name} "
            f"({self.stats.excluded} excluded, {self.stats.relocated} relocated, "
            f"{self.stats.duplicates} duplicate(s))")
        return merged

    def finalize(self, merged: MergedArchive, output_dir: Path | str, *, overwrite: bool = True) -> Path:
        """Write *merged* into *output_dir* and return the archive path."""

        if merged is not self._merged:
            raise PackagingError("Only the archive produced by this engine can be finalized")
        self._transition(EngineState.MERGING, EngineState.FINALIZING)
        try:
            path = merged.finalize(self._archives, Path(output_dir), overwrite=overwrite)
        except BaseException:
            self._state = EngineState.FAILED
            raise
        self._state = EngineState.DONE
        if merged.finalized:
            self._console.info(f"Wrote {path}")
        return path

    def run(
        self,
        inputs: Sequence[ArchiveSource | Path | str],
        config: ShadeConfiguration,
        output_dir: Path | str,
        *,
        overwrite: bool = True,
    ) -> Path:
        merged = self.merge(inputs, config)
        return self.finalize(merged, output_dir, overwrite=overwrite)

    def _prepare(self, source: ArchiveSource, config: ShadeConfiguration) -> _PreparedInput:
        prepared = _PreparedInput(source=source)
        relocations = config.relocations
        try:
            for entry in self._archives.iter_entries(source.path, format_hint=source.format_hint):
                if entry.is_directory:
                    continue
                prepared.stats.read += 1
                pattern = config.exclusions.matching_pattern(entry.path)
                if pattern is not None:
                    prepared.stats.excluded += 1
                    self._console.debug(f"{source.label}: excluded {entry.path} ({pattern})")
                    continue
                path = relocations.rewrite_path(entry.path)
                content = relocations.rewrite_references(entry.content, entry.path)
                if path != entry.path:
                    prepared.stats.relocated += 1
                    self._console.debug(f"{source.label}: relocated {entry.path} -> {path}")
                if path == entry.path and content is entry.content:
                    prepared.entries.append(entry)
                else:
                    prepared.entries.append(ArchiveEntry(path=path, content=content))
        except READ_ERRORS as exc:
            raise ArchiveReadError(source.path, str(exc)) from exc

        self._console.debug(
            f"{source.label}: {prepared.stats.read} entries read, "
            f"{prepared.stats.excluded} excluded")
        return prepared

    def _apply(self, merged: MergedArchive, prepared: _PreparedInput, config: ShadeConfiguration) -> None:
        label = prepared.source.label
        self.stats.read += prepared.stats.read
        self.stats.excluded += prepared.stats.excluded
        self.stats.relocated += prepared.stats.relocated

        for entry in prepared.entries:
            existing = merged.get(entry.path)
            if existing is None:
                merged.put(entry, label)
                continue

            self.stats.duplicates += 1
            policy = config.policy_for(entry.path)
            if policy is DuplicatePolicy.FAIL:
                raise DuplicateEntryError(entry.path, label)
            if policy is DuplicatePolicy.KEEP_FIRST:
                self._console.debug(
                    f"{label}: kept {entry.path} from {merged.origin(entry.path)}")
            elif policy is DuplicatePolicy.OVERWRITE:
                self._console.debug(f"{label}: overwrote {entry.path}")
                merged.put(entry, label)
            elif policy is DuplicatePolicy.MERGE:
                self.stats.merged += 1
                self._console.debug(f"{label}: merged {entry.path}")
                combined = merge_lines(existing.content, entry.content)
                merged.put(ArchiveEntry(path=entry.path, content=combined), merged.origin(entry.path) or label)


__all__ = [
    "ArchiveSource",
    "EngineState",
    "MergeStats",
    "MergedArchive",
    "ShadeEngine",
    "merge_lines",
]
