"""Archive reading and writing utilities reusable across projects."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Protocol, runtime_checkable
import bz2
import gzip
import io
import lzma
import os
import tarfile
import tempfile
import zipfile

import zstandard as zstd

_SUFFIX_FORMATS: list[tuple[str, str]] = [
    (".tar.zst", "zst"),
    (".tzst", "zst"),
    (".tar.gz", "gztar"),
    (".tgz", "gztar"),
    (".tar.bz2", "bztar"),
    (".tbz", "bztar"),
    (".tar.xz", "xztar"),
    (".txz", "xztar"),
    (".tar", "tar"),
    (".zip", "zip"),
    (".jar", "zip"),
    (".war", "zip"),
]

_FORMAT_ALIASES: dict[str, str] = {
    "zst": "zst",
    "tar.zst": "zst",
    "tzst": "zst",
    "gztar": "gztar",
    "gz": "gztar",
    "tar.gz": "gztar",
    "tgz": "gztar",
    "bztar": "bztar",
    "bz2": "bztar",
    "tar.bz2": "bztar",
    "tbz": "bztar",
    "xztar": "xztar",
    "xz": "xztar",
    "tar.xz": "xztar",
    "txz": "xztar",
    "tar": "tar",
    "zip": "zip",
    "jar": "zip",
    "war": "zip",
}

# Extension used in generated file names for each canonical format hint.
FORMAT_EXTENSIONS: dict[str, str] = {
    "jar": "jar",
    "war": "war",
    "zip": "zip",
    "tar": "tar",
    "tar.gz": "tar.gz",
    "tar.bz2": "tar.bz2",
    "tar.xz": "tar.xz",
    "tar.zst": "tar.zst",
}

# Entries carry a fixed timestamp so repeated runs produce identical bytes.
FIXED_ZIP_DATE_TIME = (1980, 2, 1, 0, 0, 0)
FIXED_TAR_MTIME = 318211200

MANIFEST_PATH = "META-INF/MANIFEST.MF"

# Exceptions that signal an unreadable or corrupt archive.
READ_ERRORS: tuple[type[BaseException], ...] = (
    OSError,
    EOFError,
    ValueError,
    zipfile.BadZipFile,
    tarfile.TarError,
    lzma.LZMAError,
    zstd.ZstdError,
)


@runtime_checkable
class ArchiveConsole(Protocol):
    """Minimal console interface required by :class:`ArchiveManager`."""

    dry_run: bool

    def info(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...

    def dry(self, message: str) -> None:
        ...

    def debug(self, message: str) -> None:
        ...


@dataclass(frozen=True, slots=True)
class ArchiveEntry:
    """A single named entry inside an archive."""

    path: str
    content: bytes = b""
    is_directory: bool = False


def normalize_entry_path(name: str) -> str:
    """Return *name* as a slash separated path without leading ``./`` or ``/``."""

    path = name.replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return path.lstrip("/")


def parent_directories(path: str) -> List[str]:
    """Return the directory entries (with trailing ``/``) implied by *path*."""

    parts = path.rstrip("/").split("/")[:-1]
    return ["/".join(parts[: index + 1]) + "/" for index in range(len(parts))]


def order_for_output(entries: Iterable[ArchiveEntry], *, manifest_first: bool) -> List[ArchiveEntry]:
    """Return file entries with their parent directories synthesized.

    Directory entries found in *entries* are ignored; every directory written
    is derived from a surviving file path and appears right before the first
    file that needs it.
    """

    files = [entry for entry in entries if not entry.is_directory]
    if manifest_first:
        manifests = [entry for entry in files if entry.path == MANIFEST_PATH]
        files = manifests + [entry for entry in files if entry.path != MANIFEST_PATH]

    ordered: List[ArchiveEntry] = []
    seen_dirs: set[str] = set()
    for entry in files:
        for directory in parent_directories(entry.path):
            if directory in seen_dirs:
                continue
            seen_dirs.add(directory)
            ordered.append(ArchiveEntry(path=directory, is_directory=True))
        ordered.append(entry)
    return ordered


class ArchiveManager:
    """Read entries from archives and write archives from entries."""

    def __init__(
        self,
        console: ArchiveConsole,
    ) -> None:
        self._console = console

    @property
    def dry_run(self) -> bool:
        return bool(self._console.dry_run)

    def resolve_archive_format(
            self,
            *,
            target: Path,
            format_hint: str | None = None) -> str:
        if format_hint:
            normalized = format_hint.strip().lower()
            if normalized in _FORMAT_ALIASES:
                return _FORMAT_ALIASES[normalized]
            raise ValueError(
                f"Unsupported archive format hint '{format_hint}'")

        filename = target.name.lower()
        for suffix, fmt in sorted(
            _SUFFIX_FORMATS, key=lambda item: len(
                item[0]), reverse=True):
            if filename.endswith(suffix):
                return fmt

        raise ValueError(
            f"Unable to determine archive format of '{target.name}'. "
            "Provide an explicit format_hint or use a supported suffix."
        )

    def _emit_dry(self, message: str) -> None:
        dry_method = getattr(self._console, "dry", None)
        if callable(dry_method):
            dry_method(message)
            return
        if getattr(self._console, "dry_run", False):
            self._console.info(f"[dry-run] {message}")

    # ------------------------------------------------------------------
    # Reading

    def iter_entries(
        self,
        archive_path: Path | str,
        *,
        format_hint: str | None = None,
    ) -> Iterator[ArchiveEntry]:
        """Yield the entries of *archive_path* in their stored order.

        Raises :class:`FileNotFoundError` when the archive is missing and lets
        :class:`zipfile.BadZipFile`, :class:`tarfile.TarError` or
        :class:`zstandard.ZstdError` propagate for corrupt input.
        """

        archive = Path(archive_path).expanduser()
        if not archive.is_file():
            raise FileNotFoundError(f"Archive '{archive}' does not exist")

        archive_format = self.resolve_archive_format(
            target=archive, format_hint=format_hint)

        if archive_format == "zip":
            yield from self._iter_zip(archive)
        elif archive_format == "zst":
            yield from self._iter_zst(archive)
        else:
            with tarfile.open(archive, mode="r:*") as tar:
                yield from self._iter_tar(tar)

    def _iter_zip(self, archive: Path) -> Iterator[ArchiveEntry]:
        with zipfile.ZipFile(archive, "r") as zip_ref:
            for info in zip_ref.infolist():
                path = normalize_entry_path(info.filename)
                if not path:
                    continue
                if info.is_dir():
                    yield ArchiveEntry(path=path, is_directory=True)
                    continue
                yield ArchiveEntry(path=path, content=zip_ref.read(info))

    def _iter_zst(self, archive: Path) -> Iterator[ArchiveEntry]:
        dctx = zstd.ZstdDecompressor()
        with archive.open("rb") as ifh:
            with dctx.stream_reader(ifh) as reader:
                with tarfile.open(fileobj=reader, mode="r|") as tar:
                    yield from self._iter_tar(tar)

    def _iter_tar(self, tar: tarfile.TarFile) -> Iterator[ArchiveEntry]:
        for member in tar:
            path = normalize_entry_path(member.name)
            if not path or path == ".":
                continue
            if member.isdir():
                yield ArchiveEntry(path=path.rstrip("/") + "/", is_directory=True)
                continue
            if not member.isfile():
                self._console.debug(f"Skipping non-regular tar member {member.name}")
                continue
            handle = tar.extractfile(member)
            if handle is None:
                continue
            with handle:
                yield ArchiveEntry(path=path, content=handle.read())

    # ------------------------------------------------------------------
    # Writing

    def write_archive(
        self,
        *,
        entries: Iterable[ArchiveEntry],
        target_path: Path | str,
        format_hint: str | None = None,
        overwrite: bool = True,
    ) -> Path:
        """Write *entries* to *target_path* atomically.

        Parameters
        ----------
        entries:
            File entries in output order. Directory entries are synthesized from
            the file paths; directory entries passed in are ignored.
        target_path:
            Exact path (including filename) for the archive that should be created.
        format_hint:
            Optional explicit archive format such as ``"jar"`` or ``"tar.zst"``.
            When omitted, the format is inferred from *target_path*'s suffix.
        overwrite:
            When ``False`` and the target already exists, a :class:`FileExistsError`
            is raised instead of replacing the file.

        The archive is assembled in a temporary file next to the target and
        renamed into place only once complete. The temporary file is removed
        on any failure.
        """

        target = Path(target_path).expanduser()
        archive_format = self.resolve_archive_format(
            target=target, format_hint=format_hint)
        ordered = order_for_output(entries, manifest_first=archive_format == "zip")

        if self.dry_run:
            self._emit_dry(f"Would write {len(ordered)} entries to {target}")
            return target

        if target.exists() and not overwrite:
            raise FileExistsError(f"Archive target '{target}' already exists")

        target.parent.mkdir(parents=True, exist_ok=True)

        with tempfile.NamedTemporaryFile(
                dir=target.parent, prefix=f".{target.name}.", suffix=".tmp", delete=False) as temp_handle:
            temp_path = Path(temp_handle.name)

        try:
            self._make_archive(
                temp_path=temp_path,
                archive_format=archive_format,
                entries=ordered,
            )
            os.replace(temp_path, target)
        except BaseException:
            temp_path.unlink(missing_ok=True)
            raise

        self._console.debug(f"Wrote {len(ordered)} entries to {target}")
        return target

    def _make_archive(
        self,
        *,
        temp_path: Path,
        archive_format: str,
        entries: List[ArchiveEntry],
    ) -> None:
        if archive_format == "zip":
            self._make_zip_archive(temp_path, entries)
            return

        tar_bytes = self._build_tar(entries)
        if archive_format == "tar":
            temp_path.write_bytes(tar_bytes)
        elif archive_format == "gztar":
            with temp_path.open("wb") as raw, gzip.GzipFile(
                    filename="", mode="wb", fileobj=raw, compresslevel=9, mtime=0) as dst:
                dst.write(tar_bytes)
        elif archive_format == "bztar":
            with bz2.open(temp_path, "wb", compresslevel=9) as dst:
                dst.write(tar_bytes)
        elif archive_format == "xztar":
            compressor = lzma.LZMACompressor(
                format=lzma.FORMAT_XZ,
                check=lzma.CHECK_CRC64,
                filters=self._xz_filters(len(tar_bytes)),
            )
            temp_path.write_bytes(compressor.compress(tar_bytes) + compressor.flush())
        elif archive_format == "zst":
            compressor = zstd.ZstdCompressor(
                level=19,
                write_checksum=True,
                write_content_size=True,
            )
            temp_path.write_bytes(compressor.compress(tar_bytes))
        else:
            raise RuntimeError(f"Unsupported archive format '{archive_format}'")

    @staticmethod
    def _xz_filters(input_size: int) -> list[dict[str, int]]:
        min_power = 16  # 64 KiB
        max_power = 26  # 64 MiB
        target_power = max(
            min_power, min(
                max_power, (max(input_size, 1) - 1).bit_length()))
        return [
            {
                "id": lzma.FILTER_LZMA2,
                "dict_size": 1 << target_power,
                "lc": 3,
                "lp": 0,
                "pb": 2,
                "mode": lzma.MODE_NORMAL,
                "mf": lzma.MF_BT4,
            }
        ]

    @staticmethod
    def _make_zip_archive(target: Path, entries: List[ArchiveEntry]) -> None:
        with zipfile.ZipFile(
            target,
            mode="w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=9,
            allowZip64=True,
        ) as archive:
            for entry in entries:
                info = zipfile.ZipInfo(entry.path, date_time=FIXED_ZIP_DATE_TIME)
                info.create_system = 3
                if entry.is_directory:
                    info.external_attr = (0o40755 << 16) | 0x10
                    info.compress_type = zipfile.ZIP_STORED
                    archive.writestr(info, b"")
                    continue
                info.external_attr = 0o100644 << 16
                info.compress_type = zipfile.ZIP_DEFLATED
                archive.writestr(info, entry.content, compresslevel=9)

    @staticmethod
    def _build_tar(entries: List[ArchiveEntry]) -> bytes:
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w", format=tarfile.PAX_FORMAT) as tar:
            for entry in entries:
                info = tarfile.TarInfo(entry.path.rstrip("/") if entry.is_directory else entry.path)
                info.mtime = FIXED_TAR_MTIME
                info.uid = info.gid = 0
                info.uname = info.gname = ""
                if entry.is_directory:
                    info.type = tarfile.DIRTYPE
                    info.mode = 0o755
                    tar.addfile(info)
                    continue
                info.mode = 0o644
                info.size = len(entry.content)
                tar.addfile(info, io.BytesIO(entry.content))
        return buffer.getvalue()


__all__ = [
    "ArchiveConsole",
    "ArchiveEntry",
    "ArchiveManager",
    "FIXED_TAR_MTIME",
    "FIXED_ZIP_DATE_TIME",
    "FORMAT_EXTENSIONS",
    "MANIFEST_PATH",
    "READ_ERRORS",
    "normalize_entry_path",
    "order_for_output",
    "parent_directories",
]
