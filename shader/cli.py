"""Command line interface for the shading tool."""
from __future__ import annotations

from argparse import ArgumentParser, Namespace
from pathlib import Path
from typing import Any, Dict, Iterable, List
import sys

from core.config_loader import load_config_files, merge_mappings
from core.console import Console

from .config import DuplicatePolicy, ShadeConfiguration
from .engine import ShadeEngine
from .errors import PackagingError

EXIT_OK = 0
EXIT_PACKAGING_ERROR = 1
EXIT_CONFIG_ERROR = 2

DEFAULT_OUTPUT_DIR = Path("build") / "libs"


def _parse_relocation(value: str) -> Dict[str, str]:
    source, separator, target = value.partition("=")
    if not separator or not source.strip() or not target.strip():
        raise ValueError(f"Relocations must be given as FROM=TO, got '{value}'")
    return {"from": source.strip(), "to": target.strip()}


def _build_mapping(args: Namespace) -> Dict[str, Any]:
    """Combine configuration files with command line overrides."""

    data: Dict[str, Any] = load_config_files(Path(path) for path in getattr(args, "config", []))

    project: Dict[str, Any] = {}
    for key in ("name", "version", "group"):
        value = getattr(args, key, None)
        if value:
            project[key] = value

    shade: Dict[str, Any] = {}
    if getattr(args, "classifier", None):
        shade["classifier"] = args.classifier
    if getattr(args, "file_name", None):
        shade["file_name"] = args.file_name
    if getattr(args, "format", None):
        shade["format"] = args.format
    if getattr(args, "policy", None):
        shade["duplicate_policy"] = args.policy
    if getattr(args, "workers", None):
        shade["workers"] = args.workers
    if getattr(args, "no_default_exclusions", False):
        shade["use_default_exclusions"] = False

    existing = data.get("shade", {}) if isinstance(data.get("shade"), dict) else {}
    excludes: List[str] = list(getattr(args, "exclude", []) or [])
    if excludes:
        configured = existing.get("exclude") or []
        if isinstance(configured, str):
            configured = [configured]
        shade["exclude"] = [*configured, *excludes]

    relocations = [_parse_relocation(value) for value in getattr(args, "relocate", []) or []]
    if relocations:
        configured_relocations = existing.get("relocate") or []
        if not isinstance(configured_relocations, list):
            raise TypeError("--relocate can only be combined with shade.relocate arrays")
        shade["relocate"] = [*configured_relocations, *relocations]

    overrides: Dict[str, Any] = {}
    if project:
        overrides["project"] = project
    if shade:
        overrides["shade"] = shade
    return merge_mappings(data, overrides)


def _load_configuration(args: Namespace) -> ShadeConfiguration:
    return ShadeConfiguration.from_mapping(_build_mapping(args))


def _add_identity_arguments(parser: ArgumentParser) -> None:
    parser.add_argument(
        "-c",
        "--config",
        action="append",
        default=[],
        metavar="FILE",
        help="Configuration file (TOML, JSON or YAML); repeat to layer files",
    )
    parser.add_argument("--name", help="Project name")
    parser.add_argument("--version", help="Project version")
    parser.add_argument("--group", help="Project group used for relocated namespaces")
    parser.add_argument("--classifier", help="Artifact classifier appended to the file name")
    parser.add_argument("--file-name", dest="file_name", help="Explicit output file name")
    parser.add_argument("--format", help="Output archive format (jar, zip, tar, tar.gz, tar.zst, ...)")


def _parse_arguments(argv: Iterable[str]) -> Namespace:
    parser = ArgumentParser(prog="shader", description="Merge and relocate dependency archives")
    parser.add_argument(
        "--log",
        "-l",
        choices=list(Console.LEVELS),
        default="error",
        help="Set log level (default: error)")
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output (maps to debug)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    merge_parser = subparsers.add_parser("merge", help="Build a shaded archive from input archives")
    merge_parser.add_argument("inputs", nargs="+", metavar="ARCHIVE", help="Input archives in precedence order")
    _add_identity_arguments(merge_parser)
    merge_parser.add_argument(
        "-o",
        "--output-dir",
        type=Path,
        default=DEFAULT_OUTPUT_DIR,
        help=f"Directory receiving the archive (default: {DEFAULT_OUTPUT_DIR})",
    )
    merge_parser.add_argument(
        "-e",
        "--exclude",
        action="append",
        default=[],
        metavar="PATTERN",
        help="Additional exclusion pattern",
    )
    merge_parser.add_argument(
        "-r",
        "--relocate",
        action="append",
        default=[],
        metavar="FROM=TO",
        help="Relocate namespace FROM to TO (TO may use {{dependency:<pkg>}})",
    )
    merge_parser.add_argument(
        "--policy",
        choices=[policy.value for policy in DuplicatePolicy],
        help="Default duplicate entry policy",
    )
    merge_parser.add_argument(
        "--no-default-exclusions",
        action="store_true",
        help="Do not apply the built-in exclusion list",
    )
    merge_parser.add_argument("-j", "--workers", type=int, help="Read input archives in parallel")
    merge_parser.add_argument("-n", "--dry-run", action="store_true", help="Merge without writing the archive")

    name_parser = subparsers.add_parser("name", help="Print the output file name")
    _add_identity_arguments(name_parser)

    validate_parser = subparsers.add_parser("validate", help="Validate shading configuration")
    _add_identity_arguments(validate_parser)

    return parser.parse_args(list(argv))


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_arguments(sys.argv[1:] if argv is None else argv)

    if args.command == "merge":
        return _handle_merge(
            args, Console.from_flags(args.log, verbose=args.verbose, dry_run=args.dry_run))
    if args.command == "name":
        return _handle_name(args)
    if args.command == "validate":
        return _handle_validate(args, Console.from_flags(args.log, verbose=args.verbose))
    raise ValueError(f"Unknown command: {args.command}")


def _handle_merge(args: Namespace, console: Console) -> int:
    try:
        config = _load_configuration(args)
    except (OSError, ValueError, TypeError, PackagingError) as exc:
        print(f"Error: {exc}")
        return EXIT_CONFIG_ERROR

    for line in config.describe():
        console.debug(line)

    engine = ShadeEngine(console=console)
    try:
        path = engine.run(args.inputs, config, args.output_dir)
    except PackagingError as exc:
        print(f"Error: {exc}")
        return EXIT_PACKAGING_ERROR

    if console.dry_run:
        console.dry(f"{engine.stats.read} entries read; {path} not written")
    print(path)
    return EXIT_OK


def _handle_name(args: Namespace) -> int:
    try:
        config = _load_configuration(args)
    except (OSError, ValueError, TypeError, PackagingError) as exc:
        print(f"Error: {exc}")
        return EXIT_CONFIG_ERROR
    print(config.output_name)
    return EXIT_OK


def _handle_validate(args: Namespace, console: Console) -> int:
    try:
        config = _load_configuration(args)
    except (OSError, ValueError, TypeError, PackagingError) as exc:
        print(f"Error: {exc}")
        return EXIT_CONFIG_ERROR
    for line in config.describe():
        print(line)
    console.info("Configuration is valid")
    return EXIT_OK


__all__ = ["main"]
