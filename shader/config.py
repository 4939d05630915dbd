"""Configuration model for a single shading run."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence
import re

from core.archive import FORMAT_EXTENSIONS
from core.config_loader import load_config_files, merge_mappings, normalize_string_list

from .naming import ArchiveNamer, ProjectIdentity
from .patterns import DEFAULT_EXCLUSIONS, PatternSet, pattern_matches
from .relocation import RelocationMap, RelocationRule

_PLACEHOLDER_PATTERN = re.compile(r"\{\{([^{}]+)\}\}")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z])(?=[A-Z])")


class TemplateError(ValueError):
    """Raised when a placeholder in the configuration cannot be resolved."""


class DuplicatePolicy(str, Enum):
    KEEP_FIRST = "keep-first"
    OVERWRITE = "overwrite"
    MERGE = "merge"
    FAIL = "fail"

    @classmethod
    def parse(cls, value: Any) -> "DuplicatePolicy":
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise TypeError("Duplicate policies must be strings")
        normalized = _CAMEL_BOUNDARY.sub("-", value.strip()).lower().replace("_", "-")
        for member in cls:
            if member.value == normalized:
                return member
        choices = ", ".join(member.value for member in cls)
        raise ValueError(f"Unknown duplicate policy '{value}'. Expected one of: {choices}")


@dataclass(frozen=True, slots=True)
class DuplicateRule:
    """Duplicate policy applied to output paths matching ``pattern``."""

    pattern: str
    policy: DuplicatePolicy

    def matches(self, path: str) -> bool:
        return pattern_matches(self.pattern, path)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "DuplicateRule":
        pattern = data.get("pattern")
        if not pattern or not isinstance(pattern, str):
            raise ValueError("shade.duplicates entries require a 'pattern' string")
        if "policy" not in data:
            raise ValueError(f"shade.duplicates entry '{pattern}' requires a 'policy'")
        return cls(pattern=pattern.strip(), policy=DuplicatePolicy.parse(data["policy"]))


DEFAULT_DUPLICATE_RULES: tuple[DuplicateRule, ...] = (
    DuplicateRule("META-INF/services/*", DuplicatePolicy.MERGE),
)


def expand_placeholders(text: str, identity: ProjectIdentity) -> str:
    """Expand ``{{project.*}}`` and ``{{dependency:<pkg>}}`` in *text*."""

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1).strip()
        if key.startswith("dependency:"):
            return identity.format_dependency(key.partition(":")[2])
        if key == "project.name":
            return identity.name
        if key == "project.version":
            return identity.version
        if key == "project.group":
            if not identity.group:
                raise TemplateError("project.group is referenced but not configured")
            return identity.group
        raise TemplateError(f"Unknown placeholder '{{{{{key}}}}}'")

    return _PLACEHOLDER_PATTERN.sub(_replace, text)


def _parse_relocations(value: Any, identity: ProjectIdentity) -> List[RelocationRule]:
    if value is None:
        return []

    if isinstance(value, Mapping):
        return [
            RelocationRule(str(source), expand_placeholders(str(target), identity))
            for source, target in value.items()
        ]

    if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
        raise TypeError("shade.relocate must be an array of tables or a table")

    rules: List[RelocationRule] = []
    for entry in value:
        if not isinstance(entry, Mapping):
            raise TypeError("shade.relocate entries must be tables")
        source = entry.get("from")
        if not source or not isinstance(source, str):
            raise ValueError("shade.relocate entries require a 'from' namespace")
        target = entry.get("to")
        package = entry.get("package")
        if target and package:
            raise ValueError(f"shade.relocate entry '{source}' cannot set both 'to' and 'package'")
        if package:
            target = identity.format_dependency(str(package))
        if not target or not isinstance(target, str):
            raise ValueError(f"shade.relocate entry '{source}' requires 'to' or 'package'")
        rules.append(RelocationRule(source, expand_placeholders(target, identity)))
    return rules


def _parse_duplicate_rules(value: Any) -> List[DuplicateRule]:
    if value is None:
        return []
    if isinstance(value, Mapping):
        return [
            DuplicateRule(pattern=str(pattern), policy=DuplicatePolicy.parse(policy))
            for pattern, policy in value.items()
        ]
    if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
        raise TypeError("shade.duplicates must be an array of tables or a table")
    rules: List[DuplicateRule] = []
    for entry in value:
        if not isinstance(entry, Mapping):
            raise TypeError("shade.duplicates entries must be tables")
        rules.append(DuplicateRule.from_mapping(entry))
    return rules


def _normalize_format(value: Any) -> str:
    text = str(value).strip().lower().lstrip(".")
    if text not in FORMAT_EXTENSIONS:
        choices = ", ".join(FORMAT_EXTENSIONS)
        raise ValueError(f"Unsupported shade.format '{value}'. Expected one of: {choices}")
    return text


@dataclass(slots=True)
class ShadeConfiguration:
    """Everything one packaging invocation needs besides its inputs."""

    identity: ProjectIdentity
    exclusions: PatternSet = field(default_factory=PatternSet)
    relocations: RelocationMap = field(default_factory=RelocationMap)
    classifier: str | None = None
    file_name: str | None = None
    archive_format: str = "jar"
    duplicate_policy: DuplicatePolicy = DuplicatePolicy.KEEP_FIRST
    duplicate_rules: List[DuplicateRule] = field(default_factory=lambda: list(DEFAULT_DUPLICATE_RULES))
    workers: int = 1

    def __post_init__(self) -> None:
        self.archive_format = _normalize_format(self.archive_format)
        if self.workers < 1:
            raise ValueError("shade.workers must be at least 1")
        if not self.file_name:
            namer = ArchiveNamer(FORMAT_EXTENSIONS[self.archive_format])
            self.file_name = namer.compute_name(self.identity, self.classifier)
        elif "/" in self.file_name or "\\" in self.file_name:
            raise ValueError("shade.file_name must be a bare file name")

    @property
    def output_name(self) -> str:
        return self.file_name

    def policy_for(self, path: str) -> DuplicatePolicy:
        for rule in self.duplicate_rules:
            if rule.matches(path):
                return rule.policy
        return self.duplicate_policy

    def describe(self) -> List[str]:
        """Return a human readable summary of the configuration."""

        lines = [
            f"Output: {self.output_name} ({self.archive_format})",
            f"Duplicate policy: {self.duplicate_policy.value}",
            f"Exclusions: {len(self.exclusions)}",
        ]
        for rule in self.relocations:
            lines.append(f"Relocate: {rule.source_dotted} -> {rule.target_dotted}")
        for rule in self.duplicate_rules:
            lines.append(f"Duplicates: {rule.pattern} -> {rule.policy.value}")
        return lines

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[str, Any],
        *,
        identity: ProjectIdentity | None = None,
    ) -> "ShadeConfiguration":
        if identity is None:
            project_section = data.get("project")
            if not isinstance(project_section, Mapping):
                raise ValueError("[project] section is required when no project identity is supplied")
            identity = ProjectIdentity.from_mapping(project_section)

        shade_section = data.get("shade", {})
        if not isinstance(shade_section, Mapping):
            raise TypeError("[shade] must be a table")

        exclusions = PatternSet()
        use_defaults = shade_section.get("use_default_exclusions", True)
        if not isinstance(use_defaults, bool):
            raise TypeError("shade.use_default_exclusions must be a boolean")
        if use_defaults:
            exclusions.extend(DEFAULT_EXCLUSIONS)
        exclusions.extend(normalize_string_list(shade_section.get("exclude"), field_name="shade.exclude"))

        relocations = RelocationMap(_parse_relocations(shade_section.get("relocate"), identity))

        duplicate_rules = _parse_duplicate_rules(shade_section.get("duplicates"))
        duplicate_rules.extend(DEFAULT_DUPLICATE_RULES)

        classifier = shade_section.get("classifier")
        file_name = shade_section.get("file_name")
        workers = shade_section.get("workers", 1)
        if isinstance(workers, bool) or not isinstance(workers, int):
            raise TypeError("shade.workers must be an integer")

        return cls(
            identity=identity,
            exclusions=exclusions,
            relocations=relocations,
            classifier=str(classifier).strip() if classifier else None,
            file_name=expand_placeholders(str(file_name), identity) if file_name else None,
            archive_format=str(shade_section.get("format", "jar")),
            duplicate_policy=DuplicatePolicy.parse(shade_section.get("duplicate_policy", "keep-first")),
            duplicate_rules=duplicate_rules,
            workers=workers,
        )


def load_shade_configuration(
    paths: Iterable[Path],
    *,
    overrides: Mapping[str, Any] | None = None,
    identity: ProjectIdentity | None = None,
) -> ShadeConfiguration:
    """Load configuration files in order, apply *overrides* and build the model."""

    data: Dict[str, Any] = load_config_files(paths)
    if overrides:
        data = merge_mappings(data, overrides)
    return ShadeConfiguration.from_mapping(data, identity=identity)


__all__ = [
    "DEFAULT_DUPLICATE_RULES",
    "DuplicatePolicy",
    "DuplicateRule",
    "ShadeConfiguration",
    "TemplateError",
    "expand_placeholders",
    "load_shade_configuration",
]
