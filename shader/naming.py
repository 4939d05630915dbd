"""Project identity and output artifact naming."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping


@dataclass(frozen=True, slots=True)
class ProjectIdentity:
    name: str
    version: str
    group: str = ""

    def __post_init__(self) -> None:
        if not str(self.name).strip():
            raise ValueError("project.name is required")
        if not str(self.version).strip():
            raise ValueError("project.version is required")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ProjectIdentity":
        name = data.get("name")
        version = data.get("version")
        if not name or not version:
            raise ValueError("project.name and project.version are required")
        group = data.get("group")
        return cls(
            name=str(name).strip(),
            version=str(version).strip(),
            group=str(group).strip() if group else "",
        )

    def format_dependency(self, package_name: str) -> str:
        """Return ``<group>.dependencies.<package_name>``."""

        package = package_name.strip().strip(".")
        if not package:
            raise ValueError("Dependency package name cannot be empty")
        if not self.group:
            raise ValueError(
                f"project.group is required to place dependency '{package}' under the project namespace")
        return f"{self.group}.dependencies.{package}"


class ArchiveNamer:
    """Derive output file names as ``<name>-<version>[-<classifier>].<ext>``."""

    def __init__(self, extension: str = "jar") -> None:
        extension = extension.strip().lstrip(".")
        if not extension:
            raise ValueError("Archive extension cannot be empty")
        self.extension = extension

    def compute_name(self, identity: ProjectIdentity, classifier: str | None = None) -> str:
        base = f"{identity.name}-{identity.version}"
        if classifier is not None and classifier.strip():
            base = f"{base}-{classifier.strip()}"
        return f"{base}.{self.extension}"


def compute_name(
    identity: ProjectIdentity,
    classifier: str | None = None,
    *,
    extension: str = "jar",
) -> str:
    return ArchiveNamer(extension).compute_name(identity, classifier)


__all__ = ["ArchiveNamer", "ProjectIdentity", "compute_name"]
