"""Artifact data models --- CachedArtifact and ArtifactMetadata.

These are pure data holders with no I/O beyond path probing, safe to import
from anywhere in the package without circular-dependency concerns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from artisolve.core.dependency.constraints import version_key

# File name of a nested manifest bundled inside an artifact directory.
MANIFEST_FILENAME = "Depfile"


@dataclass(frozen=True)
class ArtifactMetadata:
    """Raw contents of an artifact descriptor file.

    Attributes:
        name: Artifact name declared by the descriptor.
        version: Version string declared by the descriptor.
        dependencies: Required dependencies (name -> constraint string).
        recommendations: Optional dependencies (name -> constraint string).
    """

    name: str
    version: str
    dependencies: dict[str, str] = field(default_factory=dict)
    recommendations: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class CachedArtifact:
    """A materialized artifact at one version.

    Equality and hashing use ``(artifact_name, version)`` only. Instances
    sort by name, then by semantic version, which gives resolution results
    a deterministic order.

    Attributes:
        artifact_name: The artifact name (e.g., "nginx").
        version: Concrete version (e.g., "0.101.2").
        dependencies: Every demand the artifact declares, required and
            recommended merged (name -> constraint string).
        path: Directory holding the artifact, if it lives on disk.
    """

    artifact_name: str
    version: str
    dependencies: dict[str, str] = field(default_factory=dict, compare=False, hash=False)
    path: Path | None = field(default=None, compare=False, hash=False)

    @classmethod
    def from_metadata(
        cls, metadata: ArtifactMetadata, path: Path | None = None
    ) -> "CachedArtifact":
        """Build an artifact from descriptor metadata.

        Recommended dependencies are merged under required ones, so a
        required constraint wins when both name the same artifact.
        """
        merged = dict(metadata.recommendations)
        merged.update(metadata.dependencies)
        return cls(
            artifact_name=metadata.name,
            version=metadata.version,
            dependencies=merged,
            path=path,
        )

    @property
    def name(self) -> str:
        """The artifact name and version separated by a dash (e.g. "nginx-0.101.2")."""
        return f"{self.artifact_name}-{self.version}"

    @property
    def sort_key(self) -> tuple[str, Any]:
        return self.artifact_name, version_key(self.version)

    @property
    def manifest_path(self) -> Path | None:
        """Path of the bundled nested manifest, or None if there is none."""
        if self.path is None:
            return None
        candidate = self.path / MANIFEST_FILENAME
        return candidate if candidate.is_file() else None

    def __lt__(self, other: "CachedArtifact") -> bool:
        if not isinstance(other, CachedArtifact):
            return NotImplemented
        return self.sort_key < other.sort_key

    def to_dict(self) -> dict[str, Any]:
        """Canonical descriptor: name, version and sorted dependencies."""
        return {
            "name": self.artifact_name,
            "version": self.version,
            "dependencies": dict(sorted(self.dependencies.items())),
        }

    def __str__(self) -> str:
        location = f" '{self.path}'" if self.path is not None else ""
        return f"{self.artifact_name} ({self.version}){location}"
