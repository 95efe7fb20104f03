"""Lockfile core class --- artifact management, integrity, and serialization.

The ``Lockfile`` class represents an ``artisolve-lock.json`` file. It
provides:

- **Artifact management:** add, get, count, and list artifacts.
- **Integrity:** SHA-256 hashing of canonical artifact descriptors.
- **Serialization:** deterministic ``to_dict``, ``to_json``, and ``write``.

Determinism guarantee: entries are sorted by name and all dictionary keys
are sorted, so two lockfiles with the same content produce byte-identical
JSON.

References
----------
.. [npm-lock] npm documentation. "package-lock.json." File format
   guaranteeing deterministic installs across environments.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

from artisolve import __version__
from artisolve.core.lockfile.models import LockedArtifact, LockfileMetadata


class Lockfile:
    """Resolved artifact set, ready to be written to disk.

    Example::

        lf = Lockfile()
        lf.add_artifact(LockedArtifact(
            name="nginx",
            version="0.101.2",
            integrity=Lockfile.compute_integrity(descriptor_json),
        ))
        lf.write(Path("artisolve-lock.json"))
    """

    LOCKFILE_VERSION: str = "1.0"
    INTEGRITY_ALGORITHM: str = "sha256"
    DEFAULT_FILENAME: str = "artisolve-lock.json"

    def __init__(self) -> None:
        self._artifacts: dict[str, LockedArtifact] = {}
        self._metadata = LockfileMetadata()

    # -- Artifact management ------------------------------------------------

    def add_artifact(self, artifact: LockedArtifact) -> None:
        """Add a locked artifact entry, replacing any entry of the same name.

        The metadata ``total_artifacts`` counter is updated automatically.
        """
        self._artifacts[artifact.name] = artifact
        self._metadata.total_artifacts = len(self._artifacts)

    def get_artifact(self, name: str) -> LockedArtifact | None:
        """Retrieve a locked artifact by name, or None if not present."""
        return self._artifacts.get(name)

    @property
    def artifact_count(self) -> int:
        return len(self._artifacts)

    @property
    def artifact_names(self) -> list[str]:
        """Return sorted list of all artifact names in the lockfile."""
        return sorted(self._artifacts.keys())

    def versions(self) -> dict[str, str]:
        """Return name -> locked version for every entry."""
        return {name: self._artifacts[name].version for name in self.artifact_names}

    # -- Integrity ----------------------------------------------------------

    @staticmethod
    def compute_integrity(content: str | bytes) -> str:
        """Compute a SHA-256 integrity hash.

        Args:
            content: Content to hash, as string or bytes.

        Returns:
            Integrity string in "sha256:<64-hex-chars>" format.
        """
        if isinstance(content, str):
            content = content.encode("utf-8")
        digest = hashlib.sha256(content).hexdigest()
        return f"sha256:{digest}"

    @classmethod
    def descriptor_integrity(cls, descriptor: dict[str, Any]) -> str:
        """Hash a descriptor dict in canonical (sorted, compact) JSON form."""
        canonical = json.dumps(descriptor, sort_keys=True, separators=(",", ":"))
        return cls.compute_integrity(canonical)

    def verify_integrity(self, name: str, descriptor: dict[str, Any]) -> bool:
        """Check a descriptor against the entry's integrity hash.

        Returns:
            False if the artifact is not locked or the hash differs.
        """
        artifact = self._artifacts.get(name)
        if artifact is None:
            return False
        return self.descriptor_integrity(descriptor) == artifact.integrity

    # -- Serialization ------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialize the lockfile to a dict with deterministic ordering."""
        artifacts_dict: dict[str, Any] = {}
        for name in sorted(self._artifacts.keys()):
            artifact = self._artifacts[name]
            entry: dict[str, Any] = {
                "version": artifact.version,
                "integrity": artifact.integrity,
                "dependencies": dict(sorted(artifact.dependencies.items())),
            }
            if artifact.location:
                entry["location"] = dict(sorted(artifact.location.items()))
            artifacts_dict[name] = entry

        return {
            "lockfile_version": self.LOCKFILE_VERSION,
            "generated_by": f"artisolve {__version__}",
            "integrity_algorithm": self.INTEGRITY_ALGORITHM,
            "artifacts": artifacts_dict,
            "metadata": {
                "total_artifacts": self._metadata.total_artifacts,
                "resolution_strategy": self._metadata.resolution_strategy,
                "roots": sorted(self._metadata.roots),
            },
        }

    def to_json(self, indent: int = 2) -> str:
        """Serialize to a deterministic JSON string."""
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)

    def write(self, path: Path) -> None:
        """Write lockfile to disk as JSON, creating parent directories."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json() + "\n", encoding="utf-8")

    # -- Metadata access ----------------------------------------------------

    @property
    def metadata(self) -> LockfileMetadata:
        return self._metadata

    @metadata.setter
    def metadata(self, value: LockfileMetadata) -> None:
        self._metadata = value
