"""Artifact registry: known artifacts indexed by (name, version).

The registry is what the resolver consults when a dependency name has no
registered source of its own. Every version it knows for a name becomes a
candidate node in the dependency graph.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING

from artisolve.core.dependency.constraints import version_key
from artisolve.exceptions import ArtifactNotFound

if TYPE_CHECKING:
    from artisolve.core.artifacts.models import CachedArtifact

logger = logging.getLogger(__name__)


class ArtifactRegistry:
    """Mapping from ``(name, version)`` to ``CachedArtifact``.

    Re-adding an identity that is already present keeps the first
    instance, so a source's own artifact is never shadowed by a later
    store scan of the same version.
    """

    def __init__(self) -> None:
        self._artifacts: dict[tuple[str, str], CachedArtifact] = {}

    @classmethod
    def from_artifacts(cls, artifacts: Iterable[CachedArtifact]) -> "ArtifactRegistry":
        registry = cls()
        for artifact in artifacts:
            registry.add(artifact)
        return registry

    def add(self, artifact: CachedArtifact) -> CachedArtifact:
        """Register *artifact* and return the instance now held for its identity."""
        key = (artifact.artifact_name, artifact.version)
        existing = self._artifacts.get(key)
        if existing is not None:
            return existing
        self._artifacts[key] = artifact
        logger.debug("Registered artifact %s", artifact.name)
        return artifact

    def get(self, name: str, version: str) -> CachedArtifact:
        """Return the artifact for ``(name, version)``.

        Raises:
            ArtifactNotFound: If the pair was never registered.
        """
        try:
            return self._artifacts[(name, version)]
        except KeyError:
            raise ArtifactNotFound(
                f"No artifact {name!r} at version {version!r} is registered"
            ) from None

    def find(self, name: str) -> list[CachedArtifact]:
        """Return every registered version of *name*, highest first."""
        found = [a for (n, _), a in self._artifacts.items() if n == name]
        found.sort(key=lambda a: version_key(a.version), reverse=True)
        return found

    def dependencies(self, name: str, version: str) -> dict[str, str]:
        """Return the declared dependencies of ``(name, version)``."""
        return dict(self.get(name, version).dependencies)

    def snapshot(self) -> dict[tuple[str, str], CachedArtifact]:
        return dict(self._artifacts)

    def restore(self, snapshot: dict[tuple[str, str], CachedArtifact]) -> None:
        """Forget every artifact added since ``snapshot`` was taken."""
        self._artifacts = dict(snapshot)

    @property
    def names(self) -> set[str]:
        return {name for name, _ in self._artifacts}

    def __contains__(self, key: object) -> bool:
        return key in self._artifacts

    def __iter__(self) -> Iterator[CachedArtifact]:
        for key in sorted(self._artifacts, key=lambda k: (k[0], version_key(k[1]))):
            yield self._artifacts[key]

    def __len__(self) -> int:
        return len(self._artifacts)
