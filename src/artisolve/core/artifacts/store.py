"""On-disk artifact store.

The store is a directory in which every materialized artifact lives in its
own ``<name>-<version>`` subdirectory, each holding a descriptor file (see
``artisolve.core.artifacts.metadata``). An external downloader writes into
the store; the resolver only reads from it.

The store is always passed explicitly to whatever needs it. There is no
process-wide default location.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from artisolve.core.artifacts.metadata import find_metadata_file, load_artifact
from artisolve.core.artifacts.models import CachedArtifact
from artisolve.core.dependency.constraints import (
    VersionConstraint,
    coerce_constraint,
    version_key,
)
from artisolve.core.dependency.registry import ArtifactRegistry
from artisolve.exceptions import MetadataError

logger = logging.getLogger(__name__)

# "<name>-<version>": the name is as long as possible, so names may contain
# dashes and digits ("py-3-1.0.0" is py-3 at 1.0.0). A version may carry
# one dash-separated pre-release suffix ("foo-1.0.0-beta").
DIRNAME_RE = re.compile(r"^(?P<name>.+)-(?P<version>\d[^-]*(?:-[0-9A-Za-z.]+)?)$")


class ArtifactStore:
    """Read access to a directory of materialized artifacts.

    Args:
        root: The store directory. It does not need to exist yet.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def path_for(self, name: str, version: str) -> Path:
        """Return the directory where ``name`` at ``version`` is stored."""
        return self.root / f"{name}-{version}"

    def get(self, name: str, version: str) -> CachedArtifact | None:
        """Load ``name`` at ``version`` from the store, or None if absent.

        Raises:
            MetadataError: If the directory exists but its descriptor is
                missing or malformed.
        """
        path = self.path_for(name, version)
        if not path.is_dir():
            return None
        return self._load_entry(path, name, version)

    @staticmethod
    def _load_entry(path: Path, name: str, version: str) -> CachedArtifact:
        artifact = load_artifact(path, name=name)
        if artifact.artifact_name != name or artifact.version != version:
            raise MetadataError(
                f"Store entry {path.name!r} declares "
                f"{artifact.artifact_name} ({artifact.version})"
            )
        return artifact

    def artifacts(self, name: str | None = None) -> list[CachedArtifact]:
        """Return every valid artifact in the store, optionally for one name.

        Malformed entries are skipped with a warning so that one broken
        download does not hide the rest of the store.

        Returns:
            Artifacts ordered by name, then ascending version.
        """
        if not self.root.is_dir():
            return []

        found: list[CachedArtifact] = []
        for entry in sorted(self.root.iterdir()):
            if not entry.is_dir():
                continue
            m = DIRNAME_RE.match(entry.name)
            if m is None:
                continue
            if name is not None and m.group("name") != name:
                continue
            if find_metadata_file(entry) is None:
                logger.warning("Skipping store entry without metadata: %s", entry)
                continue
            try:
                artifact = self._load_entry(entry, m.group("name"), m.group("version"))
            except MetadataError as exc:
                logger.warning("Skipping malformed store entry %s: %s", entry, exc)
                continue
            found.append(artifact)

        return sorted(found)

    def best_match(
        self, name: str, constraint: str | VersionConstraint | None = None
    ) -> CachedArtifact | None:
        """Return the highest stored version of *name* satisfying *constraint*."""
        vc = coerce_constraint(constraint)
        candidates = [a for a in self.artifacts(name) if a.artifact_name == name]
        candidates.sort(key=lambda a: version_key(a.version), reverse=True)
        for artifact in candidates:
            if vc.satisfies(artifact.version):
                return artifact
        return None

    def registry(self) -> ArtifactRegistry:
        """Return a registry populated with every artifact in the store."""
        registry = ArtifactRegistry.from_artifacts(self.artifacts())
        logger.debug("Loaded %d artifact(s) from store %s", len(registry), self.root)
        return registry

    def __repr__(self) -> str:
        return f"ArtifactStore({str(self.root)!r})"
