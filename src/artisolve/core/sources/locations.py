"""Source locations: where a source's artifact comes from.

Every location implements the same small capability interface, so the
resolver never needs to know which kind of origin a source uses:

- ``is_cached(source)`` -- is the artifact already materialized?
- ``fetch(source)`` -- return the materialized ``CachedArtifact``.
- ``validate_cached(artifact)`` -- does a cached artifact still look valid
  for this location?
- ``to_dict()`` -- a serializable description for manifests and lockfiles.

Variants: ``PathLocation`` (a directory on disk), ``StoreLocation`` (the
artifact store), and the remote origins ``GitLocation`` and
``RegistryLocation``, whose artifacts an external downloader materializes
into the store.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any

from artisolve.core.artifacts.metadata import find_metadata_file, load_artifact
from artisolve.core.artifacts.models import CachedArtifact
from artisolve.core.artifacts.store import ArtifactStore
from artisolve.exceptions import ArtifactNotFound

if TYPE_CHECKING:
    from artisolve.core.sources.source import Source


class Location(ABC):
    """Abstract base class for source locations."""

    kind: str = ""

    @abstractmethod
    def is_cached(self, source: Source) -> bool:
        """Return True if *source*'s artifact is available without fetching."""

    @abstractmethod
    def fetch(self, source: Source) -> CachedArtifact:
        """Return the materialized artifact for *source*.

        Raises:
            ArtifactNotFound: If the artifact is not materialized.
        """

    def validate_cached(self, artifact: CachedArtifact) -> bool:
        """Check that a cached artifact's directory still exists."""
        return artifact.path is None or artifact.path.is_dir()

    @abstractmethod
    def to_dict(self) -> dict[str, Any]:
        """Describe this location as a JSON/YAML-friendly dict."""

    def __str__(self) -> str:
        details = ", ".join(f"{k}={v}" for k, v in self.to_dict().items() if k != "type")
        return f"{self.kind}: {details}" if details else self.kind


class PathLocation(Location):
    """An artifact directory on the local filesystem.

    Args:
        path: Directory holding the artifact and its descriptor.
    """

    kind = "path"

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def is_cached(self, source: Source) -> bool:
        return self.path.is_dir() and find_metadata_file(self.path) is not None

    def fetch(self, source: Source) -> CachedArtifact:
        if not self.is_cached(source):
            raise ArtifactNotFound(
                f"No artifact for source {source.name!r} found at: '{self.path}'"
            )
        return load_artifact(self.path)

    def validate_cached(self, artifact: CachedArtifact) -> bool:
        if artifact.path is None:
            return False
        return artifact.path.resolve() == self.path.resolve() and self.path.is_dir()

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "path": str(self.path)}


class StoreLocation(Location):
    """The highest stored version that satisfies the source's constraint.

    Args:
        store: The artifact store to look in.
    """

    kind = "store"

    def __init__(self, store: ArtifactStore) -> None:
        self.store = store

    def is_cached(self, source: Source) -> bool:
        return self.store.best_match(source.name, source.version_constraint) is not None

    def fetch(self, source: Source) -> CachedArtifact:
        artifact = self.store.best_match(source.name, source.version_constraint)
        if artifact is None:
            raise ArtifactNotFound(
                f"No version of {source.name!r} matching "
                f"{source.version_constraint.raw!r} is in {self.store.root}"
            )
        return artifact

    def validate_cached(self, artifact: CachedArtifact) -> bool:
        expected = self.store.path_for(artifact.artifact_name, artifact.version)
        return artifact.path is not None and artifact.path == expected and expected.is_dir()

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind}


class GitLocation(StoreLocation):
    """A git repository; checkouts are materialized into the store.

    Args:
        uri: Repository URI.
        store: Store the downloader checks revisions out into.
        ref: Branch, tag or commit to use.
    """

    kind = "git"

    def __init__(self, uri: str, store: ArtifactStore, ref: str = "master") -> None:
        super().__init__(store)
        self.uri = uri
        self.ref = ref

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "git": self.uri, "ref": self.ref}


class RegistryLocation(StoreLocation):
    """A remote artifact registry; downloads land in the store.

    Args:
        url: Base URL of the registry.
        store: Store the downloader unpacks artifacts into.
    """

    kind = "registry"

    def __init__(self, url: str, store: ArtifactStore) -> None:
        super().__init__(store)
        self.url = url

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "registry": self.url}
