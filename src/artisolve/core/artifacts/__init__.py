"""Materialized artifacts: data model, descriptor extraction and store.

- ``models``: ``CachedArtifact`` and ``ArtifactMetadata``.
- ``metadata``: ``read_metadata`` / ``load_artifact`` for descriptor files.
- ``store``: ``ArtifactStore``, a directory of ``<name>-<version>`` entries.
"""

from artisolve.core.artifacts.models import (
    MANIFEST_FILENAME,
    ArtifactMetadata,
    CachedArtifact,
)
from artisolve.core.artifacts.metadata import (
    METADATA_FILENAMES,
    find_metadata_file,
    load_artifact,
    read_metadata,
)
from artisolve.core.artifacts.store import ArtifactStore

__all__ = [
    "MANIFEST_FILENAME",
    "ArtifactMetadata",
    "CachedArtifact",
    "METADATA_FILENAMES",
    "find_metadata_file",
    "load_artifact",
    "read_metadata",
    "ArtifactStore",
]
