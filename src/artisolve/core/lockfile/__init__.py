"""Artifact lockfile --- recording a resolved artifact set.

The lockfile captures the outcome of ``Resolver.resolve()``: every artifact
at its resolved version, with a descriptor integrity hash, the location of
the source that declared it, and its resolved dependencies.

The package is split into focused submodules:

- ``models``: Data classes (``LockedArtifact``, ``LockfileMetadata``).
- ``lockfile``: The ``Lockfile`` class with artifact management, integrity
  hashing and serialization.
- ``operations``: Deserialization (``from_dict``, ``from_json``, ``read``),
  validation, and diffing.
- ``factory``: ``from_resolution`` for building a lockfile from resolved
  artifacts.

All public names are re-exported here.
"""

# Re-export data models
from artisolve.core.lockfile.models import (
    LockedArtifact,
    LockfileMetadata,
    _INTEGRITY_RE,
)

# Re-export the Lockfile class
from artisolve.core.lockfile.lockfile import Lockfile

# Attach operations to Lockfile as methods/classmethods
from artisolve.core.lockfile import operations as _ops
from artisolve.core.lockfile import factory as _factory

Lockfile.from_dict = classmethod(_ops._from_dict)
Lockfile.from_json = classmethod(_ops._from_json)
Lockfile.read = classmethod(_ops._read)
Lockfile.validate = _ops._validate
Lockfile.diff = _ops._diff
Lockfile.from_resolution = classmethod(_factory._from_resolution)

__all__ = [
    "Lockfile",
    "LockedArtifact",
    "LockfileMetadata",
    "_INTEGRITY_RE",
]
