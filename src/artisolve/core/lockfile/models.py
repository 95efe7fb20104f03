"""Lockfile data models --- LockedArtifact and LockfileMetadata.

Pure data holders (dataclasses) with no business logic, safe to import
without circular-dependency concerns.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Integrity hash format: "sha256:<64-hex-characters>"
# ---------------------------------------------------------------------------

_INTEGRITY_RE = re.compile(r"^sha256:[0-9a-f]{64}$")


# ---------------------------------------------------------------------------
# LockedArtifact: A single entry in the lockfile
# ---------------------------------------------------------------------------


@dataclass
class LockedArtifact:
    """A single artifact entry in the lockfile.

    Attributes:
        name: Artifact name (e.g., "nginx").
        version: Resolved version (e.g., "0.101.2").
        integrity: Hash of the artifact's canonical descriptor in
            "sha256:<hex>" format.
        location: Location description of the source that declared the
            artifact. Empty for artifacts pulled in transitively.
        dependencies: Mapping of dependency name to resolved version.
    """

    name: str
    version: str
    integrity: str = ""
    location: dict[str, Any] = field(default_factory=dict)
    dependencies: dict[str, str] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# LockfileMetadata: Top-level metadata section
# ---------------------------------------------------------------------------


@dataclass
class LockfileMetadata:
    """Metadata section of the lockfile.

    Attributes:
        total_artifacts: Expected number of artifact entries. Used during
            validation to detect incomplete writes.
        resolution_strategy: The algorithm that produced the lockfile
            ("backtracking", or "manual" for hand-authored lockfiles).
        roots: Names of the sources resolution started from.
    """

    total_artifacts: int = 0
    resolution_strategy: str = "backtracking"
    roots: list[str] = field(default_factory=list)
