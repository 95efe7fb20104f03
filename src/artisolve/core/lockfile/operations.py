"""Lockfile operations --- deserialization, validation, and diffing.

This module extends the ``Lockfile`` class (defined in ``lockfile.py``) with
classmethods and instance methods for:

- **Deserialization:** ``from_dict``, ``from_json``, ``read`` (disk).
- **Validation:** internal consistency checks.
- **Diffing:** structured comparison of two lockfiles.

They are attached to ``Lockfile`` at import time (in ``__init__.py``).
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from artisolve.core.lockfile.models import (
    LockedArtifact,
    LockfileMetadata,
    _INTEGRITY_RE,
)
from artisolve.exceptions import LockfileError


def _from_dict(cls: type, data: dict[str, Any]) -> Any:
    """Deserialize a lockfile from a dict (parsed JSON).

    Fields not present in the dict use default values.

    Raises:
        LockfileError: If the top-level structure is not a lockfile.
    """
    if not isinstance(data, dict):
        raise LockfileError("Lockfile content must be a JSON object")
    artifacts_data = data.get("artifacts", {})
    if not isinstance(artifacts_data, dict):
        raise LockfileError("Lockfile 'artifacts' must be an object")

    lf = cls()
    for name, entry in artifacts_data.items():
        if not isinstance(entry, dict):
            raise LockfileError(f"Lockfile entry {name!r} must be an object")
        lf._artifacts[name] = LockedArtifact(
            name=name,
            version=entry.get("version", ""),
            integrity=entry.get("integrity", ""),
            location=dict(entry.get("location", {})),
            dependencies=dict(entry.get("dependencies", {})),
        )

    meta = data.get("metadata", {})
    lf._metadata = LockfileMetadata(
        total_artifacts=meta.get("total_artifacts", len(lf._artifacts)),
        resolution_strategy=meta.get("resolution_strategy", "backtracking"),
        roots=list(meta.get("roots", [])),
    )
    return lf


def _from_json(cls: type, json_str: str) -> Any:
    """Deserialize from a JSON string.

    Raises:
        LockfileError: If the string is not valid JSON or not a lockfile.
    """
    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as exc:
        raise LockfileError(f"Lockfile is not valid JSON: {exc}") from exc
    return cls.from_dict(data)


def _read(cls: type, path: Path) -> Any:
    """Read a lockfile from disk.

    Raises:
        FileNotFoundError: If the file does not exist.
        LockfileError: If the file is not a valid lockfile.
    """
    text = path.read_text(encoding="utf-8")
    return cls.from_json(text)


def _validate(self: Any) -> list[str]:
    """Validate the lockfile for internal consistency.

    Performs the following checks:

    1. **Dependency completeness:** every dependency named by an entry is
       itself locked, at the version the entry records.
    2. **Integrity format:** every integrity hash matches
       ``sha256:<64-hex-chars>``.
    3. **Metadata consistency:** ``total_artifacts`` matches the number of
       entries, and every root is locked.
    4. **Version non-empty:** every entry has a version.

    Returns:
        List of validation error messages. Empty means the lockfile is valid.
    """
    errors: list[str] = []

    # 1. Dependency completeness
    for name in sorted(self._artifacts):
        artifact = self._artifacts[name]
        for dep_name, dep_version in sorted(artifact.dependencies.items()):
            locked = self._artifacts.get(dep_name)
            if locked is None:
                errors.append(
                    f"Artifact {name!r} depends on {dep_name!r} which is "
                    f"not in the lockfile"
                )
            elif locked.version != dep_version:
                errors.append(
                    f"Artifact {name!r} records {dep_name} {dep_version} but "
                    f"{locked.version} is locked"
                )

    # 2. Integrity format
    for name in sorted(self._artifacts):
        artifact = self._artifacts[name]
        if artifact.integrity and not _INTEGRITY_RE.match(artifact.integrity):
            errors.append(
                f"Artifact {name!r} has invalid integrity hash format: "
                f"{artifact.integrity!r}"
            )

    # 3. Metadata consistency
    if self._metadata.total_artifacts != len(self._artifacts):
        errors.append(
            f"Metadata total_artifacts ({self._metadata.total_artifacts}) "
            f"does not match actual count ({len(self._artifacts)})"
        )
    for root in sorted(self._metadata.roots):
        if root not in self._artifacts:
            errors.append(f"Root {root!r} is not in the lockfile")

    # 4. Version non-empty
    for name in sorted(self._artifacts):
        if not self._artifacts[name].version:
            errors.append(f"Artifact {name!r} has empty version string")

    return errors


def _diff(self: Any, other: Any) -> dict[str, Any]:
    """Compare two lockfiles and return differences.

    - **added**: Artifacts present in ``other`` but not in ``self``.
    - **removed**: Artifacts present in ``self`` but not in ``other``.
    - **changed**: Artifacts present in both with a different version,
      integrity, or location.

    Args:
        other: The lockfile to compare against (typically the newer one).

    Returns:
        Dict with keys 'added', 'removed', 'changed'.
    """
    self_names = set(self._artifacts.keys())
    other_names = set(other._artifacts.keys())

    changes: list[dict[str, Any]] = []
    for name in sorted(self_names & other_names):
        old = self._artifacts[name]
        new = other._artifacts[name]
        for field_name in ("version", "integrity", "location"):
            old_value = getattr(old, field_name)
            new_value = getattr(new, field_name)
            if old_value != new_value:
                changes.append({
                    "name": name,
                    "field": field_name,
                    "old": old_value,
                    "new": new_value,
                })

    return {
        "added": sorted(other_names - self_names),
        "removed": sorted(self_names - other_names),
        "changed": changes,
    }
