"""Artifact descriptor extraction.

An artifact directory carries a descriptor file naming the artifact, its
version and the artifacts it depends on::

    name: mysql
    version: "1.2.4"
    dependencies:
      nginx: ">= 0.1.0"
    recommendations:
      artifact: "~> 0.10.0"

The descriptor is read as YAML (``metadata.yaml`` or ``metadata.yml``);
``metadata.json`` is accepted too since JSON is a YAML subset. If the
descriptor does not declare a name, the directory basename is used.
Versions should be quoted: YAML reads an unquoted ``1.10`` as a float.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from artisolve.core.artifacts.models import ArtifactMetadata, CachedArtifact
from artisolve.core.dependency.constraints import VersionConstraint, parse_version
from artisolve.exceptions import MetadataError

METADATA_FILENAMES = ("metadata.yaml", "metadata.yml", "metadata.json")


def find_metadata_file(path: Path) -> Path | None:
    """Return the first descriptor file present in *path*, or None."""
    for filename in METADATA_FILENAMES:
        candidate = path / filename
        if candidate.is_file():
            return candidate
    return None


def _constraint_map(raw: Any, field_name: str, source: Path) -> dict[str, str]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise MetadataError(f"'{field_name}' in {source} must be a mapping")
    result: dict[str, str] = {}
    for name, constraint in raw.items():
        text = "*" if constraint is None else str(constraint)
        try:
            VersionConstraint(text)
        except ValueError as exc:
            raise MetadataError(
                f"Invalid constraint for {name!r} in {source}: {exc}"
            ) from exc
        result[str(name)] = text
    return result


def read_metadata(path: Path, default_name: str | None = None) -> ArtifactMetadata:
    """Read the descriptor of the artifact stored at *path*.

    Args:
        path: Artifact directory.
        default_name: Name to use when the descriptor declares none.
            Defaults to the directory basename.

    Returns:
        The parsed ``ArtifactMetadata``.

    Raises:
        MetadataError: If no descriptor exists, it is not valid YAML, or it
            lacks a valid version.
    """
    path = Path(path)
    descriptor = find_metadata_file(path)
    if descriptor is None:
        raise MetadataError(f"No metadata file found at: '{path}'")

    try:
        data = yaml.safe_load(descriptor.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise MetadataError(f"Invalid metadata in {descriptor}: {exc}") from exc

    if not isinstance(data, dict):
        raise MetadataError(f"Metadata in {descriptor} must be a mapping")

    version = data.get("version")
    if version is None:
        raise MetadataError(f"Metadata in {descriptor} does not declare a version")
    version = str(version)
    try:
        parse_version(version)
    except ValueError as exc:
        raise MetadataError(f"Invalid version in {descriptor}: {exc}") from exc

    name = str(data.get("name") or default_name or path.name)

    return ArtifactMetadata(
        name=name,
        version=version,
        dependencies=_constraint_map(data.get("dependencies"), "dependencies", descriptor),
        recommendations=_constraint_map(
            data.get("recommendations"), "recommendations", descriptor
        ),
    )


def load_artifact(path: Path, name: str | None = None) -> CachedArtifact:
    """Create a ``CachedArtifact`` from the artifact directory at *path*.

    Args:
        path: Artifact directory.
        name: Name to use when the descriptor does not declare one. Defaults
            to the directory basename.

    Raises:
        MetadataError: If the descriptor is missing or malformed.
    """
    path = Path(path)
    metadata = read_metadata(path, default_name=name)
    return CachedArtifact.from_metadata(metadata, path=path)
