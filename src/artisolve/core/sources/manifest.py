"""Depfile manifest parsing.

A Depfile is a YAML document listing the sources a project (or an artifact,
when the Depfile is bundled inside it) depends on::

    sources:
      - name: mysql
        constraint: "= 1.2.4"
        path: ./vendor/mysql
      - name: nginx
        git: https://example.com/nginx.git
        ref: v0.101.2
      - name: ntp
        registry: https://registry.example.com
      - name: apt

Relative ``path`` entries are resolved against the Depfile's directory.
An entry without a location key is served from the artifact store.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from artisolve.core.artifacts.store import ArtifactStore
from artisolve.core.sources.locations import (
    GitLocation,
    Location,
    PathLocation,
    RegistryLocation,
    StoreLocation,
)
from artisolve.core.sources.source import Source
from artisolve.exceptions import ManifestError

logger = logging.getLogger(__name__)

_LOCATION_KEYS = ("path", "git", "registry")


class ManifestParser:
    """Turns Depfile manifests into ``Source`` lists.

    Args:
        store: Artifact store backing store, git and registry locations.
            Required only by manifests that use those locations.
    """

    def __init__(self, store: ArtifactStore | None = None) -> None:
        self.store = store

    def parse(self, path: Path | str) -> list[Source]:
        """Parse the Depfile at *path*.

        Returns:
            Sources in declaration order.

        Raises:
            ManifestError: If the file is missing or malformed.
        """
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ManifestError(f"Cannot read manifest {path}: {exc}") from exc
        sources = self.parse_text(text, base_dir=path.parent, origin=str(path))
        logger.debug("Parsed %d source(s) from %s", len(sources), path)
        return sources

    def parse_text(
        self, text: str, base_dir: Path | None = None, origin: str = "<string>"
    ) -> list[Source]:
        """Parse Depfile content.

        Args:
            text: YAML content.
            base_dir: Directory that relative paths are resolved against.
                Defaults to the current directory.
            origin: Name used in error messages.
        """
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ManifestError(f"Invalid YAML in {origin}: {exc}") from exc

        if data is None:
            return []
        if not isinstance(data, dict) or not isinstance(data.get("sources"), list):
            raise ManifestError(f"{origin} must contain a 'sources' list")

        base_dir = base_dir if base_dir is not None else Path.cwd()
        sources: list[Source] = []
        seen: set[str] = set()
        for index, entry in enumerate(data["sources"]):
            source = self._source_from_entry(entry, base_dir, f"{origin}[{index}]")
            if source.name in seen:
                raise ManifestError(f"Source {source.name!r} is declared twice in {origin}")
            seen.add(source.name)
            sources.append(source)
        return sources

    def _source_from_entry(self, entry: Any, base_dir: Path, where: str) -> Source:
        if isinstance(entry, str):
            entry = {"name": entry}
        if not isinstance(entry, dict) or not entry.get("name"):
            raise ManifestError(f"Source entry {where} must have a name")

        try:
            return Source(
                name=str(entry["name"]),
                version_constraint=str(entry.get("constraint") or "*"),
                location=self._location_from_entry(entry, base_dir, where),
            )
        except ValueError as exc:
            raise ManifestError(f"Invalid constraint in {where}: {exc}") from exc

    def _location_from_entry(
        self, entry: dict[str, Any], base_dir: Path, where: str
    ) -> Location:
        keys = [k for k in _LOCATION_KEYS if k in entry]
        if len(keys) > 1:
            raise ManifestError(
                f"Source entry {where} declares more than one location: {', '.join(keys)}"
            )

        if keys == ["path"]:
            path = Path(str(entry["path"]))
            return PathLocation(path if path.is_absolute() else base_dir / path)

        if self.store is None:
            raise ManifestError(
                f"Source entry {where} needs an artifact store, but none was configured"
            )
        if keys == ["git"]:
            return GitLocation(str(entry["git"]), self.store, ref=str(entry.get("ref") or "master"))
        if keys == ["registry"]:
            return RegistryLocation(str(entry["registry"]), self.store)
        return StoreLocation(self.store)


def parse_manifest(path: Path | str, store: ArtifactStore | None = None) -> list[Source]:
    """Parse the Depfile at *path* into sources."""
    return ManifestParser(store).parse(path)
