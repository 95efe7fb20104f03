"""Shared test helpers for building artifact directories and graphs.

``write_artifact`` lays out an artifact directory the way a downloader
would leave it in the store: a ``metadata.yaml`` descriptor and, optionally,
a bundled ``Depfile``. The in-memory helpers build ``CachedArtifact`` and
``DependencyGraph`` instances without touching disk.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from artisolve.core.artifacts import MANIFEST_FILENAME, CachedArtifact
from artisolve.core.dependency import DependencyGraph


def write_artifact(
    root: Path,
    name: str,
    version: str,
    dependencies: dict[str, str] | None = None,
    recommendations: dict[str, str] | None = None,
    depfile: list[Any] | None = None,
    dirname: str | None = None,
) -> Path:
    """Create ``root/<name>-<version>`` holding a descriptor (and Depfile)."""
    path = root / (dirname or f"{name}-{version}")
    path.mkdir(parents=True, exist_ok=True)
    descriptor: dict[str, Any] = {"name": name, "version": version}
    if dependencies:
        descriptor["dependencies"] = dependencies
    if recommendations:
        descriptor["recommendations"] = recommendations
    (path / "metadata.yaml").write_text(yaml.safe_dump(descriptor), encoding="utf-8")
    if depfile is not None:
        write_depfile(path, depfile)
    return path


def write_depfile(directory: Path, entries: list[Any]) -> Path:
    """Write a Depfile listing *entries* into *directory*."""
    path = directory / MANIFEST_FILENAME
    path.write_text(yaml.safe_dump({"sources": entries}), encoding="utf-8")
    return path


def make_artifact(
    name: str,
    version: str,
    dependencies: dict[str, str] | None = None,
    path: Path | None = None,
) -> CachedArtifact:
    """Convenience factory for CachedArtifact instances."""
    return CachedArtifact(
        artifact_name=name,
        version=version,
        dependencies=dict(dependencies or {}),
        path=path,
    )


def build_graph(nodes: dict[str, dict[str, dict[str, str]]]) -> DependencyGraph:
    """Build a graph from ``{name: {version: {dependency: constraint}}}``."""
    graph = DependencyGraph()
    for name in nodes:
        for version, deps in nodes[name].items():
            node = graph.artifact(name, version)
            for dep_name, constraint in deps.items():
                graph.add_demand(node, dep_name, constraint)
    return graph
