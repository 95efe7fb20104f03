"""Shared fixtures for artisolve tests."""

import pathlib

import pytest

from artisolve.core.artifacts import ArtifactStore
from tests.helpers import write_artifact


@pytest.fixture
def store_root(tmp_path: pathlib.Path) -> pathlib.Path:
    """Create an empty artifact store directory."""
    root = tmp_path / "store"
    root.mkdir()
    return root


@pytest.fixture
def store(store_root: pathlib.Path) -> ArtifactStore:
    """A store holding a small, realistic artifact world.

    - mysql 1.2.4 requires nginx >= 0.1.0 and recommends artifact ~> 0.10.0
    - nginx 0.101.2 requires ohai >= 1.0.0; nginx 0.100.5 has no dependencies
    - artifact 0.10.0, ohai 1.0.0 and thing1 0.1.0 have no dependencies
    """
    write_artifact(
        store_root,
        "mysql",
        "1.2.4",
        dependencies={"nginx": ">= 0.1.0"},
        recommendations={"artifact": "~> 0.10.0"},
    )
    write_artifact(store_root, "nginx", "0.101.2", dependencies={"ohai": ">= 1.0.0"})
    write_artifact(store_root, "nginx", "0.100.5")
    write_artifact(store_root, "artifact", "0.10.0")
    write_artifact(store_root, "ohai", "1.0.0")
    write_artifact(store_root, "thing1", "0.1.0")
    return ArtifactStore(store_root)
