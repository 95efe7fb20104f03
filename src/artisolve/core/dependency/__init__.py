"""Dependency graph, artifact registry and version solver.

This package holds the algorithmic core of resolution:

- ``constraints``: version parsing, ``VersionConstraint`` and the ``Demand``
  edge type.
- ``graph``: ``DependencyGraph`` over ``(name, version)`` nodes.
- ``registry``: ``ArtifactRegistry`` of known artifacts per version.
- ``solver``: ``Solver`` producing an ``Assignment`` of one version per name.

All public names are re-exported here so that imports of the form
``from artisolve.core.dependency import X`` work for every submodule.
"""

from artisolve.core.dependency.constraints import (
    ANY,
    Demand,
    VersionConstraint,
    coerce_constraint,
    parse_version,
    version_key,
)
from artisolve.core.dependency.graph import (
    ArtifactNode,
    DependencyGraph,
)
from artisolve.core.dependency.registry import ArtifactRegistry
from artisolve.core.dependency.solver import (
    ROOT_REQUESTER,
    Assignment,
    Solver,
)

__all__ = [
    "ANY",
    "Demand",
    "VersionConstraint",
    "coerce_constraint",
    "parse_version",
    "version_key",
    "ArtifactNode",
    "DependencyGraph",
    "ArtifactRegistry",
    "ROOT_REQUESTER",
    "Assignment",
    "Solver",
]
