"""Dependency graph over versioned artifacts.

Nodes are ``(name, version)`` pairs; each node carries the demand edges its
artifact declares. The graph only accumulates demands. Choosing versions is
the solver's job.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from artisolve.core.dependency.constraints import (
    Demand,
    VersionConstraint,
    coerce_constraint,
    version_key,
)


# ---------------------------------------------------------------------------
# ArtifactNode: A vertex in the graph
# ---------------------------------------------------------------------------


@dataclass
class ArtifactNode:
    """A node representing a specific artifact at a specific version."""

    name: str
    version: str
    demands: list[Demand] = field(default_factory=list)

    @property
    def label(self) -> str:
        return f"{self.name}@{self.version}"


# ---------------------------------------------------------------------------
# DependencyGraph
# ---------------------------------------------------------------------------


class DependencyGraph:
    """Demand-accumulation structure queried by the solver.

    The graph supports:
    - Lazily creating nodes (multiple versions per artifact name)
    - Recording demand edges from a node to an artifact name
    - Querying known and satisfying versions per name
    - Enumerating every demand that targets a name

    Thread safety: This class is NOT thread-safe. External synchronization is
    required for concurrent access.
    """

    def __init__(self) -> None:
        self._nodes: dict[tuple[str, str], ArtifactNode] = {}

    @property
    def names(self) -> set[str]:
        """Return the set of all artifact names with at least one node."""
        return {name for name, _ in self._nodes}

    @property
    def node_count(self) -> int:
        """Return the total number of (name, version) nodes."""
        return len(self._nodes)

    def nodes(self) -> list[ArtifactNode]:
        """Return every node ordered by name, then ascending version."""
        return [
            self._nodes[key]
            for key in sorted(self._nodes, key=lambda k: (k[0], version_key(k[1])))
        ]

    def artifact(self, name: str, version: str) -> ArtifactNode:
        """Return the node for ``(name, version)``, creating it on first use.

        Args:
            name: Artifact name.
            version: Version string.

        Returns:
            The existing or newly created ``ArtifactNode``.
        """
        key = (name, version)
        node = self._nodes.get(key)
        if node is None:
            node = ArtifactNode(name=name, version=version)
            self._nodes[key] = node
        return node

    def has_artifact(self, name: str, version: str) -> bool:
        return (name, version) in self._nodes

    def get_node(self, name: str, version: str) -> ArtifactNode | None:
        """Retrieve a node by name and version, or None if absent."""
        return self._nodes.get((name, version))

    def add_demand(
        self,
        from_node: ArtifactNode,
        dependency_name: str,
        constraint: str | VersionConstraint | None = None,
    ) -> Demand:
        """Record that *from_node* requires a version of *dependency_name*.

        Demands on the same name from different nodes are additive: a
        solution must satisfy all of them. An identical demand on the same
        node is stored once.

        Args:
            from_node: The requiring node. It is inserted if not yet present.
            dependency_name: Name of the required artifact.
            constraint: Constraint on the required artifact's version.
                None means any version.

        Returns:
            The recorded ``Demand``.
        """
        node = self.artifact(from_node.name, from_node.version)
        demand = Demand(name=dependency_name, constraint=coerce_constraint(constraint))
        if demand not in node.demands:
            node.demands.append(demand)
        return demand

    def snapshot(self) -> dict[tuple[str, str], list[Demand]]:
        """Capture the current nodes and their demands for ``restore``."""
        return {key: list(node.demands) for key, node in self._nodes.items()}

    def restore(self, snapshot: dict[tuple[str, str], list[Demand]]) -> None:
        """Return the graph to a state captured by ``snapshot``.

        Nodes created since the snapshot are dropped and demands recorded
        since are removed. Surviving nodes keep their identity.
        """
        for key in [k for k in self._nodes if k not in snapshot]:
            del self._nodes[key]
        for key, demands in snapshot.items():
            self._nodes[key].demands[:] = demands

    def get_versions(self, name: str) -> list[str]:
        """Return all known versions of an artifact, highest first.

        Args:
            name: The artifact name to look up.

        Returns:
            List of version strings sorted newest-first. Empty if unknown.
        """
        versions = [ver for (n, ver) in self._nodes if n == name]
        versions.sort(key=version_key, reverse=True)
        return versions

    def satisfying_versions(
        self, name: str, constraint: str | VersionConstraint | None
    ) -> list[str]:
        """Return the known versions of *name* matching *constraint*, highest first."""
        vc = coerce_constraint(constraint)
        return [v for v in self.get_versions(name) if vc.satisfies(v)]

    def get_demands(self, name: str, version: str) -> list[Demand]:
        """Return the demand list of a node. Empty if the node is absent."""
        node = self._nodes.get((name, version))
        return list(node.demands) if node else []

    def demands_on(self, name: str) -> list[tuple[ArtifactNode, Demand]]:
        """Return every ``(node, demand)`` whose demand targets *name*.

        Ordered by requiring node (name, then ascending version) and then by
        the node's declaration order.
        """
        found: list[tuple[ArtifactNode, Demand]] = []
        for node in self.nodes():
            for demand in node.demands:
                if demand.name == name:
                    found.append((node, demand))
        return found
