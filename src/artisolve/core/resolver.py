"""Resolver: from declared sources to one consistent set of artifacts.

The resolver owns a registry of ``Source``s and a ``DependencyGraph``.
Registering a source inserts its artifact into the graph and, unless told
otherwise, expands the artifact's declared dependencies: each becomes a
demand edge, every known version of the dependency is pulled in from the
artifact registry, and a dependency without a source of its own is
registered as a source too. With nested manifests enabled, a Depfile
bundled inside any registered artifact is parsed and its sources are
registered the same way.

Sources are either *declared* (passed to the resolver or listed in a
nested manifest) or *implied* by a dependency. A declared source replaces
an implied one of the same name. ``resolve()`` hands the graph to the
``Solver`` with the declared sources as roots, pins every declared source
to its materialized version, and maps the resulting assignment back to
``CachedArtifact`` instances.

Typical use::

    store = ArtifactStore(Path("~/.artisolve/artifacts").expanduser())
    parser = ManifestParser(store)
    resolver = Resolver(
        store.registry(),
        sources=parser.parse(Path("Depfile")),
        manifest_parser=parser,
        nested_manifests=True,
    )
    artifacts = resolver.resolve()
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

from artisolve.core.artifacts.models import CachedArtifact
from artisolve.core.dependency.graph import ArtifactNode, DependencyGraph
from artisolve.core.dependency.registry import ArtifactRegistry
from artisolve.core.dependency.solver import Solver
from artisolve.core.sources.source import Source
from artisolve.exceptions import (
    ArtifactNotFound,
    DuplicateSourceDefined,
    SourceNotFound,
)

logger = logging.getLogger(__name__)


class Downloader(Protocol):
    """Materializes a source's artifact (fetching it if needed)."""

    def download(self, source: Source) -> CachedArtifact: ...


class ManifestSource(Protocol):
    """Parses a manifest file into the sources it declares."""

    def parse(self, path: Path) -> list[Source]: ...


class Resolver:
    """Resolves registered sources into a consistent artifact set.

    Thread safety: This class is NOT thread-safe. ``add_source`` and
    ``resolve`` must not run concurrently on one instance.

    Args:
        registry: Known artifacts available as transitive dependencies.
            Source artifacts are added to it as they are registered.
        sources: A source or iterable of sources to register immediately.
        downloader: Used to materialize sources that are not downloaded.
        manifest_parser: Parses nested manifests. Required when
            ``nested_manifests`` is True.
        skip_dependencies: Register ``sources`` without expanding their
            dependencies.
        nested_manifests: Expand Depfiles bundled inside artifacts.
        solver: Solver instance to use. Defaults to ``Solver()``.
    """

    def __init__(
        self,
        registry: ArtifactRegistry | None = None,
        *,
        sources: Source | Iterable[Source] | None = None,
        downloader: Downloader | None = None,
        manifest_parser: ManifestSource | None = None,
        skip_dependencies: bool = False,
        nested_manifests: bool = False,
        solver: Solver | None = None,
    ) -> None:
        if nested_manifests and manifest_parser is None:
            raise ValueError("nested_manifests requires a manifest_parser")

        self._registry = registry if registry is not None else ArtifactRegistry()
        self._graph = DependencyGraph()
        self._sources: dict[str, Source] = {}
        self._implied: set[str] = set()
        self._downloader = downloader
        self._manifest_parser = manifest_parser
        self._nested_manifests = nested_manifests
        self._solver = solver if solver is not None else Solver()
        self._visited_manifests: set[str] = set()

        if isinstance(sources, Source):
            sources = [sources]
        for source in sources or []:
            if self._is_declared(source.name):
                # Already declared by a nested manifest.
                continue
            self.add_source(source, include_dependencies=not skip_dependencies)

    # -- Source registry ------------------------------------------------------

    @property
    def sources(self) -> list[Source]:
        """Registered sources, declared and implied, in registration order."""
        return list(self._sources.values())

    @property
    def declared_sources(self) -> list[Source]:
        """Sources passed to the resolver or listed in nested manifests."""
        return [s for name, s in self._sources.items() if name not in self._implied]

    @property
    def graph(self) -> DependencyGraph:
        return self._graph

    @property
    def registry(self) -> ArtifactRegistry:
        return self._registry

    def add_source(self, source: Source, include_dependencies: bool = True) -> None:
        """Register *source* and insert its artifact into the graph.

        A source implied by an earlier source's dependencies is replaced.
        If registration fails at any depth (the source itself, one of its
        dependencies, or a nested manifest), the resolver is left exactly
        as it was before the call.

        Args:
            source: The source to register.
            include_dependencies: Expand the artifact's declared
                dependencies into demand edges and implied sources.

        Raises:
            DuplicateSourceDefined: If a source with the same name is
                already declared.
            ArtifactNotFound: If a source cannot be materialized.
            ManifestError: If a nested manifest is malformed.
        """
        sources = dict(self._sources)
        implied = set(self._implied)
        visited = set(self._visited_manifests)
        graph_state = self._graph.snapshot()
        registry_state = self._registry.snapshot()
        try:
            self._register(source, include_dependencies, self._visited_manifests)
        except Exception:
            self._sources = sources
            self._implied = implied
            self._visited_manifests = visited
            self._graph.restore(graph_state)
            self._registry.restore(registry_state)
            raise

    def get_source(self, name: str) -> Source:
        """Return the registered source called *name*.

        Raises:
            SourceNotFound: If no such source is registered.
        """
        try:
            return self._sources[name]
        except KeyError:
            raise SourceNotFound(f"No source named {name!r} is registered") from None

    def has_source(self, name: str | Source) -> bool:
        """Return True if a source with this name (or this source's name) exists."""
        key = name.name if isinstance(name, Source) else name
        return key in self._sources

    def _is_declared(self, name: str) -> bool:
        return name in self._sources and name not in self._implied

    def _register(
        self,
        source: Source,
        include_dependencies: bool,
        visited: set[str],
        implied: bool = False,
    ) -> None:
        if self.has_source(source) and (implied or self._is_declared(source.name)):
            raise DuplicateSourceDefined(
                f"A source named {source.name!r} is already defined"
            )

        artifact = self._materialize(source)
        if source.name in self._implied:
            logger.debug("Declared source %s replaces the implied one", source.name)
        self._sources[source.name] = source
        if implied:
            self._implied.add(source.name)
        else:
            self._implied.discard(source.name)
        self._registry.add(artifact)
        node = self._graph.artifact(source.name, artifact.version)
        logger.debug("Added source %s as %s", source.name, artifact.name)

        if include_dependencies:
            self._add_dependencies(node, artifact, visited)

        if self._nested_manifests:
            self._expand_manifest(artifact, include_dependencies, visited)

    def _materialize(self, source: Source) -> CachedArtifact:
        if not source.downloaded:
            if self._downloader is None:
                raise ArtifactNotFound(
                    f"Source {source.name!r} is not downloaded and no downloader "
                    "was configured"
                )
            source.cached_artifact = self._downloader.download(source)
        return source.cached_artifact

    # -- Graph expansion ------------------------------------------------------

    def _add_dependencies(
        self, node: ArtifactNode, artifact: CachedArtifact, visited: set[str]
    ) -> None:
        dependencies = sorted(artifact.dependencies.items())
        for dep_name, constraint in dependencies:
            self._graph.add_demand(node, dep_name, constraint)
            self._add_candidates(dep_name)
        for dep_name, constraint in dependencies:
            if not self.has_source(dep_name):
                self._add_implied_source(dep_name, constraint, visited)

    def _add_candidates(self, name: str) -> None:
        """Add every registry version of *name*, and of what they need, to the graph."""
        pending = [name]
        while pending:
            current = pending.pop()
            for candidate in self._registry.find(current):
                if self._graph.has_artifact(current, candidate.version):
                    continue
                node = self._graph.artifact(current, candidate.version)
                for dep_name, constraint in sorted(candidate.dependencies.items()):
                    self._graph.add_demand(node, dep_name, constraint)
                    pending.append(dep_name)

    def _add_implied_source(self, name: str, constraint: str, visited: set[str]) -> None:
        """Register dependency *name* as a source backed by the artifact registry.

        The highest known version satisfying *constraint* becomes the
        source's artifact. Without one, the downloader is asked; without a
        downloader the dependency stays a bare demand for the solver to
        report.
        """
        source = Source(name, constraint)
        for candidate in self._registry.find(name):
            if source.version_constraint.satisfies(candidate.version):
                source.cached_artifact = candidate
                break
        else:
            if self._downloader is None:
                logger.debug("No known artifact satisfies %s (%s)", name, constraint)
                return
        self._register(source, True, visited, implied=True)

    def _expand_manifest(
        self, artifact: CachedArtifact, include_dependencies: bool, visited: set[str]
    ) -> None:
        manifest = artifact.manifest_path
        if manifest is None:
            return
        identity = artifact.artifact_name
        if identity in visited:
            logger.debug("Skipping already expanded manifest of %s", identity)
            return
        visited.add(identity)

        logger.debug("Expanding nested manifest %s", manifest)
        for nested in self._manifest_parser.parse(manifest):
            if self._is_declared(nested.name):
                continue
            self._register(nested, include_dependencies, visited)

    # -- Resolution -----------------------------------------------------------

    def resolve(self, names: Iterable[str] | None = None) -> list[CachedArtifact]:
        """Resolve the requested sources and everything they depend on.

        Args:
            names: Source names to use as roots. Defaults to every
                declared source.

        Returns:
            The transitive closure of the roots as ``CachedArtifact``s,
            one per artifact name, sorted by name and version.

        Raises:
            SourceNotFound: If a requested name was never registered.
            NoSolutionError: If the demands cannot all be satisfied.
        """
        if names is None:
            requested = [s.name for s in self.declared_sources]
        else:
            requested = list(names)
        roots = {}
        for name in requested:
            roots[name] = self.get_source(name).version_constraint
        locked = {
            s.name: s.cached_artifact.version for s in self.declared_sources
        }

        assignment = self._solver.solve(self._graph, roots, locked=locked)

        artifacts = []
        for name, version in assignment.items():
            source = self._sources.get(name)
            if source is not None and source.cached_artifact.version == version:
                artifacts.append(source.cached_artifact)
            else:
                artifacts.append(self._registry.get(name, version))

        logger.info(
            "Resolved %d root(s) into %d artifact(s)", len(roots), len(artifacts)
        )
        return sorted(artifacts)
