"""Tests for the Resolver: source registry, graph expansion, nested
manifests and resolution into CachedArtifacts.

The artifact world comes from the ``store`` fixture in ``tests/conftest.py``:
mysql 1.2.4 depends on nginx and recommends artifact, nginx 0.101.2 depends
on ohai, and thing1 stands alone.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from artisolve.core.artifacts import ArtifactStore, CachedArtifact
from artisolve.core.dependency import ArtifactRegistry, Solver
from artisolve.core.lockfile import Lockfile
from artisolve.core.resolver import Resolver
from artisolve.core.sources import ManifestParser, PathLocation, Source, StoreLocation
from artisolve.exceptions import (
    ArtifactNotFound,
    DuplicateSourceDefined,
    ManifestError,
    NoSolutionError,
    SourceNotFound,
)
from tests.helpers import make_artifact, write_artifact


# ===========================================================================
# Helpers
# ===========================================================================


def _make_source(store: ArtifactStore, name: str, constraint: str = "*") -> Source:
    return Source(name, constraint, location=StoreLocation(store))


def _names(artifacts: list[CachedArtifact]) -> list[str]:
    return [a.name for a in artifacts]


class _RecordingDownloader:
    """Materializes sources from an in-memory table, recording each call."""

    def __init__(self, artifacts: dict[str, CachedArtifact]) -> None:
        self.artifacts = artifacts
        self.calls: list[str] = []

    def download(self, source: Source) -> CachedArtifact:
        self.calls.append(source.name)
        return self.artifacts[source.name]


# ===========================================================================
# Source registry
# ===========================================================================


class TestSourceRegistry:

    def test_add_source(self, store: ArtifactStore) -> None:
        resolver = Resolver(store.registry())
        source = _make_source(store, "mysql", "= 1.2.4")
        resolver.add_source(source)
        assert resolver.has_source("mysql")
        assert resolver.get_source("mysql") is source
        assert resolver.declared_sources == [source]
        assert [s.name for s in resolver.sources] == ["mysql", "artifact", "nginx", "ohai"]

    def test_constructor_sources(self, store: ArtifactStore) -> None:
        mysql = _make_source(store, "mysql")
        thing1 = _make_source(store, "thing1")
        resolver = Resolver(store.registry(), sources=[mysql, thing1])
        assert resolver.declared_sources == [mysql, thing1]

    def test_constructor_accepts_a_single_source(self, store: ArtifactStore) -> None:
        resolver = Resolver(store.registry(), sources=_make_source(store, "thing1"))
        assert resolver.has_source("thing1")

    def test_has_source_accepts_a_source(self, store: ArtifactStore) -> None:
        resolver = Resolver(store.registry(), sources=[_make_source(store, "thing1")])
        assert resolver.has_source(Source("thing1"))
        assert not resolver.has_source(Source("mysql"))
        assert not resolver.has_source("mysql")

    def test_get_source_missing(self, store: ArtifactStore) -> None:
        with pytest.raises(SourceNotFound, match="nginx"):
            Resolver(store.registry()).get_source("nginx")

    def test_duplicate_source(self, store: ArtifactStore) -> None:
        first = _make_source(store, "mysql")
        resolver = Resolver(store.registry(), sources=[first])
        nodes_before = resolver.graph.node_count

        with pytest.raises(DuplicateSourceDefined, match="mysql"):
            resolver.add_source(_make_source(store, "mysql", "= 1.2.4"))

        assert resolver.declared_sources == [first]
        assert resolver.get_source("mysql") is first
        assert resolver.graph.node_count == nodes_before

    def test_add_source_inserts_graph_node(self, store: ArtifactStore) -> None:
        resolver = Resolver(store.registry())
        resolver.add_source(_make_source(store, "thing1"))
        assert resolver.graph.has_artifact("thing1", "0.1.0")

    def test_dependencies_become_demands(self, store: ArtifactStore) -> None:
        resolver = Resolver(store.registry(), sources=[_make_source(store, "mysql")])
        demands = resolver.graph.get_demands("mysql", "1.2.4")
        assert [(d.name, d.constraint.raw) for d in demands] == [
            ("artifact", "~> 0.10.0"),
            ("nginx", ">= 0.1.0"),
        ]
        assert resolver.graph.get_versions("nginx") == ["0.101.2", "0.100.5"]
        assert resolver.graph.get_versions("ohai") == ["1.0.0"]
        assert "thing1" not in resolver.graph.names

    def test_include_dependencies_false(self, store: ArtifactStore) -> None:
        resolver = Resolver(store.registry())
        resolver.add_source(_make_source(store, "mysql"), include_dependencies=False)
        assert resolver.graph.names == {"mysql"}
        assert resolver.graph.get_demands("mysql", "1.2.4") == []
        assert not resolver.has_source("nginx")

    def test_source_artifact_joins_the_registry(self, tmp_path: Path) -> None:
        path = write_artifact(tmp_path, "local", "0.5.0")
        resolver = Resolver(sources=[Source("local", location=PathLocation(path))])
        assert ("local", "0.5.0") in resolver.registry

    def test_unmaterialized_source_is_not_registered(self, store: ArtifactStore) -> None:
        resolver = Resolver(store.registry())
        with pytest.raises(ArtifactNotFound):
            resolver.add_source(_make_source(store, "ghost"))
        assert not resolver.has_source("ghost")
        assert resolver.graph.node_count == 0

    def test_downloader_materializes_missing_sources(self) -> None:
        downloader = _RecordingDownloader({"remote": make_artifact("remote", "1.0.0")})
        resolver = Resolver(downloader=downloader, sources=[Source("remote", ">= 1.0")])
        assert downloader.calls == ["remote"]
        assert resolver.get_source("remote").resolved_version == "1.0.0"
        assert _names(resolver.resolve()) == ["remote-1.0.0"]

    def test_downloader_not_used_for_cached_sources(self, store: ArtifactStore) -> None:
        downloader = _RecordingDownloader({})
        Resolver(
            store.registry(),
            downloader=downloader,
            sources=[_make_source(store, "thing1")],
        )
        assert downloader.calls == []

    def test_nested_manifests_require_a_parser(self) -> None:
        with pytest.raises(ValueError, match="manifest_parser"):
            Resolver(nested_manifests=True)

    def test_skip_dependencies(self, store: ArtifactStore) -> None:
        resolver = Resolver(
            store.registry(),
            sources=[_make_source(store, "mysql")],
            skip_dependencies=True,
        )
        assert resolver.graph.names == {"mysql"}
        assert _names(resolver.resolve()) == ["mysql-1.2.4"]
        assert not resolver.has_source("nginx")
        assert not resolver.has_source("artifact")


# ===========================================================================
# Dependencies as sources
# ===========================================================================


class TestDependencySources:

    def test_dependencies_are_added_as_sources(self, store: ArtifactStore) -> None:
        resolver = Resolver(store.registry(), sources=[_make_source(store, "mysql")])
        assert resolver.has_source("nginx")
        assert resolver.has_source("artifact")
        assert resolver.get_source("nginx").resolved_version == "0.101.2"
        assert resolver.get_source("artifact").version_constraint.raw == "~> 0.10.0"
        assert [s.name for s in resolver.declared_sources] == ["mysql"]

    def test_transitive_dependencies_are_added_as_sources(self, store: ArtifactStore) -> None:
        resolver = Resolver(store.registry(), sources=[_make_source(store, "mysql")])
        assert resolver.get_source("ohai").resolved_version == "1.0.0"

    def test_no_dependency_sources_when_skipped(self, store: ArtifactStore) -> None:
        resolver = Resolver(
            store.registry(),
            sources=[_make_source(store, "mysql")],
            skip_dependencies=True,
        )
        assert not resolver.has_source("nginx")
        assert not resolver.has_source("artifact")

    def test_dependency_without_known_version_stays_a_demand(
        self, store: ArtifactStore, store_root: Path
    ) -> None:
        write_artifact(store_root, "legacy", "1.0.0", dependencies={"nginx": "< 0.50.0"})
        resolver = Resolver(store.registry(), sources=[_make_source(store, "legacy")])
        assert not resolver.has_source("nginx")
        demands = resolver.graph.get_demands("legacy", "1.0.0")
        assert [(d.name, d.constraint.raw) for d in demands] == [("nginx", "< 0.50.0")]

    def test_declared_source_replaces_dependency_source(self, store: ArtifactStore) -> None:
        resolver = Resolver(store.registry(), sources=[_make_source(store, "mysql")])
        nginx = _make_source(store, "nginx", "= 0.100.5")
        resolver.add_source(nginx)

        assert resolver.get_source("nginx") is nginx
        assert [s.name for s in resolver.declared_sources] == ["mysql", "nginx"]
        assert _names(resolver.resolve()) == ["artifact-0.10.0", "mysql-1.2.4", "nginx-0.100.5"]

    def test_declared_source_cannot_be_added_twice_after_replacing(
        self, store: ArtifactStore
    ) -> None:
        resolver = Resolver(store.registry(), sources=[_make_source(store, "mysql")])
        resolver.add_source(_make_source(store, "nginx"))
        with pytest.raises(DuplicateSourceDefined, match="nginx"):
            resolver.add_source(_make_source(store, "nginx"))

    def test_downloader_materializes_dependencies(self) -> None:
        downloader = _RecordingDownloader({
            "app": make_artifact("app", "1.0.0", {"lib": ">= 1.0"}),
            "lib": make_artifact("lib", "1.2.0"),
        })
        resolver = Resolver(downloader=downloader, sources=[Source("app")])
        assert downloader.calls == ["app", "lib"]
        assert resolver.has_source("lib")
        assert _names(resolver.resolve()) == ["app-1.0.0", "lib-1.2.0"]

    def test_dependency_bundles_a_depfile(self, store_root: Path) -> None:
        write_artifact(store_root, "app", "1.0.0", dependencies={"lib": ">= 1.0"})
        write_artifact(store_root, "lib", "1.0.0", depfile=["extra"])
        write_artifact(store_root, "extra", "1.0.0")
        store = ArtifactStore(store_root)

        resolver = Resolver(
            store.registry(),
            sources=[_make_source(store, "app")],
            manifest_parser=ManifestParser(store),
            nested_manifests=True,
        )

        assert resolver.has_source("lib")
        assert resolver.has_source("extra")
        assert [s.name for s in resolver.declared_sources] == ["app", "extra"]
        assert _names(resolver.resolve()) == ["app-1.0.0", "extra-1.0.0", "lib-1.0.0"]

    def test_dependency_depfile_ignored_when_skipped(self, store_root: Path) -> None:
        write_artifact(store_root, "app", "1.0.0", dependencies={"lib": ">= 1.0"})
        write_artifact(store_root, "lib", "1.0.0", depfile=["extra"])
        write_artifact(store_root, "extra", "1.0.0")
        store = ArtifactStore(store_root)

        resolver = Resolver(
            store.registry(),
            sources=[_make_source(store, "app")],
            manifest_parser=ManifestParser(store),
            nested_manifests=True,
            skip_dependencies=True,
        )

        assert not resolver.has_source("lib")
        assert not resolver.has_source("extra")


# ===========================================================================
# Failed registration
# ===========================================================================


class TestFailedRegistration:

    def _make_resolver(self, store: ArtifactStore) -> Resolver:
        return Resolver(
            store.registry(),
            sources=[_make_source(store, "thing1")],
            manifest_parser=ManifestParser(store),
            nested_manifests=True,
        )

    def test_unmaterializable_nested_source_leaves_no_trace(self, store_root: Path) -> None:
        write_artifact(store_root, "thing1", "0.1.0")
        write_artifact(store_root, "app", "1.0.0", depfile=["ghost"])
        store = ArtifactStore(store_root)
        resolver = self._make_resolver(store)
        nodes_before = resolver.graph.node_count
        known_before = len(resolver.registry)

        with pytest.raises(ArtifactNotFound, match="ghost"):
            resolver.add_source(_make_source(store, "app"))

        assert not resolver.has_source("app")
        assert [s.name for s in resolver.sources] == ["thing1"]
        assert resolver.graph.node_count == nodes_before
        assert len(resolver.registry) == known_before
        assert _names(resolver.resolve()) == ["thing1-0.1.0"]

    def test_failed_source_can_be_retried(self, store_root: Path) -> None:
        write_artifact(store_root, "thing1", "0.1.0")
        write_artifact(store_root, "app", "1.0.0", depfile=["ghost"])
        store = ArtifactStore(store_root)
        resolver = self._make_resolver(store)

        with pytest.raises(ArtifactNotFound):
            resolver.add_source(_make_source(store, "app"))
        # The manifest is expanded again on retry, so it fails the same way.
        with pytest.raises(ArtifactNotFound):
            resolver.add_source(_make_source(store, "app"))

        write_artifact(store_root, "ghost", "1.0.0")
        resolver.add_source(_make_source(store, "app"))
        assert resolver.has_source("ghost")

    def test_failure_inside_a_dependency_is_rolled_back(self, store_root: Path) -> None:
        write_artifact(store_root, "thing1", "0.1.0")
        write_artifact(store_root, "app", "1.0.0", dependencies={"lib": ">= 1.0"})
        write_artifact(store_root, "lib", "1.0.0", depfile=["ghost"])
        store = ArtifactStore(store_root)
        resolver = self._make_resolver(store)

        with pytest.raises(ArtifactNotFound):
            resolver.add_source(_make_source(store, "app"))

        assert not resolver.has_source("app")
        assert not resolver.has_source("lib")
        assert not resolver.graph.has_artifact("app", "1.0.0")
        assert not resolver.graph.has_artifact("lib", "1.0.0")

    def test_malformed_nested_manifest_is_rolled_back(self, store_root: Path) -> None:
        write_artifact(store_root, "thing1", "0.1.0")
        app = write_artifact(store_root, "app", "1.0.0")
        (app / "Depfile").write_text("sources: 42\n", encoding="utf-8")
        store = ArtifactStore(store_root)
        resolver = self._make_resolver(store)

        with pytest.raises(ManifestError):
            resolver.add_source(_make_source(store, "app"))

        assert not resolver.has_source("app")
        assert resolver.graph.names == {"thing1"}

    def test_replaced_dependency_source_is_restored(self, store: ArtifactStore) -> None:
        resolver = Resolver(store.registry(), sources=[_make_source(store, "mysql")])
        implied = resolver.get_source("nginx")

        with pytest.raises(ArtifactNotFound):
            resolver.add_source(_make_source(store, "nginx", "> 1.0.0"))

        assert resolver.get_source("nginx") is implied
        assert [s.name for s in resolver.declared_sources] == ["mysql"]


# ===========================================================================
# Resolution
# ===========================================================================


class TestResolve:

    def test_resolve_all_sources(self, store: ArtifactStore) -> None:
        resolver = Resolver(
            store.registry(),
            sources=[_make_source(store, "mysql", "= 1.2.4"), _make_source(store, "thing1")],
        )
        assert _names(resolver.resolve()) == [
            "artifact-0.10.0",
            "mysql-1.2.4",
            "nginx-0.101.2",
            "ohai-1.0.0",
            "thing1-0.1.0",
        ]

    def test_resolve_subset_includes_dependencies(self, store: ArtifactStore) -> None:
        resolver = Resolver(
            store.registry(),
            sources=[_make_source(store, "mysql"), _make_source(store, "thing1")],
        )
        names = _names(resolver.resolve(["mysql"]))
        assert "nginx-0.101.2" in names
        assert "thing1-0.1.0" not in names

    def test_resolve_source_without_dependencies(self, store: ArtifactStore) -> None:
        resolver = Resolver(
            store.registry(),
            sources=[_make_source(store, "mysql"), _make_source(store, "thing1")],
        )
        assert _names(resolver.resolve(["thing1"])) == ["thing1-0.1.0"]

    def test_registered_source_pins_its_version(self, store: ArtifactStore) -> None:
        nginx = _make_source(store, "nginx", "= 0.100.5")
        resolver = Resolver(
            store.registry(), sources=[_make_source(store, "mysql"), nginx]
        )
        artifacts = resolver.resolve()
        assert _names(artifacts) == ["artifact-0.10.0", "mysql-1.2.4", "nginx-0.100.5"]
        assert nginx.cached_artifact in artifacts

    def test_results_are_source_and_registry_artifacts(self, store: ArtifactStore) -> None:
        mysql = _make_source(store, "mysql")
        resolver = Resolver(store.registry(), sources=[mysql])
        by_name = {a.artifact_name: a for a in resolver.resolve()}
        assert by_name["mysql"] is mysql.cached_artifact
        assert by_name["nginx"] is resolver.registry.get("nginx", "0.101.2")
        assert by_name["ohai"].path == store.path_for("ohai", "1.0.0")

    def test_resolve_unknown_name(self, store: ArtifactStore) -> None:
        resolver = Resolver(store.registry(), sources=[_make_source(store, "thing1")])
        with pytest.raises(SourceNotFound):
            resolver.resolve(["mysql"])

    def test_resolve_nothing(self) -> None:
        assert Resolver().resolve() == []

    def test_resolution_is_deterministic(self, store: ArtifactStore) -> None:
        results = []
        for _ in range(3):
            resolver = Resolver(
                store.registry(),
                sources=[_make_source(store, "thing1"), _make_source(store, "mysql")],
            )
            results.append(_names(resolver.resolve()))
        assert results[0] == results[1] == results[2]
        assert _names(resolver.resolve()) == results[0]

    def test_missing_dependency_version(self, store: ArtifactStore, store_root: Path) -> None:
        write_artifact(store_root, "legacy", "1.0.0", dependencies={"nginx": "< 0.50.0"})
        resolver = Resolver(store.registry(), sources=[_make_source(store, "legacy")])
        with pytest.raises(NoSolutionError) as exc_info:
            resolver.resolve()
        assert exc_info.value.artifact_name == "nginx"
        assert ("legacy@1.0.0", "< 0.50.0") in exc_info.value.demands

    def test_source_pin_conflicts_with_demand(self, store: ArtifactStore, store_root: Path) -> None:
        write_artifact(store_root, "modern", "1.0.0", dependencies={"nginx": ">= 0.101.0"})
        resolver = Resolver(
            store.registry(),
            sources=[_make_source(store, "modern"), _make_source(store, "nginx", "= 0.100.5")],
        )
        with pytest.raises(NoSolutionError) as exc_info:
            resolver.resolve()
        err = exc_info.value
        assert err.artifact_name == "nginx"
        assert "locked to 0.100.5" in str(err)

    def test_disjoint_demands_from_two_sources(self, store_root: Path) -> None:
        write_artifact(store_root, "left", "1.0.0", dependencies={"shared": "= 1.0.0"})
        write_artifact(store_root, "right", "1.0.0", dependencies={"shared": "= 2.0.0"})
        write_artifact(store_root, "shared", "1.0.0")
        write_artifact(store_root, "shared", "2.0.0")
        store = ArtifactStore(store_root)
        resolver = Resolver(
            store.registry(),
            sources=[_make_source(store, "left"), _make_source(store, "right")],
        )
        with pytest.raises(NoSolutionError) as exc_info:
            resolver.resolve()
        assert exc_info.value.artifact_name == "shared"
        assert _names(resolver.resolve(["left"])) == ["left-1.0.0", "shared-1.0.0"]

    def test_custom_solver(self, store: ArtifactStore) -> None:
        solver = Solver(check_feasibility=False)
        resolver = Resolver(
            store.registry(), sources=[_make_source(store, "mysql")], solver=solver
        )
        assert len(resolver.resolve()) == 4
        assert solver.steps > 0

    def test_resolution_summary_is_logged(
        self, store: ArtifactStore, caplog: pytest.LogCaptureFixture
    ) -> None:
        resolver = Resolver(store.registry(), sources=[_make_source(store, "mysql")])
        with caplog.at_level(logging.INFO, logger="artisolve.core.resolver"):
            resolver.resolve()
        assert "Resolved 1 root(s) into 4 artifact(s)" in caplog.text

    def test_lockfile_from_resolution(self, store: ArtifactStore) -> None:
        resolver = Resolver(
            store.registry(),
            sources=[_make_source(store, "mysql"), _make_source(store, "thing1")],
        )
        lf = Lockfile.from_resolution(resolver.resolve(), sources=resolver.declared_sources)
        assert lf.validate() == []
        assert lf.metadata.roots == ["mysql", "thing1"]
        assert lf.get_artifact("mysql").location == {"type": "store"}
        assert lf.get_artifact("nginx").location == {}
        assert lf.get_artifact("mysql").dependencies == {
            "artifact": "0.10.0",
            "nginx": "0.101.2",
        }


# ===========================================================================
# Nested manifests
# ===========================================================================


class TestNestedManifests:

    def _make_resolver(self, store: ArtifactStore, *sources: Source) -> Resolver:
        return Resolver(
            store.registry(),
            sources=list(sources),
            manifest_parser=ManifestParser(store),
            nested_manifests=True,
        )

    def test_nested_sources_are_registered(self, store_root: Path) -> None:
        write_artifact(store_root, "app", "1.0.0", depfile=[{"name": "lib", "constraint": "= 2.0.0"}])
        write_artifact(store_root, "lib", "1.0.0")
        write_artifact(store_root, "lib", "2.0.0")
        store = ArtifactStore(store_root)

        resolver = self._make_resolver(store, _make_source(store, "app"))

        assert [s.name for s in resolver.sources] == ["app", "lib"]
        assert resolver.get_source("lib").resolved_version == "2.0.0"
        assert _names(resolver.resolve()) == ["app-1.0.0", "lib-2.0.0"]

    def test_nested_manifests_ignored_when_disabled(self, store_root: Path) -> None:
        write_artifact(store_root, "app", "1.0.0", depfile=["lib"])
        write_artifact(store_root, "lib", "1.0.0")
        store = ArtifactStore(store_root)
        resolver = Resolver(store.registry(), sources=[_make_source(store, "app")])
        assert not resolver.has_source("lib")

    def test_circular_manifests_terminate(
        self, store_root: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        write_artifact(store_root, "app", "1.0.0", depfile=["lib"])
        write_artifact(store_root, "lib", "1.0.0", depfile=["app"])
        store = ArtifactStore(store_root)

        with caplog.at_level(logging.DEBUG, logger="artisolve.core.resolver"):
            resolver = self._make_resolver(store, _make_source(store, "app"))

        assert [s.name for s in resolver.sources] == ["app", "lib"]
        assert _names(resolver.resolve()) == ["app-1.0.0", "lib-1.0.0"]
        assert "Expanding nested manifest" in caplog.text

    def test_self_referencing_manifest(self, store_root: Path) -> None:
        write_artifact(store_root, "app", "1.0.0", depfile=["app"])
        store = ArtifactStore(store_root)
        resolver = self._make_resolver(store, _make_source(store, "app"))
        assert [s.name for s in resolver.sources] == ["app"]

    def test_nested_source_is_not_registered_twice(self, store_root: Path) -> None:
        write_artifact(store_root, "app", "1.0.0", depfile=["lib"])
        write_artifact(store_root, "lib", "1.0.0")
        store = ArtifactStore(store_root)

        resolver = self._make_resolver(
            store, _make_source(store, "app"), _make_source(store, "lib")
        )

        assert [s.name for s in resolver.sources] == ["app", "lib"]

    def test_nested_path_sources(self, tmp_path: Path, store_root: Path) -> None:
        vendored = write_artifact(tmp_path / "vendor", "vendored", "0.3.0")
        write_artifact(
            store_root,
            "app",
            "1.0.0",
            depfile=[{"name": "vendored", "path": str(vendored)}],
        )
        store = ArtifactStore(store_root)
        resolver = self._make_resolver(store, _make_source(store, "app"))
        assert _names(resolver.resolve()) == ["app-1.0.0", "vendored-0.3.0"]

    def test_nested_sources_bring_their_dependencies(self, store_root: Path) -> None:
        write_artifact(store_root, "app", "1.0.0", depfile=["lib"])
        write_artifact(store_root, "lib", "1.0.0", dependencies={"base": ">= 1.0"})
        write_artifact(store_root, "base", "1.0.0")
        store = ArtifactStore(store_root)
        resolver = self._make_resolver(store, _make_source(store, "app"))
        assert _names(resolver.resolve()) == ["app-1.0.0", "base-1.0.0", "lib-1.0.0"]

    def test_empty_registry_with_path_sources(self, tmp_path: Path) -> None:
        path = write_artifact(tmp_path, "solo", "1.0.0")
        resolver = Resolver(
            ArtifactRegistry(),
            sources=[Source("solo", location=PathLocation(path))],
            manifest_parser=ManifestParser(),
            nested_manifests=True,
        )
        assert _names(resolver.resolve()) == ["solo-1.0.0"]
