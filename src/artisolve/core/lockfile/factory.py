"""Lockfile factory --- constructing lockfiles from resolution results.

``from_resolution`` builds a ``Lockfile`` from the artifact list returned
by ``Resolver.resolve()``::

    artifacts = resolver.resolve()
    lockfile = Lockfile.from_resolution(artifacts, sources=resolver.declared_sources)
    lockfile.write(Path("artisolve-lock.json"))
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from artisolve.core.dependency.constraints import VersionConstraint
from artisolve.core.lockfile.models import LockedArtifact

if TYPE_CHECKING:
    from artisolve.core.artifacts.models import CachedArtifact
    from artisolve.core.sources.source import Source


def _from_resolution(
    cls: type,
    artifacts: Iterable[CachedArtifact],
    sources: Iterable[Source] | None = None,
    roots: Iterable[str] | None = None,
) -> Any:
    """Create a lockfile from resolved artifacts.

    Args:
        artifacts: The resolved artifact set, one per name.
        sources: Registered sources. Entries for these names record the
            source's location.
        roots: Names the resolution started from. Defaults to the names of
            ``sources`` present in ``artifacts``.

    Returns:
        A new ``Lockfile`` populated from the resolution result.

    Raises:
        ValueError: If ``artifacts`` names the same artifact twice.
    """
    resolved: dict[str, CachedArtifact] = {}
    for artifact in artifacts:
        if artifact.artifact_name in resolved:
            raise ValueError(
                f"Resolution contains {artifact.artifact_name!r} more than once"
            )
        resolved[artifact.artifact_name] = artifact

    by_name = {s.name: s for s in (sources or [])}

    lf = cls()
    for name in sorted(resolved):
        artifact = resolved[name]
        dependencies: dict[str, str] = {}
        for dep_name, constraint in sorted(artifact.dependencies.items()):
            dep = resolved.get(dep_name)
            if dep is not None and VersionConstraint(constraint).satisfies(dep.version):
                dependencies[dep_name] = dep.version

        source = by_name.get(name)
        location = source.location.to_dict() if source and source.location else {}

        lf.add_artifact(LockedArtifact(
            name=name,
            version=artifact.version,
            integrity=cls.descriptor_integrity(artifact.to_dict()),
            location=location,
            dependencies=dependencies,
        ))

    if roots is None:
        roots = [name for name in by_name if name in resolved]
    lf.metadata.roots = sorted(roots)
    return lf
