"""Source: a top-level, user-declared dependency reference."""

from __future__ import annotations

from typing import Any

from artisolve.core.artifacts.models import CachedArtifact
from artisolve.core.dependency.constraints import VersionConstraint, coerce_constraint
from artisolve.core.sources.locations import Location
from artisolve.exceptions import ArtifactNotFound, InvalidArtifactError


class Source:
    """A named artifact with a version constraint and a location.

    The cached artifact is looked up through the location on first access
    and kept for the lifetime of the source. A downloader that
    materializes the artifact itself can hand it over by assigning
    ``cached_artifact``.

    Args:
        name: Artifact name, unique within one resolver.
        version_constraint: Constraint the artifact's version must satisfy.
            Strings are parsed; None means any version.
        location: Where the artifact comes from. A source without a
            location must be given its artifact directly.
    """

    def __init__(
        self,
        name: str,
        version_constraint: str | VersionConstraint | None = None,
        location: Location | None = None,
    ) -> None:
        self.name = name
        self.version_constraint = coerce_constraint(version_constraint)
        self.location = location
        self._cached_artifact: CachedArtifact | None = None

    @property
    def downloaded(self) -> bool:
        """True if the artifact is materialized and can be used as-is."""
        if self._cached_artifact is not None:
            return True
        return self.location is not None and self.location.is_cached(self)

    @property
    def cached_artifact(self) -> CachedArtifact:
        """The materialized artifact.

        Raises:
            ArtifactNotFound: If the artifact is not materialized.
            InvalidArtifactError: If the artifact does not match this source.
        """
        if self._cached_artifact is None:
            if self.location is None:
                raise ArtifactNotFound(
                    f"Source {self.name!r} has no location and no cached artifact"
                )
            self.cached_artifact = self.location.fetch(self)
        return self._cached_artifact

    @cached_artifact.setter
    def cached_artifact(self, artifact: CachedArtifact) -> None:
        if artifact.artifact_name != self.name:
            raise InvalidArtifactError(
                f"Source {self.name!r} resolved to artifact "
                f"{artifact.artifact_name!r}"
            )
        if not self.version_constraint.satisfies(artifact.version):
            raise InvalidArtifactError(
                f"Artifact {artifact.name} does not satisfy "
                f"{self.name} ({self.version_constraint.raw})"
            )
        self._cached_artifact = artifact

    @property
    def resolved_version(self) -> str:
        return self.cached_artifact.version

    def validate_cached(self) -> bool:
        """Ask the location whether the cached artifact is still valid."""
        if self._cached_artifact is None:
            return False
        if self.location is None:
            return True
        return self.location.validate_cached(self._cached_artifact)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "constraint": self.version_constraint.raw}
        if self.location is not None:
            data["location"] = self.location.to_dict()
        return data

    def __repr__(self) -> str:
        return (
            f"Source({self.name!r}, {self.version_constraint.raw!r}, "
            f"location={self.location!r})"
        )

    def __str__(self) -> str:
        location = f" ({self.location})" if self.location is not None else ""
        return f"{self.name} ({self.version_constraint.raw}){location}"
