"""Artisolve exception hierarchy.

All public exceptions inherit from ArtisolveError, giving callers a single
base class to catch when they want to handle any resolution failure
without swallowing unrelated errors.
"""

from __future__ import annotations


class ArtisolveError(Exception):
    """Base exception for all Artisolve errors."""


class DuplicateSourceDefined(ArtisolveError):
    """Raised when a source is registered under a name that is already taken.

    A resolver holds at most one source per artifact name. A second
    registration is a conflict, never a merge.
    """


class NotFound(ArtisolveError, LookupError):
    """Raised when a lookup targets something that was never registered."""


class SourceNotFound(NotFound):
    """Raised when no source is registered under the requested name."""


class ArtifactNotFound(NotFound):
    """Raised when an artifact is not materialized or not known.

    Covers sources whose location has no cached copy yet and registry
    lookups for a (name, version) pair that was never added.
    """


class InvalidArtifactError(ArtisolveError):
    """Raised when a materialized artifact does not match its source.

    Covers name mismatches and versions outside the source's constraint.
    """


class ResolutionError(ArtisolveError):
    """Raised when dependency resolution fails."""


class NoSolutionError(ResolutionError):
    """Raised when no version assignment satisfies every demand.

    Attributes:
        artifact_name: The artifact whose demands could not be satisfied
            together, or None when no single culprit was identified.
        demands: ``(requester, constraint)`` pairs on ``artifact_name``.
            The requester is ``"name@version"`` or ``"<root>"``.
        conflicts: Human-readable descriptions of the failure.
    """

    def __init__(
        self,
        message: str,
        artifact_name: str | None = None,
        demands: list[tuple[str, str]] | None = None,
        conflicts: list[str] | None = None,
    ) -> None:
        self.artifact_name = artifact_name
        self.demands = list(demands or [])
        self.conflicts = list(conflicts or [])
        if self.conflicts:
            message = message + "\n" + "\n".join(f"  - {c}" for c in self.conflicts)
        super().__init__(message)


class ParseError(ArtisolveError):
    """Raised when a manifest or descriptor file cannot be parsed."""


class ManifestError(ParseError):
    """Raised for malformed Depfile manifests.

    Covers invalid YAML, a missing ``sources`` list, entries without a
    name, conflicting location keys, and names declared twice.
    """


class MetadataError(ParseError):
    """Raised when an artifact descriptor is missing or malformed."""


class LockfileError(ArtisolveError):
    """Raised for lockfile serialization or parsing failures."""
