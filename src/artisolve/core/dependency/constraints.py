"""Version constraints and demand edges for the dependency graph.

This module provides the foundational data types for declaring version
requirements between artifacts.

Constraint syntax covers the operators used by artifact descriptors and
manifests: exact match (``=``, ``==`` or a bare version), not-equal
(``!=``), ranges (``>=``, ``<=``, ``>``, ``<``), pessimistic (``~>``),
caret (``^``), tilde (``~``), wildcard (``*``), and compound
comma-separated constraints.

Versions are dotted numeric identifiers with one to three components
(``1``, ``1.2``, ``1.2.3``); missing components are zero. Pre-release and
build suffixes are accepted but do not affect ordering.

References
----------
.. [SemVer] Preston-Werner, T. (2013). "Semantic Versioning 2.0.0."
   https://semver.org/
"""

from __future__ import annotations

import re
from dataclasses import dataclass


# ---------------------------------------------------------------------------
# Version comparison utilities
# ---------------------------------------------------------------------------

_VERSION_BODY = (
    r"(?:0|[1-9]\d*)(?:\.(?:0|[1-9]\d*)){0,2}"
    r"(?:-[0-9A-Za-z\-.]+)?(?:\+[0-9A-Za-z\-.]+)?"
)

_VERSION_RE = re.compile(
    r"^(?P<major>0|[1-9]\d*)(?:\.(?P<minor>0|[1-9]\d*))?(?:\.(?P<patch>0|[1-9]\d*))?"
    r"(?:-(?P<pre>[0-9A-Za-z\-.]+))?"
    r"(?:\+(?P<build>[0-9A-Za-z\-.]+))?$"
)


def parse_version(version: str) -> tuple[int, int, int]:
    """Parse a version string into a comparable (major, minor, patch) tuple.

    Pre-release and build metadata are stripped for ordering purposes.

    Args:
        version: Version string (e.g., "1.2.3", "0.10", "2").

    Returns:
        A (major, minor, patch) integer tuple.

    Raises:
        ValueError: If the string is not a valid version.
    """
    m = _VERSION_RE.match(str(version).strip())
    if not m:
        raise ValueError(f"Invalid version: {version!r}")
    return (
        int(m.group("major")),
        int(m.group("minor") or 0),
        int(m.group("patch") or 0),
    )


def version_key(version: str) -> tuple[tuple[int, int, int], str]:
    """Ascending sort key for version strings.

    The raw string breaks ties between equal-valued spellings such as
    ``1.0`` and ``1.0.0`` so that ordering stays total.
    """
    return parse_version(version), version


def _component_count(version: str) -> int:
    core = re.split(r"[-+]", version.strip(), maxsplit=1)[0]
    return len(core.split("."))


# ---------------------------------------------------------------------------
# VersionConstraint: Declarative version requirement
# ---------------------------------------------------------------------------

# Longer operators first so "~>" is not read as "~" and ">=" not as ">".
_CONSTRAINT_ATOM_RE = re.compile(
    r"^\s*(?P<op>~>|==|!=|>=|<=|=|>|<|\^|~)?\s*"
    r"(?P<ver>" + _VERSION_BODY + r")\s*$"
)


@dataclass(frozen=True)
class VersionConstraint:
    """A version constraint as written in a descriptor or manifest.

    Supports:
    - Exact match: ``= 1.0.0``, ``==1.0.0`` or ``1.0.0``
    - Not-equal: ``!=1.0.0``
    - Ranges: ``>=1.0.0``, ``<=2.0.0``, ``>1.0.0``, ``<2.0.0``
    - Pessimistic: ``~> 1.2.3`` (>=1.2.3,<1.3.0), ``~> 1.2`` (>=1.2,<2.0)
    - Caret and tilde: ``^1.2.0``, ``~1.2.0``
    - Wildcard (any version): ``*`` or the empty string
    - Compound (comma-separated, all must hold): ``>=1.0.0,<2.0.0``

    Attributes:
        raw: The constraint string as authored (e.g., "~> 0.10.0").
    """

    raw: str

    def __post_init__(self) -> None:
        # Fail at construction rather than on first use.
        for atom in self._atoms():
            self._parse_atom(atom)

    def _atoms(self) -> list[str]:
        stripped = self.raw.strip()
        if stripped in ("", "*"):
            return []
        return [a.strip() for a in stripped.split(",") if a.strip()]

    @property
    def is_any(self) -> bool:
        """True if the constraint admits every version."""
        return not self._atoms()

    def satisfies(self, version: str) -> bool:
        """Check whether a version string satisfies this constraint.

        For compound constraints, ALL atoms must be satisfied.

        Args:
            version: A version string (e.g., "1.2.3").

        Returns:
            True if the version satisfies every atom in this constraint.

        Raises:
            ValueError: If *version* is not a valid version.
        """
        ver_tuple = parse_version(version)
        for atom in self._atoms():
            if not self._atom_satisfies(atom, ver_tuple):
                return False
        return True

    @staticmethod
    def _parse_atom(atom: str) -> tuple[str, str]:
        m = _CONSTRAINT_ATOM_RE.match(atom)
        if not m:
            raise ValueError(f"Invalid constraint atom: {atom!r}")
        return m.group("op") or "=", m.group("ver")

    @classmethod
    def _atom_satisfies(cls, atom: str, ver_tuple: tuple[int, int, int]) -> bool:
        """Evaluate a single constraint atom against a parsed version tuple."""
        op, raw_target = cls._parse_atom(atom)
        target = parse_version(raw_target)

        if op in ("=", "=="):
            return ver_tuple == target
        elif op == "!=":
            return ver_tuple != target
        elif op == ">=":
            return ver_tuple >= target
        elif op == "<=":
            return ver_tuple <= target
        elif op == ">":
            return ver_tuple > target
        elif op == "<":
            return ver_tuple < target
        elif op == "~>":
            # Pessimistic: the last written component may grow, the ones
            # before it are fixed. "~> 1" behaves like "~> 1.0".
            if ver_tuple < target:
                return False
            if _component_count(raw_target) == 3:
                return ver_tuple[:2] == target[:2]
            return ver_tuple[0] == target[0]
        elif op == "^":
            # Caret: same major, or same major.minor when major is 0.
            if target[0] == 0:
                return (
                    ver_tuple[0] == target[0]
                    and ver_tuple[1] == target[1]
                    and ver_tuple >= target
                )
            return ver_tuple[0] == target[0] and ver_tuple >= target
        elif op == "~":
            return (
                ver_tuple[0] == target[0]
                and ver_tuple[1] == target[1]
                and ver_tuple >= target
            )
        else:  # pragma: no cover
            raise ValueError(f"Unknown operator: {op!r}")

    def __str__(self) -> str:
        return self.raw

    def __repr__(self) -> str:
        return f"VersionConstraint({self.raw!r})"


ANY = VersionConstraint("*")


def coerce_constraint(value: str | VersionConstraint | None) -> VersionConstraint:
    """Return *value* as a ``VersionConstraint``; None means any version."""
    if value is None:
        return ANY
    if isinstance(value, VersionConstraint):
        return value
    return VersionConstraint(str(value))


# ---------------------------------------------------------------------------
# Demand: Edge type in the dependency graph
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Demand:
    """A directed demand edge from one artifact-version to another artifact.

    Represents: "using artifact X at version V *requires* that artifact
    ``name`` is also present at some version satisfying ``constraint``."

    Attributes:
        name: The name of the required artifact.
        constraint: Version constraint the chosen version must satisfy.
    """

    name: str
    constraint: VersionConstraint
