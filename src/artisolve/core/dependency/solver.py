"""Deterministic backtracking solver over the dependency graph.

Given root demands, the solver chooses exactly one version per artifact
name so that every demand reachable from the roots is satisfied.

Search
------
Chronological backtracking. At each step the pending name with the fewest
remaining candidates is decided next (ties broken by name). Candidates are
the known versions that satisfy every demand accumulated so far, tried
highest first. Selecting a version adds that node's demands; a demand that
an already selected version violates rejects the candidate, and a pending
name left without candidates sends the search back to the nearest
decision. Nothing in the search iterates an unordered collection, so
identical inputs always produce identical assignments.

Feasibility
-----------
Before searching, the reachable part of the graph is encoded as CNF and
handed to a CDCL solver (Glucose3 via python-sat):

- one variable per ``(name, version)`` node,
- pairwise at-most-one clauses per name,
- one at-least-one clause per root over its satisfying versions,
- one implication clause per demand:
  ``x_{A,v} -> OR_{w satisfies c} x_{B,w}``.

The encoding is satisfiable if and only if the search finds an assignment,
so an UNSAT answer is reported immediately instead of exhausting the
search tree. The encoding follows the OPIUM approach (Tucker et al.,
ICSE 2007).
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field

from pysat.solvers import Solver as SatSolver

from artisolve.core.dependency.constraints import (
    VersionConstraint,
    coerce_constraint,
)
from artisolve.core.dependency.graph import DependencyGraph
from artisolve.exceptions import NoSolutionError

logger = logging.getLogger(__name__)

ROOT_REQUESTER = "<root>"

# Accumulated demands per name: (requester label, constraint).
_Demands = dict[str, list[tuple[str, VersionConstraint]]]


# ---------------------------------------------------------------------------
# Assignment: The output of resolution
# ---------------------------------------------------------------------------


@dataclass
class Assignment:
    """One chosen version per artifact name.

    Attributes:
        versions: Mapping of artifact name -> chosen version, in name order.
    """

    versions: dict[str, str] = field(default_factory=dict)

    def __getitem__(self, name: str) -> str:
        return self.versions[name]

    def __contains__(self, name: object) -> bool:
        return name in self.versions

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self.versions))

    def __len__(self) -> int:
        return len(self.versions)

    def items(self) -> list[tuple[str, str]]:
        return sorted(self.versions.items())

    def as_pairs(self) -> set[tuple[str, str]]:
        """Return the assignment as a set of ``(name, version)`` pairs."""
        return set(self.versions.items())


class _SearchExhausted(Exception):
    """Internal signal: the step budget ran out."""


# ---------------------------------------------------------------------------
# Solver
# ---------------------------------------------------------------------------


class Solver:
    """Backtracking version solver.

    Args:
        max_steps: Optional bound on the number of search steps. When the
            bound is exceeded, ``solve`` raises ``NoSolutionError``.
        check_feasibility: Run the SAT feasibility check before searching.
    """

    def __init__(
        self, max_steps: int | None = None, check_feasibility: bool = True
    ) -> None:
        if max_steps is not None and max_steps < 1:
            raise ValueError("max_steps must be a positive integer")
        self._max_steps = max_steps
        self._check_feasibility = check_feasibility
        self._steps = 0
        self._last_conflict: tuple[str, list[tuple[str, VersionConstraint]]] | None = None

    @property
    def steps(self) -> int:
        """Number of search steps taken by the most recent ``solve`` call."""
        return self._steps

    def solve(
        self,
        graph: DependencyGraph,
        roots: Mapping[str, str | VersionConstraint | None],
        locked: Mapping[str, str] | None = None,
    ) -> Assignment:
        """Find a consistent version assignment for *roots*.

        Args:
            graph: The dependency graph to search.
            roots: Root demands, artifact name -> constraint.
            locked: Names whose candidates are restricted to one exact
                version whenever they appear in the solution.

        Returns:
            The ``Assignment`` covering the roots and their transitive
            demands.

        Raises:
            NoSolutionError: If no assignment satisfies every demand, or
                the step budget is exhausted.
        """
        locked = dict(locked or {})
        initial: _Demands = {}
        for name in sorted(roots):
            initial[name] = [(ROOT_REQUESTER, coerce_constraint(roots[name]))]

        for name, reqs in initial.items():
            if not self._candidates(graph, name, reqs, locked):
                raise self._conflict_error(graph, name, reqs, locked)

        if not initial:
            return Assignment()

        if self._check_feasibility and not self._feasible(graph, initial, locked):
            conflicts = self._diagnose_failure(graph, initial, locked)
            culprit = conflicts[0] if conflicts else None
            raise NoSolutionError(
                "Unable to find a version assignment satisfying all demands",
                artifact_name=culprit[0] if culprit else None,
                demands=culprit[1] if culprit else None,
                conflicts=[c[2] for c in conflicts],
            )

        self._steps = 0
        self._last_conflict = None
        try:
            selected = self._search(graph, {}, initial, locked)
        except _SearchExhausted:
            raise NoSolutionError(
                f"Search budget of {self._max_steps} steps exhausted "
                "before a solution was found"
            ) from None

        if selected is None:
            if self._last_conflict is not None:
                name, reqs = self._last_conflict
                raise self._conflict_error(graph, name, reqs, locked)
            raise NoSolutionError(
                "Unable to find a version assignment satisfying all demands"
            )

        logger.debug(
            "Solved %d root(s) into %d artifact(s) in %d step(s)",
            len(initial),
            len(selected),
            self._steps,
        )
        return Assignment(versions=dict(sorted(selected.items())))

    # -- Search ---------------------------------------------------------------

    @staticmethod
    def _candidates(
        graph: DependencyGraph,
        name: str,
        reqs: list[tuple[str, VersionConstraint]],
        locked: Mapping[str, str],
    ) -> list[str]:
        versions = graph.get_versions(name)
        if name in locked:
            versions = [v for v in versions if v == locked[name]]
        return [v for v in versions if all(c.satisfies(v) for _, c in reqs)]

    def _tick(self) -> None:
        self._steps += 1
        if self._max_steps is not None and self._steps > self._max_steps:
            raise _SearchExhausted()

    def _search(
        self,
        graph: DependencyGraph,
        selected: dict[str, str],
        demands: _Demands,
        locked: Mapping[str, str],
    ) -> dict[str, str] | None:
        pending = sorted(n for n in demands if n not in selected)
        if not pending:
            return selected
        self._tick()

        # Most constrained name first.
        best_name = pending[0]
        best_candidates: list[str] | None = None
        for name in pending:
            candidates = self._candidates(graph, name, demands[name], locked)
            if best_candidates is None or len(candidates) < len(best_candidates):
                best_name, best_candidates = name, candidates
                if not candidates:
                    break

        if not best_candidates:
            self._last_conflict = (best_name, list(demands[best_name]))
            return None

        for version in best_candidates:
            node = graph.get_node(best_name, version)
            requester = f"{best_name}@{version}"
            extended: _Demands = {n: list(r) for n, r in demands.items()}
            clash = False
            for demand in node.demands if node else []:
                extended.setdefault(demand.name, []).append((requester, demand.constraint))
                chosen = version if demand.name == best_name else selected.get(demand.name)
                if chosen is not None and not demand.constraint.satisfies(chosen):
                    self._last_conflict = (demand.name, extended[demand.name])
                    clash = True
                    break
            if clash:
                continue

            result = self._search(
                graph, {**selected, best_name: version}, extended, locked
            )
            if result is not None:
                return result

        return None

    # -- Feasibility ----------------------------------------------------------

    @staticmethod
    def _reachable_names(
        graph: DependencyGraph, roots: _Demands, locked: Mapping[str, str]
    ) -> list[str]:
        seen: set[str] = set()
        order: list[str] = []
        stack = sorted(roots, reverse=True)
        while stack:
            name = stack.pop()
            if name in seen:
                continue
            seen.add(name)
            order.append(name)
            for version in graph.get_versions(name):
                if name in locked and version != locked[name]:
                    continue
                for demand in graph.get_demands(name, version):
                    if demand.name not in seen:
                        stack.append(demand.name)
        return sorted(order)

    def _encode_sat(
        self, graph: DependencyGraph, roots: _Demands, locked: Mapping[str, str]
    ) -> tuple[list[list[int]], dict[tuple[str, str], int]]:
        """Encode the reachable resolution problem as CNF.

        Returns:
            A tuple of (clauses, var_map) where var_map maps each encoded
            ``(name, version)`` to its SAT variable.
        """
        clauses: list[list[int]] = []
        var_map: dict[tuple[str, str], int] = {}
        versions_by_name: dict[str, list[int]] = defaultdict(list)

        for name in self._reachable_names(graph, roots, locked):
            for version in graph.get_versions(name):
                if name in locked and version != locked[name]:
                    continue
                var = len(var_map) + 1
                var_map[(name, version)] = var
                versions_by_name[name].append(var)

        # At most one version per name
        for variables in versions_by_name.values():
            for i in range(len(variables)):
                for j in range(i + 1, len(variables)):
                    clauses.append([-variables[i], -variables[j]])

        # Roots: at least one satisfying version each
        for name, reqs in roots.items():
            clauses.append([
                var_map[(name, v)]
                for v in self._candidates(graph, name, reqs, locked)
            ])

        # Demands: node implies one of the satisfying versions
        for (name, version), var in var_map.items():
            for demand in graph.get_demands(name, version):
                satisfying = [
                    var_map[(demand.name, v)]
                    for v in graph.satisfying_versions(demand.name, demand.constraint)
                    if (demand.name, v) in var_map
                ]
                clauses.append([-var] + satisfying)

        return clauses, var_map

    def _feasible(
        self, graph: DependencyGraph, roots: _Demands, locked: Mapping[str, str]
    ) -> bool:
        clauses, _ = self._encode_sat(graph, roots, locked)
        sat = SatSolver(name="g3", bootstrap_with=clauses)
        try:
            return bool(sat.solve())
        finally:
            sat.delete()

    # -- Diagnostics ----------------------------------------------------------

    def _conflict_error(
        self,
        graph: DependencyGraph,
        name: str,
        reqs: list[tuple[str, VersionConstraint]],
        locked: Mapping[str, str],
    ) -> NoSolutionError:
        demands = [(requester, c.raw) for requester, c in reqs]
        return NoSolutionError(
            f"Unable to satisfy demands on {name!r}",
            artifact_name=name,
            demands=demands,
            conflicts=[self._describe(graph, name, demands, locked)],
        )

    @staticmethod
    def _describe(
        graph: DependencyGraph,
        name: str,
        demands: list[tuple[str, str]],
        locked: Mapping[str, str],
    ) -> str:
        versions = graph.get_versions(name)
        if not versions:
            available = "none known"
        else:
            available = ", ".join(versions)
        if name in locked:
            available += f"; locked to {locked[name]}"
        wanted = ", ".join(f"{requester} requires {c!r}" for requester, c in demands)
        return f"{name}: {wanted} (available: {available})"

    def _diagnose_failure(
        self, graph: DependencyGraph, roots: _Demands, locked: Mapping[str, str]
    ) -> list[tuple[str, list[tuple[str, str]], str]]:
        """Explain an infeasible problem.

        Looks at demands whose requester has a single possible version (the
        roots, locked names and single-version artifacts) and reports every
        name whose demands from those requesters admit no common version.
        Falls back to demands that no known version satisfies at all.

        Returns:
            ``(name, demands, description)`` triples in name order.
        """
        reachable = self._reachable_names(graph, roots, locked)
        fixed: _Demands = {n: list(r) for n, r in roots.items()}
        for name in reachable:
            versions = graph.get_versions(name)
            if name in locked:
                versions = [v for v in versions if v == locked[name]]
            if len(versions) != 1:
                continue
            for demand in graph.get_demands(name, versions[0]):
                fixed.setdefault(demand.name, []).append(
                    (f"{name}@{versions[0]}", demand.constraint)
                )

        found: list[tuple[str, list[tuple[str, str]], str]] = []
        for name in sorted(fixed):
            if not self._candidates(graph, name, fixed[name], locked):
                demands = [(r, c.raw) for r, c in fixed[name]]
                found.append((name, demands, self._describe(graph, name, demands, locked)))

        if not found:
            for name in reachable:
                for node, demand in graph.demands_on(name):
                    if node.name not in reachable:
                        continue
                    if not graph.satisfying_versions(name, demand.constraint):
                        demands = [(node.label, demand.constraint.raw)]
                        found.append(
                            (name, demands, self._describe(graph, name, demands, locked))
                        )

        return found
