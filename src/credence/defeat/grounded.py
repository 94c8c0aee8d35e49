"""Grounded semantics for defeater attack graphs.

If defeater A lists B in ``defeated_by``, then B attacks A. The grounded
extension is the least fixed point of "accept what is only attacked by
rejected defeaters, reject what an accepted defeater attacks". It does not
depend on the order defeaters are visited in, unlike
:func:`credence.defeat.meta.is_defeater_active`, and leaves every defeater
on an unresolved cycle ``undecided``:

    chain  C -> B -> A     C accepted, B rejected, A accepted (reinstated)
    2-cycle A <-> B        both undecided
    3-cycle                all undecided
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from typing import Literal

from credence.defeat.types import DefeaterStatus, ExtendedDefeater

logger = logging.getLogger(__name__)

GroundedStatus = Literal["accepted", "rejected", "undecided"]


@dataclass(frozen=True, slots=True)
class DefeaterGraph:
    """Attack graph: ``attacks[a]`` is the set of defeaters ``a`` attacks."""

    nodes: dict[str, ExtendedDefeater]
    attacks: dict[str, frozenset[str]]

    def attackers_of(self, defeater_id: str) -> set[str]:
        return {a for a, targets in self.attacks.items() if defeater_id in targets}


@dataclass(frozen=True, slots=True)
class GroundedExtension:
    accepted: frozenset[str] = field(default_factory=frozenset)
    rejected: frozenset[str] = field(default_factory=frozenset)
    undecided: frozenset[str] = field(default_factory=frozenset)
    iterations: int = 0
    converged: bool = True


def build_defeater_graph(defeaters: Sequence[ExtendedDefeater]) -> DefeaterGraph:
    """Build the attack relation from ``defeated_by``.

    References to defeaters outside ``defeaters`` are dropped.
    """
    nodes = {d.id: d for d in defeaters}
    attacks: dict[str, set[str]] = {d_id: set() for d_id in nodes}
    for d in defeaters:
        for attacker_id in d.defeated_by or ():
            if attacker_id in nodes:
                attacks[attacker_id].add(d.id)
    return DefeaterGraph(nodes=nodes, attacks={k: frozenset(v) for k, v in attacks.items()})


def compute_grounded_extension(graph: DefeaterGraph, max_iterations: int = 1000) -> GroundedExtension:
    """Kleene iteration to the grounded extension.

    Each round first accepts every unclassified defeater whose attackers are
    all rejected (trivially true when it has none), then rejects every
    unclassified defeater with an accepted attacker. Stops at a fixed point
    or after ``max_iterations`` rounds; ``converged`` is False only in the
    latter case.
    """
    attacked_by: dict[str, set[str]] = {d_id: set() for d_id in graph.nodes}
    for attacker_id, targets in graph.attacks.items():
        for target_id in targets:
            if target_id in attacked_by:
                attacked_by[target_id].add(attacker_id)

    accepted: set[str] = set()
    rejected: set[str] = set()
    iterations = 0
    changed = True
    while changed and iterations < max_iterations:
        changed = False
        iterations += 1

        for d_id in graph.nodes:
            if d_id in accepted or d_id in rejected:
                continue
            if attacked_by[d_id] <= rejected:
                accepted.add(d_id)
                changed = True

        for d_id in graph.nodes:
            if d_id in accepted or d_id in rejected:
                continue
            if attacked_by[d_id] & accepted:
                rejected.add(d_id)
                changed = True

    undecided = set(graph.nodes) - accepted - rejected
    if changed:
        logger.warning("Grounded extension did not converge after %d iterations", iterations)
    if undecided:
        logger.debug("Grounded extension leaves %d defeater(s) undecided", len(undecided))
    return GroundedExtension(
        accepted=frozenset(accepted),
        rejected=frozenset(rejected),
        undecided=frozenset(undecided),
        iterations=iterations,
        converged=not changed,
    )


def resolve_defeater_cycles(
    defeaters: Sequence[ExtendedDefeater],
) -> tuple[list[ExtendedDefeater], GroundedExtension]:
    """Update defeater status from the grounded extension.

    Accepted pending defeaters become active (other statuses are kept),
    rejected defeaters become resolved, undecided ones are left alone.
    """
    extension = compute_grounded_extension(build_defeater_graph(defeaters))
    resolved: list[ExtendedDefeater] = []
    for d in defeaters:
        if d.id in extension.accepted and d.status is DefeaterStatus.PENDING:
            resolved.append(replace(d, status=DefeaterStatus.ACTIVE))
        elif d.id in extension.rejected:
            resolved.append(replace(d, status=DefeaterStatus.RESOLVED))
        else:
            resolved.append(d)
    return resolved, extension


def detect_defeater_cycles(graph: DefeaterGraph) -> list[list[str]]:
    """Cycles of two or more defeaters in the attack graph.

    Each cycle is reported once, in attack order, starting from the node the
    depth-first walk entered first. Self-attacks are not reported.
    """
    cycles: list[list[str]] = []
    visited: set[str] = set()

    for start in graph.nodes:
        if start in visited:
            continue
        path: list[str] = [start]
        on_path = {start}
        visited.add(start)
        stack = [iter(sorted(graph.attacks.get(start, ())))]
        while stack:
            target = next(stack[-1], None)
            if target is None:
                stack.pop()
                on_path.discard(path.pop())
                continue
            if target in on_path:
                cycle = path[path.index(target):]
                if len(cycle) > 1:
                    cycles.append(list(cycle))
            elif target not in visited:
                visited.add(target)
                path.append(target)
                on_path.add(target)
                stack.append(iter(sorted(graph.attacks.get(target, ()))))
    return cycles


def is_extension_complete(extension: GroundedExtension) -> bool:
    """True when every defeater is accepted or rejected."""
    return not extension.undecided


def grounded_status(defeater_id: str, extension: GroundedExtension) -> GroundedStatus:
    if defeater_id in extension.accepted:
        return "accepted"
    if defeater_id in extension.rejected:
        return "rejected"
    return "undecided"
