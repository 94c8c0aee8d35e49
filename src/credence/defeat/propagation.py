"""Transitive defeat through the evidence graph.

When a claim is defeated, claims built on top of it may no longer hold.
Each edge type maps to a remediation:

    B -depends_on-> A   B inherits the defeat           mark_stale
    B -assumes->    A   weaker coupling                 investigate
    A -supports->   B   reverse direction, recheck B    revalidate

Traversal is breadth-first, so a claim reachable along several paths is
reported once, at its shortest distance from the defeated claim.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Literal

from credence.defeat.types import (
    ClaimStatus,
    DefeaterSeverity,
    DefeaterType,
    EdgeType,
    create_defeater,
)
from credence.foundation.errors import ErrorCode, validation_error

if TYPE_CHECKING:
    from credence.defeat.graph import EvidenceGraphStore
    from credence.foundation.config import DefeatConfig

logger = logging.getLogger(__name__)

DependencyType = Literal["depends_on", "assumes", "supports"]
SuggestedAction = Literal["mark_stale", "investigate", "revalidate"]
Direction = Literal["downstream", "upstream"]

_ACTIONS: dict[EdgeType, SuggestedAction] = {
    EdgeType.DEPENDS_ON: "mark_stale",
    EdgeType.ASSUMES: "investigate",
    EdgeType.SUPPORTS: "revalidate",
}
_FORWARD = (EdgeType.DEPENDS_ON, EdgeType.ASSUMES)


@dataclass(frozen=True, slots=True)
class AffectedClaim:
    """A claim reached by defeat propagation.

    ``dependency_path`` runs from the defeated claim up to, but not
    including, this claim. ``depth`` 0 means directly attached to the
    defeated claim.
    """

    claim_id: str
    reason: str
    dependency_path: tuple[str, ...]
    dependency_type: DependencyType
    suggested_action: SuggestedAction
    depth: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "claimId": self.claim_id,
            "reason": self.reason,
            "dependencyPath": list(self.dependency_path),
            "dependencyType": self.dependency_type,
            "suggestedAction": self.suggested_action,
            "depth": self.depth,
        }


def _neighbours(store: EvidenceGraphStore, claim_id: str) -> list[tuple[str, EdgeType]]:
    """Claims one hop downstream of ``claim_id`` for defeat purposes."""
    found = [(e.from_claim_id, e.type) for e in store.get_edges_to(claim_id) if e.type in _FORWARD]
    found.extend((e.to_claim_id, e.type) for e in store.get_edges_from(claim_id) if e.type is EdgeType.SUPPORTS)
    return found


def _short(claim_id: str) -> str:
    return claim_id if len(claim_id) <= 8 else f"{claim_id[:8]}..."


def propagate_defeat(
    store: EvidenceGraphStore,
    defeated_claim_id: str,
    max_depth: int = 10,
) -> list[AffectedClaim]:
    """Every claim transitively affected by defeating ``defeated_claim_id``.

    Results are in BFS order. Claims at ``depth >= max_depth`` are neither
    reported nor expanded. The defeated claim itself is never reported,
    even when a cycle leads back to it.
    """
    if max_depth < 0:
        raise validation_error(
            ErrorCode.DEFEATER_INVALID, field="max_depth", detail=f"must be >= 0, got {max_depth}",
        )

    affected: list[AffectedClaim] = []
    visited = {defeated_claim_id}
    queue: deque[tuple[str, tuple[str, ...], int, EdgeType]] = deque(
        (claim_id, (defeated_claim_id,), 0, edge_type)
        for claim_id, edge_type in _neighbours(store, defeated_claim_id)
    )

    while queue:
        claim_id, path, depth, edge_type = queue.popleft()
        if claim_id in visited or depth >= max_depth:
            continue
        visited.add(claim_id)

        chain = " -> ".join(_short(i) for i in (*path, claim_id))
        affected.append(AffectedClaim(
            claim_id=claim_id,
            reason=f"Transitively affected via {edge_type.value} chain: {chain}",
            dependency_path=path,
            dependency_type=edge_type.value,
            suggested_action=_ACTIONS[edge_type],
            depth=depth,
        ))

        next_path = (*path, claim_id)
        for next_id, next_type in _neighbours(store, claim_id):
            if next_id not in visited:
                queue.append((next_id, next_path, depth + 1, next_type))

    logger.debug("Defeat of %s reaches %d claim(s)", defeated_claim_id, len(affected))
    return affected


def apply_transitive_defeat(
    store: EvidenceGraphStore,
    defeated_claim_id: str,
    affected: list[AffectedClaim],
    create_defeaters: bool = True,
    config: DefeatConfig | None = None,
) -> int:
    """Write the outcome of :func:`propagate_defeat` back to the store.

    Affected claims that are neither defeated nor already stale become
    stale. With ``create_defeaters`` each affected claim also gets a
    ``new_info`` defeater: partial at depth 0, a warning further out.

    Returns:
        Number of claims newly marked stale.
    """
    if config is None:
        from credence.foundation.config import get_config

        config = get_config().defeat

    stale_count = 0
    for item in affected:
        claim = store.get_claim(item.claim_id)
        if claim is None:
            logger.debug("Affected claim %s is not in the store, skipping", item.claim_id)
            continue

        if claim.status not in (ClaimStatus.DEFEATED, ClaimStatus.STALE):
            store.upsert_claim(replace(claim, status=ClaimStatus.STALE))
            stale_count += 1

        if create_defeaters:
            direct = item.depth == 0
            store.add_defeater(create_defeater(
                type=DefeaterType.NEW_INFO,
                description=f'Dependency "{defeated_claim_id}" was defeated. {item.reason}',
                severity=DefeaterSeverity.PARTIAL if direct else DefeaterSeverity.WARNING,
                affected_claim_ids=(item.claim_id,),
                confidence_reduction=config.direct_reduction if direct else config.transitive_reduction,
                auto_resolvable=True,
                evidence=f"Transitive defeat from claim {defeated_claim_id}",
                resolution_action=item.suggested_action,
            ))

    logger.info(
        "Transitive defeat from %s: %d affected, %d newly stale", defeated_claim_id, len(affected), stale_count,
    )
    return stale_count


@dataclass(frozen=True, slots=True)
class DependencyNode:
    id: str
    proposition: str
    status: str
    depth: int


@dataclass(frozen=True, slots=True)
class DependencyEdge:
    from_id: str
    to_id: str
    type: str


@dataclass(frozen=True, slots=True)
class DependencyGraph:
    """Node/edge view of the claims around a root claim."""

    nodes: tuple[DependencyNode, ...]
    edges: tuple[DependencyEdge, ...]

    def node_ids(self) -> list[str]:
        return [n.id for n in self.nodes]

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [
                {"id": n.id, "proposition": n.proposition, "status": n.status, "depth": n.depth}
                for n in self.nodes
            ],
            "edges": [{"from": e.from_id, "to": e.to_id, "type": e.type} for e in self.edges],
        }


def get_dependency_graph(
    store: EvidenceGraphStore,
    root_claim_id: str,
    direction: Direction = "downstream",
    max_depth: int = 5,
) -> DependencyGraph:
    """Claims connected to ``root_claim_id`` by ``depends_on``/``assumes`` edges.

    ``downstream`` answers "what relies on this claim", ``upstream`` answers
    "what does this claim rely on". Nodes deeper than ``max_depth`` are left
    out. Claims missing from the store contribute edges but no node.
    """
    if direction not in ("downstream", "upstream"):
        raise validation_error(
            ErrorCode.GRAPH_INVALID_DIRECTION, field="direction",
            detail=f"expected downstream or upstream, got {direction!r}",
        )

    nodes: list[DependencyNode] = []
    edges: list[DependencyEdge] = []
    visited: set[str] = set()
    queue: deque[tuple[str, int]] = deque([(root_claim_id, 0)])

    while queue:
        claim_id, depth = queue.popleft()
        if claim_id in visited or depth > max_depth:
            continue
        visited.add(claim_id)

        claim = store.get_claim(claim_id)
        if claim is not None:
            nodes.append(DependencyNode(
                id=claim.id,
                proposition=claim.proposition[:100],
                status=claim.status.value,
                depth=depth,
            ))

        if direction == "downstream":
            relevant = store.get_edges_to(claim_id)
        else:
            relevant = store.get_edges_from(claim_id)
        for edge in relevant:
            if edge.type not in _FORWARD:
                continue
            edges.append(DependencyEdge(edge.from_claim_id, edge.to_claim_id, edge.type.value))
            queue.append((edge.from_claim_id if direction == "downstream" else edge.to_claim_id, depth + 1))

    return DependencyGraph(nodes=tuple(nodes), edges=tuple(edges))


def invalidate_dependents(
    store: EvidenceGraphStore,
    defeated_claim_id: str,
    config: DefeatConfig | None = None,
) -> tuple[list[AffectedClaim], int]:
    """Propagate a defeat and write the result back in one step.

    Depth limit and defeater creation come from ``config`` (the process
    config when omitted).

    Returns:
        The affected claims and how many of them were newly marked stale.
    """
    if config is None:
        from credence.foundation.config import get_config

        config = get_config().defeat

    affected = propagate_defeat(store, defeated_claim_id, max_depth=config.max_depth)
    stale_count = apply_transitive_defeat(
        store, defeated_claim_id, affected, create_defeaters=config.create_defeaters, config=config,
    )
    return affected, stale_count
