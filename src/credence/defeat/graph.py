"""Evidence graph storage.

Propagation code only talks to :class:`EvidenceGraphStore`, so any backend
that answers these lookups (a database, a ledger replay, a test double) can
be plugged in. :class:`InMemoryEvidenceGraph` is the reference
implementation.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import replace
from typing import Protocol, runtime_checkable

from credence.defeat.types import (
    Claim,
    ClaimStatus,
    EvidenceEdge,
    ExtendedDefeater,
    parse_claim_status,
)


@runtime_checkable
class EvidenceGraphStore(Protocol):
    """Read/write access to claims, edges and defeaters.

    Lookups for unknown IDs return ``None`` or an empty list, never raise.
    """

    def get_claim(self, claim_id: str) -> Claim | None:
        """Claim with this ID, or None."""
        ...

    def upsert_claim(self, claim: Claim) -> None:
        """Insert or replace a claim by ID."""
        ...

    def upsert_claims(self, claims: Iterable[Claim]) -> None:
        ...

    def get_edges_from(self, claim_id: str) -> list[EvidenceEdge]:
        """Edges whose ``from_claim_id`` is ``claim_id``."""
        ...

    def get_edges_to(self, claim_id: str) -> list[EvidenceEdge]:
        """Edges whose ``to_claim_id`` is ``claim_id``."""
        ...

    def upsert_edge(self, edge: EvidenceEdge) -> None:
        ...

    def upsert_edges(self, edges: Iterable[EvidenceEdge]) -> None:
        ...

    def get_defeaters_for_claim(self, claim_id: str) -> list[ExtendedDefeater]:
        """Defeaters listing ``claim_id`` in ``affected_claim_ids``."""
        ...

    def add_defeater(self, defeater: ExtendedDefeater) -> None:
        ...


class InMemoryEvidenceGraph:
    """Thread-safe in-memory :class:`EvidenceGraphStore`.

    Upserts are idempotent: writing the same claim, edge or defeater twice
    leaves one copy. Edge lists keep insertion order so traversal order is
    reproducible.

    Example:
        >>> graph = InMemoryEvidenceGraph()
        >>> graph.upsert_claim(Claim("a", "cache is warm"))
        >>> graph.get_claim("a").proposition
        'cache is warm'
    """

    def __init__(
        self,
        claims: Iterable[Claim] = (),
        edges: Iterable[EvidenceEdge] = (),
        defeaters: Iterable[ExtendedDefeater] = (),
    ) -> None:
        self._lock = threading.Lock()
        self._claims: dict[str, Claim] = {}
        self._edges: dict[str, EvidenceEdge] = {}
        self._defeaters: dict[str, ExtendedDefeater] = {}
        self.upsert_claims(claims)
        self.upsert_edges(edges)
        for defeater in defeaters:
            self.add_defeater(defeater)

    # ─────────────────────────────────────────────────────────────────
    # Claims
    # ─────────────────────────────────────────────────────────────────

    def get_claim(self, claim_id: str) -> Claim | None:
        with self._lock:
            return self._claims.get(claim_id)

    def upsert_claim(self, claim: Claim) -> None:
        with self._lock:
            self._claims[claim.id] = claim

    def upsert_claims(self, claims: Iterable[Claim]) -> None:
        with self._lock:
            for claim in claims:
                self._claims[claim.id] = claim

    def update_claim_status(self, claim_id: str, status: ClaimStatus | str) -> Claim | None:
        """Set a claim's status; returns the updated claim or None if unknown.

        Raises:
            ValidationError: If status is not a ClaimStatus value.
        """
        new_status = parse_claim_status(status)
        with self._lock:
            claim = self._claims.get(claim_id)
            if claim is None:
                return None
            updated = replace(claim, status=new_status)
            self._claims[claim_id] = updated
            return updated

    def claims(self) -> list[Claim]:
        with self._lock:
            return list(self._claims.values())

    # ─────────────────────────────────────────────────────────────────
    # Edges
    # ─────────────────────────────────────────────────────────────────

    def get_edges_from(self, claim_id: str) -> list[EvidenceEdge]:
        with self._lock:
            return [e for e in self._edges.values() if e.from_claim_id == claim_id]

    def get_edges_to(self, claim_id: str) -> list[EvidenceEdge]:
        with self._lock:
            return [e for e in self._edges.values() if e.to_claim_id == claim_id]

    def upsert_edge(self, edge: EvidenceEdge) -> None:
        with self._lock:
            self._edges[edge.id] = edge

    def upsert_edges(self, edges: Iterable[EvidenceEdge]) -> None:
        with self._lock:
            for edge in edges:
                self._edges[edge.id] = edge

    # ─────────────────────────────────────────────────────────────────
    # Defeaters
    # ─────────────────────────────────────────────────────────────────

    def get_defeaters_for_claim(self, claim_id: str) -> list[ExtendedDefeater]:
        with self._lock:
            return [d for d in self._defeaters.values() if claim_id in d.affected_claim_ids]

    def add_defeater(self, defeater: ExtendedDefeater) -> None:
        with self._lock:
            self._defeaters[defeater.id] = defeater

    def defeaters(self) -> list[ExtendedDefeater]:
        with self._lock:
            return list(self._defeaters.values())
