"""Tests for the in-memory evidence graph store."""

import threading

import pytest

from credence.defeat import (
    Claim,
    ClaimStatus,
    EdgeType,
    EvidenceGraphStore,
    InMemoryEvidenceGraph,
)
from credence.foundation.errors import ErrorCode, ValidationError


class TestInMemoryEvidenceGraph:
    """Lookups, idempotent upserts and ordering."""

    def test_satisfies_protocol(self) -> None:
        """The in-memory store is an EvidenceGraphStore."""
        assert isinstance(InMemoryEvidenceGraph(), EvidenceGraphStore)

    def test_unknown_ids(self) -> None:
        """Unknown IDs give None or empty lists."""
        store = InMemoryEvidenceGraph()

        assert store.get_claim("nope") is None
        assert store.get_edges_from("nope") == []
        assert store.get_edges_to("nope") == []
        assert store.get_defeaters_for_claim("nope") == []
        assert store.update_claim_status("nope", ClaimStatus.STALE) is None

    def test_upserts_are_idempotent(self, edge_factory, defeater_factory) -> None:
        """Writing the same record twice keeps one copy, last write wins."""
        store = InMemoryEvidenceGraph()
        edge = edge_factory("B", "A", EdgeType.DEPENDS_ON)

        store.upsert_claim(Claim("A", "first"))
        store.upsert_claim(Claim("A", "second"))
        store.upsert_edge(edge)
        store.upsert_edge(edge)
        store.add_defeater(defeater_factory("d1", affected_claim_ids=("A",)))
        store.add_defeater(defeater_factory("d1", affected_claim_ids=("A",)))

        assert [c.proposition for c in store.claims()] == ["second"]
        assert store.get_edges_to("A") == [edge]
        assert len(store.get_defeaters_for_claim("A")) == 1

    def test_edges_keep_insertion_order(self, edge_factory) -> None:
        """Edge lists come back in the order they were added."""
        edges = [edge_factory(src, "A", EdgeType.DEPENDS_ON) for src in ("Z", "B", "M")]
        store = InMemoryEvidenceGraph(edges=edges)

        assert [e.from_claim_id for e in store.get_edges_to("A")] == ["Z", "B", "M"]
        assert [e.to_claim_id for e in store.get_edges_from("B")] == ["A"]

    def test_update_claim_status(self) -> None:
        """Status updates replace the stored claim."""
        store = InMemoryEvidenceGraph(claims=[Claim("A", "a")])

        updated = store.update_claim_status("A", "defeated")

        assert updated.status is ClaimStatus.DEFEATED
        assert store.get_claim("A") == updated

    def test_update_unknown_status(self) -> None:
        """An unknown status is a validation error naming the field, and the claim is untouched."""
        store = InMemoryEvidenceGraph(claims=[Claim("A", "a")])

        with pytest.raises(ValidationError) as exc_info:
            store.update_claim_status("A", "zombie")

        assert exc_info.value.field == "status"
        assert exc_info.value.code == ErrorCode.DEFEATER_INVALID
        assert store.get_claim("A").status is ClaimStatus.ACTIVE

    def test_concurrent_upserts(self) -> None:
        """Parallel writers do not lose claims."""
        store = InMemoryEvidenceGraph()

        def write(offset: int) -> None:
            store.upsert_claims(Claim(f"c{offset}-{i}", "x") for i in range(200))

        threads = [threading.Thread(target=write, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(store.claims()) == 1600
