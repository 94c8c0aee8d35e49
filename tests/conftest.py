"""Pytest fixtures for Credence tests."""

import os

import pytest

from credence.confidence import Absent, Bounded, Deterministic, Measured
from credence.defeat import (
    Claim,
    DefeaterSeverity,
    DefeaterType,
    EdgeType,
    EvidenceEdge,
    ExtendedDefeater,
    InMemoryEvidenceGraph,
)
from credence.foundation.config import reset_config


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Isolate every test from user config files and CREDENCE_* variables."""
    for key in list(os.environ):
        if key.startswith("CREDENCE_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    reset_config()
    yield
    reset_config()


@pytest.fixture
def certain() -> Deterministic:
    return Deterministic(1.0, "parse_succeeded")


@pytest.fixture
def measured_conf() -> Measured:
    return Measured(dataset_id="bench-1", sample_size=200, accuracy=0.8, ci95=(0.74, 0.86))


@pytest.fixture
def bounded_conf() -> Bounded:
    return Bounded(0.6, 0.8, "literature", "Smith 2020")


@pytest.fixture
def absent_conf() -> Absent:
    return Absent("uncalibrated")


def make_defeater(
    defeater_id: str,
    defeated_by: tuple[str, ...] | None = None,
    severity: DefeaterSeverity = DefeaterSeverity.FULL,
    reduction: float = 0.0,
    **kwargs,
) -> ExtendedDefeater:
    """Build a defeater with a fixed id for graph-shaped tests."""
    return ExtendedDefeater(
        id=defeater_id,
        type=kwargs.pop("type", DefeaterType.CONTRADICTION),
        description=kwargs.pop("description", f"defeater {defeater_id}"),
        severity=severity,
        confidence_reduction=reduction,
        defeated_by=defeated_by,
        **kwargs,
    )


@pytest.fixture
def defeater_factory():
    return make_defeater


def _edge(src: str, dst: str, kind: EdgeType) -> EvidenceEdge:
    return EvidenceEdge(id=f"{src}-{kind.value}-{dst}", from_claim_id=src, to_claim_id=dst, type=kind)


@pytest.fixture
def edge_factory():
    return _edge


@pytest.fixture
def diamond_graph() -> InMemoryEvidenceGraph:
    """A <- B, A <- C, B <- D, C <- D, all depends_on."""
    return InMemoryEvidenceGraph(
        claims=[Claim(c, f"claim {c}") for c in "ABCD"],
        edges=[
            _edge("B", "A", EdgeType.DEPENDS_ON),
            _edge("C", "A", EdgeType.DEPENDS_ON),
            _edge("D", "B", EdgeType.DEPENDS_ON),
            _edge("D", "C", EdgeType.DEPENDS_ON),
        ],
    )
