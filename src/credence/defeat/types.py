"""Defeater, claim and evidence-edge models.

A defeater is evidence that a previously accepted claim should no longer be
trusted. Defeaters can themselves be defeated (``defeated_by``), which
reinstates whatever they were defeating.

All models are frozen; edits produce new values via ``dataclasses.replace``.
Serialized shapes use the camelCase keys shared with the evidence ledger.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from credence.confidence.types import (
    Absent,
    ConfidenceValue,
    confidence_from_dict,
    confidence_to_dict,
)
from credence.foundation.errors import ErrorCode, validation_error


class DefeaterType(str, Enum):
    """What kind of evidence undercuts the claim."""

    CODE_CHANGE = "code_change"
    TEST_FAILURE = "test_failure"
    CONTRADICTION = "contradiction"
    NEW_INFO = "new_info"
    STALENESS = "staleness"
    COVERAGE_GAP = "coverage_gap"
    TOOL_FAILURE = "tool_failure"
    HASH_MISMATCH = "hash_mismatch"
    UNTRUSTED_CONTENT = "untrusted_content"
    DEPENDENCY_DRIFT = "dependency_drift"


class DefeaterSeverity(str, Enum):
    FULL = "full"
    PARTIAL = "partial"
    WARNING = "warning"
    INFORMATIONAL = "informational"


class DefeaterStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    RESOLVED = "resolved"
    IGNORED = "ignored"


class ClaimStatus(str, Enum):
    ACTIVE = "active"
    STALE = "stale"
    DEFEATED = "defeated"
    CONTRADICTED = "contradicted"
    SUPERSEDED = "superseded"
    PENDING = "pending"


class EdgeType(str, Enum):
    """Relation between two claims. ``A -depends_on-> B`` means A relies on B."""

    DEPENDS_ON = "depends_on"
    ASSUMES = "assumes"
    SUPPORTS = "supports"
    CONTRADICTS = "contradicts"
    REFINES = "refines"


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _enum(cls: type[Enum], value: Any, name: str) -> Any:
    try:
        return cls(value)
    except ValueError as e:
        choices = ", ".join(m.value for m in cls)
        raise validation_error(
            ErrorCode.DEFEATER_INVALID, field=name,
            detail=f"expected one of {choices}, got {value!r}", cause=e,
        ) from e


@dataclass(frozen=True, slots=True)
class ExtendedDefeater:
    """A defeater with severity, lifecycle status and meta-defeat links."""

    id: str
    type: DefeaterType
    description: str
    severity: DefeaterSeverity
    status: DefeaterStatus = DefeaterStatus.ACTIVE
    affected_claim_ids: tuple[str, ...] = ()
    confidence_reduction: float = 0.0
    """Amount subtracted from confidence for partial defeat, in [0, 1]."""

    auto_resolvable: bool = False
    defeated_by: tuple[str, ...] | None = None
    """IDs of meta-defeaters. None when there are none."""

    evidence: str = ""
    resolution_action: str | None = None
    detected_at: str = field(default_factory=_now)

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", _enum(DefeaterType, self.type, "type"))
        object.__setattr__(self, "severity", _enum(DefeaterSeverity, self.severity, "severity"))
        object.__setattr__(self, "status", _enum(DefeaterStatus, self.status, "status"))
        object.__setattr__(self, "affected_claim_ids", tuple(self.affected_claim_ids))
        if self.defeated_by is not None:
            object.__setattr__(self, "defeated_by", tuple(self.defeated_by) or None)
        r = self.confidence_reduction
        if isinstance(r, bool) or not isinstance(r, (int, float)) or not 0.0 <= r <= 1.0:
            raise validation_error(
                ErrorCode.DEFEATER_INVALID, field="confidence_reduction",
                detail=f"must be in [0, 1], got {r!r}",
            )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "description": self.description,
            "severity": self.severity.value,
            "status": self.status.value,
            "affectedClaimIds": list(self.affected_claim_ids),
            "confidenceReduction": self.confidence_reduction,
            "autoResolvable": self.auto_resolvable,
            "detectedAt": self.detected_at,
        }
        if self.defeated_by:
            data["defeatedBy"] = list(self.defeated_by)
        if self.evidence:
            data["evidence"] = self.evidence
        if self.resolution_action:
            data["resolutionAction"] = self.resolution_action
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ExtendedDefeater:
        try:
            return cls(
                id=str(data["id"]),
                type=data["type"],
                description=str(data.get("description", "")),
                severity=data["severity"],
                status=data.get("status", "active"),
                affected_claim_ids=tuple(data.get("affectedClaimIds", ())),
                confidence_reduction=float(data.get("confidenceReduction", 0.0)),
                auto_resolvable=bool(data.get("autoResolvable", False)),
                defeated_by=tuple(data["defeatedBy"]) if data.get("defeatedBy") else None,
                evidence=str(data.get("evidence", "")),
                resolution_action=data.get("resolutionAction"),
                detected_at=str(data.get("detectedAt") or _now()),
            )
        except KeyError as e:
            raise validation_error(
                ErrorCode.DEFEATER_INVALID, field=str(e.args[0]), detail="missing required field", cause=e,
            ) from e


def create_defeater(
    type: DefeaterType | str,
    description: str,
    severity: DefeaterSeverity | str,
    affected_claim_ids: Sequence[str] = (),
    confidence_reduction: float = 0.0,
    auto_resolvable: bool = False,
    status: DefeaterStatus | str = DefeaterStatus.ACTIVE,
    evidence: str = "",
    resolution_action: str | None = None,
) -> ExtendedDefeater:
    """Create a defeater with a fresh ID and detection timestamp."""
    return ExtendedDefeater(
        id=f"defeater_{uuid.uuid4().hex[:12]}",
        type=type,
        description=description,
        severity=severity,
        status=status,
        affected_claim_ids=tuple(affected_claim_ids),
        confidence_reduction=confidence_reduction,
        auto_resolvable=auto_resolvable,
        evidence=evidence,
        resolution_action=resolution_action,
    )


def parse_claim_status(value: ClaimStatus | str) -> ClaimStatus:
    """Coerce a status name, raising ValidationError(field="status") if unknown."""
    try:
        return ClaimStatus(value)
    except ValueError as e:
        raise validation_error(
            ErrorCode.DEFEATER_INVALID, field="status", detail=f"unknown claim status {value!r}", cause=e,
        ) from e


@dataclass(frozen=True, slots=True)
class Claim:
    """A claim in the evidence graph."""

    id: str
    proposition: str
    status: ClaimStatus = ClaimStatus.ACTIVE
    confidence: ConfidenceValue = field(default_factory=Absent)

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", parse_claim_status(self.status))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "proposition": self.proposition,
            "status": self.status.value,
            "confidence": confidence_to_dict(self.confidence),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Claim:
        return cls(
            id=str(data["id"]),
            proposition=str(data.get("proposition", "")),
            status=data.get("status", "active"),
            confidence=confidence_from_dict(data["confidence"]) if "confidence" in data else Absent(),
        )


@dataclass(frozen=True, slots=True)
class EvidenceEdge:
    """Directed edge ``from_claim_id -type-> to_claim_id``."""

    id: str
    from_claim_id: str
    to_claim_id: str
    type: EdgeType
    strength: float = 1.0

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "type", EdgeType(self.type))
        except ValueError as e:
            raise validation_error(
                ErrorCode.DEFEATER_INVALID, field="type", detail=f"unknown edge type {self.type!r}", cause=e,
            ) from e

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "fromClaimId": self.from_claim_id,
            "toClaimId": self.to_claim_id,
            "type": self.type.value,
            "strength": self.strength,
        }
