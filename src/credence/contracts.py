"""Primitive contracts and the registry that holds them.

A contract states what a primitive promises: conditions checked around each
call, how its output confidence is derived from named factors, and how its
errors are handled. Executing contracts (running checks, retrying) is the
caller's job; this module only describes and stores them, and derives
confidence from factor values.

There is no process-wide registry. Construct a :class:`ContractRegistry`
and pass it to whatever needs it.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from credence.confidence.algebra import parallel_all, parallel_any, sequence, weighted_average
from credence.confidence.types import Absent, ConfidenceValue
from credence.foundation.errors import ErrorCode, contract_error

logger = logging.getLogger(__name__)

FactorSource = Literal["input_confidence", "execution_quality", "provider_reliability", "temporal_freshness"]
Combiner = Literal["min", "product", "weighted_average", "noisy_or"]

COMBINERS: tuple[str, ...] = ("min", "product", "weighted_average", "noisy_or")


# =============================================================================
# Conditions
# =============================================================================


@dataclass(frozen=True, slots=True)
class Precondition:
    id: str
    description: str
    check: Callable[..., bool]
    on_violation: Literal["throw", "skip", "warn"] = "throw"
    severity: Literal["critical", "warning", "info"] = "critical"


@dataclass(frozen=True, slots=True)
class Postcondition:
    id: str
    description: str
    check: Callable[..., bool]
    on_violation: Literal["throw", "retry", "warn"] = "throw"


@dataclass(frozen=True, slots=True)
class Invariant:
    id: str
    description: str
    check: Callable[..., bool]
    category: Literal["safety", "liveness", "consistency"] = "consistency"


# =============================================================================
# Confidence derivation
# =============================================================================


@dataclass(frozen=True, slots=True)
class ConfidenceFactor:
    """A named input to a primitive's output confidence."""

    id: str
    source: FactorSource
    base_weight: float = 1.0


@dataclass(frozen=True, slots=True)
class ConfidenceDerivationSpec:
    """How factor confidences combine into the output confidence.

    ``weights`` overrides ``base_weight`` per factor id and only matters for
    ``weighted_average``.
    """

    factors: tuple[ConfidenceFactor, ...] = ()
    combiner: Combiner = "min"
    weights: Mapping[str, float] = field(default_factory=dict)

    def weight_of(self, factor: ConfidenceFactor) -> float:
        return self.weights.get(factor.id, factor.base_weight)


# =============================================================================
# Error handling
# =============================================================================


@dataclass(frozen=True, slots=True)
class ExpectedError:
    code: str
    transient: bool
    handling: Literal["retry", "skip", "throw", "fallback"]
    description: str = ""


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_ms: int = 100
    backoff_multiplier: float = 2.0
    max_delay_ms: int = 5000

    def delay_ms(self, attempt: int) -> int:
        """Backoff delay before retry number ``attempt`` (1-based), capped."""
        return int(min(self.max_delay_ms, self.base_delay_ms * self.backoff_multiplier ** max(0, attempt - 1)))


@dataclass(frozen=True, slots=True)
class ErrorSpec:
    expected_errors: tuple[ExpectedError, ...] = ()
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    fallback: Literal["throw", "return_empty", "return_cached", "degrade_gracefully"] = "throw"
    unexpected_error_behavior: Literal["throw", "log_and_continue", "escalate"] = "throw"


# =============================================================================
# Contract
# =============================================================================


@dataclass(frozen=True, slots=True)
class PrimitiveContract:
    """Behavioral guarantees of one primitive."""

    primitive_id: str
    name: str
    preconditions: tuple[Precondition, ...] = ()
    postconditions: tuple[Postcondition, ...] = ()
    invariants: tuple[Invariant, ...] = ()
    confidence_derivation: ConfidenceDerivationSpec = field(default_factory=ConfidenceDerivationSpec)
    error_spec: ErrorSpec = field(default_factory=ErrorSpec)
    description: str = ""
    version: str = "1.0.0"


@dataclass(frozen=True, slots=True)
class ContractValidationResult:
    valid: bool
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()


def validate_contract(contract: PrimitiveContract) -> ContractValidationResult:
    """Structural checks on a contract. Problems are collected, not raised."""
    errors: list[str] = []
    warnings: list[str] = []

    if not contract.primitive_id:
        errors.append("primitive_id: required")
    if not contract.name:
        errors.append("name: required")

    derivation = contract.confidence_derivation
    if derivation.combiner not in COMBINERS:
        errors.append(f"confidence_derivation.combiner: expected one of {', '.join(COMBINERS)}")
    seen: set[str] = set()
    for i, factor in enumerate(derivation.factors):
        if factor.id in seen:
            errors.append(f"confidence_derivation.factors[{i}].id: duplicate '{factor.id}'")
        seen.add(factor.id)
        if derivation.weight_of(factor) < 0:
            errors.append(f"confidence_derivation.factors[{i}]: weight must be non-negative")

    policy = contract.error_spec.retry_policy
    if policy.max_attempts < 0:
        errors.append("error_spec.retry_policy.max_attempts: must be non-negative")
    if policy.base_delay_ms < 0:
        errors.append("error_spec.retry_policy.base_delay_ms: must be non-negative")

    for kind, conditions in (
        ("preconditions", contract.preconditions),
        ("postconditions", contract.postconditions),
        ("invariants", contract.invariants),
    ):
        for i, condition in enumerate(conditions):
            if not condition.id:
                errors.append(f"{kind}[{i}].id: required")
            if not callable(condition.check):
                errors.append(f"{kind}[{i}].check: must be callable")

    if not (contract.preconditions or contract.postconditions or contract.invariants):
        warnings.append("contract has no preconditions, postconditions, or invariants")

    return ContractValidationResult(valid=not errors, errors=tuple(errors), warnings=tuple(warnings))


def create_contract(
    primitive_id: str,
    name: str,
    *,
    preconditions: Sequence[Precondition] = (),
    postconditions: Sequence[Postcondition] = (),
    invariants: Sequence[Invariant] = (),
    confidence_derivation: ConfidenceDerivationSpec | None = None,
    error_spec: ErrorSpec | None = None,
    description: str = "",
    version: str = "1.0.0",
) -> PrimitiveContract:
    """Build a contract with defaults filled in.

    Raises:
        CredenceError: CONTRACT_INVALID listing every structural problem.
    """
    contract = PrimitiveContract(
        primitive_id=primitive_id,
        name=name,
        preconditions=tuple(preconditions),
        postconditions=tuple(postconditions),
        invariants=tuple(invariants),
        confidence_derivation=confidence_derivation or ConfidenceDerivationSpec(),
        error_spec=error_spec or ErrorSpec(),
        description=description,
        version=version,
    )
    result = validate_contract(contract)
    if not result.valid:
        raise contract_error(ErrorCode.CONTRACT_INVALID, primitive_id, "; ".join(result.errors))
    for warning in result.warnings:
        logger.debug("Contract %s: %s", primitive_id, warning)
    return contract


# =============================================================================
# Registry
# =============================================================================


class ContractRegistry:
    """Contracts keyed by primitive id. Thread-safe.

    Example:
        >>> registry = ContractRegistry()
        >>> registry.register(create_contract("parse.ast", "Parse AST"))
        >>> registry.has("parse.ast")
        True
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._contracts: dict[str, PrimitiveContract] = {}

    def register(self, contract: PrimitiveContract) -> None:
        """Add a contract.

        Raises:
            CredenceError: CONTRACT_DUPLICATE if the primitive already has one.
        """
        with self._lock:
            if contract.primitive_id in self._contracts:
                raise contract_error(ErrorCode.CONTRACT_DUPLICATE, contract.primitive_id)
            self._contracts[contract.primitive_id] = contract
        logger.debug("Registered contract %s", contract.primitive_id)

    def get(self, primitive_id: str) -> PrimitiveContract | None:
        with self._lock:
            return self._contracts.get(primitive_id)

    def require(self, primitive_id: str) -> PrimitiveContract:
        """Like :meth:`get` but raises CONTRACT_NOT_FOUND instead of returning None."""
        contract = self.get(primitive_id)
        if contract is None:
            raise contract_error(ErrorCode.CONTRACT_NOT_FOUND, primitive_id)
        return contract

    def has(self, primitive_id: str) -> bool:
        with self._lock:
            return primitive_id in self._contracts

    def list(self) -> list[PrimitiveContract]:
        with self._lock:
            return list(self._contracts.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._contracts)


def derive_confidence(
    spec: ConfidenceDerivationSpec,
    factor_values: Mapping[str, ConfidenceValue],
) -> ConfidenceValue:
    """Combine factor confidences as ``spec.combiner`` says.

    Factors missing from ``factor_values`` count as
    ``Absent("insufficient_data")``; a spec with no factors yields the same.
    Absent handling is whatever the underlying algebra operator does.
    """
    if not spec.factors:
        return Absent("insufficient_data")

    values = [factor_values.get(f.id, Absent("insufficient_data")) for f in spec.factors]
    match spec.combiner:
        case "min":
            return sequence(values)
        case "product":
            return parallel_all(values)
        case "noisy_or":
            return parallel_any(values)
        case "weighted_average":
            return weighted_average([
                (f.id, value, spec.weight_of(f)) for f, value in zip(spec.factors, values, strict=True)
            ])
        case _:
            raise contract_error(
                ErrorCode.CONTRACT_INVALID, "<derivation>", f"unknown combiner {spec.combiner!r}",
            )


def describe_contract(contract: PrimitiveContract) -> dict[str, Any]:
    """Summary of a contract suitable for logs and JSON output."""
    derivation = contract.confidence_derivation
    return {
        "primitiveId": contract.primitive_id,
        "name": contract.name,
        "version": contract.version,
        "preconditions": [c.id for c in contract.preconditions],
        "postconditions": [c.id for c in contract.postconditions],
        "invariants": [c.id for c in contract.invariants],
        "confidenceDerivation": {
            "combiner": derivation.combiner,
            "factors": [
                {"id": f.id, "source": f.source, "weight": derivation.weight_of(f)} for f in derivation.factors
            ],
        },
        "errorSpec": {
            "expectedErrors": [e.code for e in contract.error_spec.expected_errors],
            "fallback": contract.error_spec.fallback,
            "maxAttempts": contract.error_spec.retry_policy.max_attempts,
        },
    }
