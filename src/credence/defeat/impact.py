"""Applying defeaters to confidence values.

Severity decides how much a defeater takes away:

    full           value forced to 0          defeated_by(<type>)
    partial        value - reduction          partial_defeat(<type>, -<r>)
    warning        value - reduction / 2      warning(<type>, -<r/2>)
    informational  unchanged                  noted(<type>)

The result is always a degraded Derived with exactly two inputs,
``original`` and ``defeater``, so applications can be found again and
undone by looking at the formula tag alone.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal

from credence.confidence.algebra import numeric_value
from credence.confidence.types import (
    ConfidenceInput,
    ConfidenceValue,
    Derived,
    Deterministic,
)
from credence.defeat.types import DefeaterSeverity, ExtendedDefeater
from credence.foundation.errors import ErrorCode, validation_error

logger = logging.getLogger(__name__)

DEFEAT_FORMULA_TAGS = ("defeated_by(", "partial_defeat(", "warning(", "noted(")
_DEFEATER_REASON_PREFIX = "defeater_"


@dataclass(frozen=True, slots=True)
class DefeaterApplication:
    """Result of applying one defeater to a confidence value."""

    confidence: ConfidenceValue
    fully_defeated: bool
    original_confidence: ConfidenceValue
    defeater_id: str
    description: str


@dataclass(frozen=True, slots=True)
class DefeaterApplicationSummary:
    confidence: ConfidenceValue
    fully_defeated: bool
    applications: tuple[DefeaterApplication, ...] = field(default_factory=tuple)


def _is_defeat_derivation(confidence: ConfidenceValue) -> bool:
    return isinstance(confidence, Derived) and confidence.formula.startswith(DEFEAT_FORMULA_TAGS)


def apply_defeater_to_confidence(
    confidence: ConfidenceValue,
    defeater: ExtendedDefeater,
) -> DefeaterApplication:
    """Reduce a confidence value according to a defeater's severity.

    Absent confidence is returned unchanged: there is nothing left to defeat.
    """
    original = numeric_value(confidence)
    if original is None:
        return DefeaterApplication(
            confidence=confidence,
            fully_defeated=False,
            original_confidence=confidence,
            defeater_id=defeater.id,
            description="Confidence was already absent; defeater has no additional effect",
        )

    kind = defeater.type.value
    r = defeater.confidence_reduction
    match defeater.severity:
        case DefeaterSeverity.FULL:
            value = 0.0
            formula = f"defeated_by({kind})"
            description = f"Fully defeated by {kind}: {defeater.description}"
        case DefeaterSeverity.PARTIAL:
            value = max(0.0, original - r)
            formula = f"partial_defeat({kind}, -{r:g})"
            description = f"Partially defeated by {kind}: reduced by {r:g}"
        case DefeaterSeverity.WARNING:
            half = r / 2
            value = max(0.0, original - half)
            formula = f"warning({kind}, -{half:.3f})"
            description = f"Warning from {kind}: reduced by {half:.3f}"
        case DefeaterSeverity.INFORMATIONAL:
            value = original
            formula = f"noted({kind})"
            description = f"Information noted from {kind}: {defeater.description}"
        case _:
            raise validation_error(
                ErrorCode.DEFEATER_INVALID, field="severity", detail=f"unknown severity {defeater.severity!r}",
            )

    derived = Derived(
        value=value,
        formula=formula,
        inputs=(
            ConfidenceInput("original", confidence),
            ConfidenceInput("defeater", Deterministic(1.0, f"{_DEFEATER_REASON_PREFIX}{defeater.id}")),
        ),
        calibration_status="degraded",
    )
    logger.debug("Applied defeater %s: %.3f -> %.3f (%s)", defeater.id, original, value, formula)
    return DefeaterApplication(
        confidence=derived,
        fully_defeated=value == 0.0,
        original_confidence=confidence,
        defeater_id=defeater.id,
        description=description,
    )


def apply_defeaters_to_confidence(
    confidence: ConfidenceValue,
    defeaters: Sequence[ExtendedDefeater],
) -> DefeaterApplicationSummary:
    """Apply defeaters left to right, recording every application.

    After a full defeat the value stays at 0, but later defeaters are still
    applied and recorded so the provenance chain is complete.
    """
    current = confidence
    fully_defeated = False
    applications = []
    for defeater in defeaters:
        result = apply_defeater_to_confidence(current, defeater)
        applications.append(result)
        current = result.confidence
        fully_defeated = fully_defeated or result.fully_defeated
    return DefeaterApplicationSummary(
        confidence=current,
        fully_defeated=fully_defeated,
        applications=tuple(applications),
    )


def find_defeaters_in_confidence(confidence: ConfidenceValue) -> list[str]:
    """IDs of every defeater applied anywhere in a derivation, outermost first."""
    found: list[str] = []
    stack: list[ConfidenceValue] = [confidence]
    while stack:
        current = stack.pop()
        if not isinstance(current, Derived):
            continue
        if _is_defeat_derivation(current):
            marker = current.input_named("defeater")
            if isinstance(marker, Deterministic) and marker.reason.startswith(_DEFEATER_REASON_PREFIX):
                found.append(marker.reason[len(_DEFEATER_REASON_PREFIX):])
        stack.extend(reversed([item.confidence for item in current.inputs]))
    return found


def remove_defeater_from_confidence(confidence: ConfidenceValue) -> ConfidenceValue:
    """Undo the outermost defeater application by returning its ``original`` input.

    Anything that is not a defeater application is returned unchanged.
    """
    if not _is_defeat_derivation(confidence):
        return confidence
    original = confidence.input_named("original")
    return confidence if original is None else original


DefeatMethod = Literal["linear", "bayesian"]


def compute_defeated_strength(
    strength: float,
    defeater: ExtendedDefeater,
    method: DefeatMethod = "linear",
    prior_strength: float = 0.5,
    prior_sample_size: float = 2.0,
) -> float:
    """Signal strength left after a defeater.

    ``linear`` subtracts the reduction. ``bayesian`` treats the strength as
    success evidence and the reduction as failure evidence on top of a
    Beta prior, returning the posterior mean.
    """
    s = max(0.0, min(1.0, strength))
    r = defeater.confidence_reduction
    if method == "linear":
        return max(0.0, s - r)
    if method == "bayesian":
        alpha = prior_strength * prior_sample_size + s
        beta = (1 - prior_strength) * prior_sample_size + r
        return alpha / (alpha + beta)
    raise validation_error(
        ErrorCode.DEFEATER_INVALID, field="method", detail=f"expected linear or bayesian, got {method!r}",
    )


def compute_multiple_defeated_strength(
    strength: float,
    defeaters: Sequence[ExtendedDefeater],
    method: DefeatMethod = "linear",
    prior_strength: float = 0.5,
    prior_sample_size: float = 2.0,
) -> float:
    """Strength after several defeaters.

    Linear applies them one after another. Bayesian pools all reductions as
    failure evidence in a single posterior update.
    """
    if not defeaters:
        return strength
    if method == "linear":
        for defeater in defeaters:
            strength = compute_defeated_strength(strength, defeater, "linear")
        return strength
    if method == "bayesian":
        s = max(0.0, min(1.0, strength))
        alpha = prior_strength * prior_sample_size + s
        beta = (1 - prior_strength) * prior_sample_size + sum(d.confidence_reduction for d in defeaters)
        return alpha / (alpha + beta)
    raise validation_error(
        ErrorCode.DEFEATER_INVALID, field="method", detail=f"expected linear or bayesian, got {method!r}",
    )
