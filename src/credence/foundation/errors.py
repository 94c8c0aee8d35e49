"""Credence Error System.

Provides structured error handling with:
- Numeric error codes for programmatic handling
- User-friendly messages naming the offending field or identifier
- Recovery hints for callers

Degraded results (an Absent confidence, a fully-defeated claim, a
miscalibrated bucket) are values, not errors, and never raise.
"""

from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Numeric error codes organized by category.

    Format: XYYY where X = category, YYY = specific error

    Categories:
        1xxx - Confidence value and formula errors
        2xxx - Defeat and evidence graph errors
        3xxx - Calibration errors
        4xxx - Contract registry errors
        5xxx - Configuration errors
    """

    # 1xxx - Confidence
    CONFIDENCE_INVALID_VALUE = 1001
    CONFIDENCE_INVALID_BOUNDS = 1002
    CONFIDENCE_UNKNOWN_TYPE = 1003
    FORMULA_MISSING_BINDING = 1101
    FORMULA_INVALID_NODE = 1102
    ALGEBRA_INVALID_ARGUMENT = 1201

    # 2xxx - Defeat
    DEFEATER_INVALID = 2001
    DEFEATER_NOT_FOUND = 2002
    CLAIM_NOT_FOUND = 2101
    GRAPH_INVALID_DIRECTION = 2102

    # 3xxx - Calibration
    CALIBRATION_EMPTY_INPUT = 3001
    CALIBRATION_INVALID_ARGUMENT = 3002
    CALIBRATION_INVALID_COUNTS = 3003
    CALIBRATION_INVALID_PRIOR = 3004

    # 4xxx - Contracts
    CONTRACT_DUPLICATE = 4001
    CONTRACT_NOT_FOUND = 4002
    CONTRACT_INVALID = 4003

    # 5xxx - Configuration
    CONFIG_INVALID = 5001
    CONFIG_PARSE_ERROR = 5002

    @property
    def category(self) -> str:
        """Get the error category name."""
        prefix = self.value // 1000
        return {
            1: "confidence",
            2: "defeat",
            3: "calibration",
            4: "contract",
            5: "config",
        }.get(prefix, "unknown")

    @property
    def is_validation(self) -> bool:
        """Whether this code reports malformed caller input."""
        return self not in {
            ErrorCode.CONTRACT_DUPLICATE,
            ErrorCode.CONTRACT_NOT_FOUND,
            ErrorCode.DEFEATER_NOT_FOUND,
            ErrorCode.CLAIM_NOT_FOUND,
        }


ERROR_MESSAGES: dict[ErrorCode, str] = {
    # Confidence
    ErrorCode.CONFIDENCE_INVALID_VALUE: "Invalid confidence field '{field}': {detail}",
    ErrorCode.CONFIDENCE_INVALID_BOUNDS: "Invalid confidence bounds '{field}': {detail}",
    ErrorCode.CONFIDENCE_UNKNOWN_TYPE: "Unknown confidence type: {detail}",
    ErrorCode.FORMULA_MISSING_BINDING: "Formula references '{field}' but no binding was provided.",
    ErrorCode.FORMULA_INVALID_NODE: "Invalid formula node '{field}': {detail}",
    ErrorCode.ALGEBRA_INVALID_ARGUMENT: "Invalid argument '{field}': {detail}",

    # Defeat
    ErrorCode.DEFEATER_INVALID: "Invalid defeater field '{field}': {detail}",
    ErrorCode.DEFEATER_NOT_FOUND: "Defeater '{defeater_id}' not found.",
    ErrorCode.CLAIM_NOT_FOUND: "Claim '{claim_id}' not found.",
    ErrorCode.GRAPH_INVALID_DIRECTION: "Invalid traversal '{field}': {detail}",

    # Calibration
    ErrorCode.CALIBRATION_EMPTY_INPUT: "Cannot calibrate '{field}': {detail}",
    ErrorCode.CALIBRATION_INVALID_ARGUMENT: "Invalid calibration argument '{field}': {detail}",
    ErrorCode.CALIBRATION_INVALID_COUNTS: "Invalid counts '{field}': {detail}",
    ErrorCode.CALIBRATION_INVALID_PRIOR: "Invalid prior '{field}': {detail}",

    # Contracts
    ErrorCode.CONTRACT_DUPLICATE: "Contract '{primitive_id}' is already registered.",
    ErrorCode.CONTRACT_NOT_FOUND: "No contract registered for '{primitive_id}'.",
    ErrorCode.CONTRACT_INVALID: "Invalid contract '{primitive_id}': {detail}",

    # Config
    ErrorCode.CONFIG_INVALID: "Invalid configuration for '{key}': {detail}",
    ErrorCode.CONFIG_PARSE_ERROR: "Failed to parse configuration '{key}': {detail}",
}


RECOVERY_HINTS: dict[ErrorCode, list[str]] = {
    ErrorCode.CONFIDENCE_INVALID_BOUNDS: [
        "Bounded confidence requires 0 <= low < high <= 1",
        "Use deterministic() when the bound collapses to a single point",
    ],
    ErrorCode.FORMULA_MISSING_BINDING: [
        "Bind every Value name referenced by the formula",
        "Inspect the formula with formula_to_string() to list its names",
    ],
    ErrorCode.CALIBRATION_EMPTY_INPUT: [
        "Collect at least one labeled prediction before calibrating",
        "Use bootstrap_calibration(n) to see how many samples each tier needs",
    ],
    ErrorCode.CONTRACT_DUPLICATE: [
        "Use registry.has('{primitive_id}') before registering",
        "Construct a fresh ContractRegistry for isolated test runs",
    ],
    ErrorCode.CONFIG_PARSE_ERROR: [
        "Check the YAML syntax of {key}",
        "Remove the file to fall back to built-in defaults",
    ],
}


class CredenceError(Exception):
    """Base error type for all Credence errors.

    Example:
        >>> err = CredenceError(
        ...     code=ErrorCode.CONTRACT_DUPLICATE,
        ...     context={"primitive_id": "parse.ast"},
        ... )
        >>> print(err)
        [CR-4001] Contract 'parse.ast' is already registered.
    """

    def __init__(
        self,
        code: ErrorCode,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        self.code = code
        self.context = context or {}
        self.cause = cause
        super().__init__(str(self))

    @property
    def message(self) -> str:
        """Get the formatted user-friendly message."""
        template = ERROR_MESSAGES.get(self.code, "An error occurred: {detail}")
        try:
            return template.format(**self.context)
        except KeyError:
            return template

    @property
    def recovery_hints(self) -> list[str]:
        """Get recovery suggestions for this error."""
        formatted = []
        for hint in RECOVERY_HINTS.get(self.code, []):
            try:
                formatted.append(hint.format(**self.context))
            except KeyError:
                formatted.append(hint)
        return formatted

    @property
    def category(self) -> str:
        """Get the error category."""
        return self.code.category

    @property
    def error_id(self) -> str:
        """Get the error ID string (e.g., 'CR-1002')."""
        return f"CR-{self.code.value}"

    @property
    def field(self) -> str | None:
        """Name of the offending field, when one was recorded."""
        return self.context.get("field")

    def __str__(self) -> str:
        return f"[{self.error_id}] {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, context={self.context!r})"

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dict for logging/CLI output."""
        return {
            "error_id": self.error_id,
            "code": self.code.value,
            "category": self.category,
            "message": self.message,
            "recovery_hints": self.recovery_hints,
            "context": self.context,
        }


class ValidationError(CredenceError, ValueError):
    """Malformed input: bad bounds, empty predictions, out-of-range arguments."""


class MissingBindingError(CredenceError, KeyError):
    """A formula referenced a name absent from its bindings."""

    def __str__(self) -> str:
        return CredenceError.__str__(self)


# Convenience factory functions

def validation_error(
    code: ErrorCode,
    field: str,
    detail: str = "",
    cause: Exception | None = None,
    **extra: Any,
) -> ValidationError:
    """Create a validation error naming the offending field."""
    return ValidationError(
        code=code,
        context={"field": field, "detail": detail, **extra},
        cause=cause,
    )


def contract_error(
    code: ErrorCode,
    primitive_id: str,
    detail: str = "",
) -> CredenceError:
    """Create a contract registry error carrying the primitive ID."""
    return CredenceError(
        code=code,
        context={"primitive_id": primitive_id, "detail": detail},
    )


def config_error(
    code: ErrorCode,
    key: str = "",
    detail: str = "",
    cause: Exception | None = None,
) -> CredenceError:
    """Create a configuration error."""
    return CredenceError(
        code=code,
        context={"key": key, "detail": detail},
        cause=cause,
    )
