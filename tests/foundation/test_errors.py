"""Tests for the Credence error system."""

import pytest

from credence.foundation.errors import (
    CredenceError,
    ErrorCode,
    MissingBindingError,
    ValidationError,
    config_error,
    contract_error,
    validation_error,
)


class TestErrorCode:
    """ErrorCode categories and flags."""

    def test_category_from_prefix(self) -> None:
        """Thousands digit picks the category."""
        assert ErrorCode.CONFIDENCE_INVALID_BOUNDS.category == "confidence"
        assert ErrorCode.GRAPH_INVALID_DIRECTION.category == "defeat"
        assert ErrorCode.CALIBRATION_EMPTY_INPUT.category == "calibration"
        assert ErrorCode.CONTRACT_DUPLICATE.category == "contract"
        assert ErrorCode.CONFIG_PARSE_ERROR.category == "config"

    def test_lookup_errors_are_not_validation(self) -> None:
        """Not-found and duplicate codes are not input validation failures."""
        assert ErrorCode.CONFIDENCE_INVALID_VALUE.is_validation
        assert not ErrorCode.CONTRACT_NOT_FOUND.is_validation
        assert not ErrorCode.CONTRACT_DUPLICATE.is_validation


class TestCredenceError:
    """Message formatting, hints and serialization."""

    def test_str_includes_error_id(self) -> None:
        """str() renders as [CR-xxxx] message."""
        err = CredenceError(ErrorCode.CONTRACT_DUPLICATE, context={"primitive_id": "parse.ast"})

        assert str(err) == "[CR-4001] Contract 'parse.ast' is already registered."
        assert err.error_id == "CR-4001"

    def test_missing_context_keeps_template(self) -> None:
        """A template whose placeholders are not filled is returned verbatim."""
        err = CredenceError(ErrorCode.CLAIM_NOT_FOUND)

        assert err.message == "Claim '{claim_id}' not found."

    def test_recovery_hints_are_formatted(self) -> None:
        """Hints interpolate context values."""
        err = contract_error(ErrorCode.CONTRACT_DUPLICATE, "parse.ast")

        assert "Use registry.has('parse.ast') before registering" in err.recovery_hints

    def test_to_dict(self) -> None:
        """to_dict exposes id, code, category and context."""
        err = validation_error(ErrorCode.CONFIDENCE_INVALID_VALUE, field="low", detail="1.5 is outside [0, 1]")
        data = err.to_dict()

        assert data["error_id"] == "CR-1001"
        assert data["code"] == 1001
        assert data["category"] == "confidence"
        assert data["context"]["field"] == "low"
        assert "1.5 is outside [0, 1]" in data["message"]


class TestFactories:
    """Factory helpers build the right subclasses."""

    def test_validation_error_is_value_error(self) -> None:
        """ValidationError can be caught as ValueError."""
        err = validation_error(ErrorCode.ALGEBRA_INVALID_ARGUMENT, field="correlation", detail="bad")

        assert isinstance(err, ValidationError)
        assert isinstance(err, ValueError)
        assert err.field == "correlation"

    def test_validation_error_keeps_cause(self) -> None:
        """The underlying exception is attached."""
        cause = ValueError("boom")
        err = validation_error(ErrorCode.DEFEATER_INVALID, field="type", cause=cause)

        assert err.cause is cause

    def test_missing_binding_is_key_error(self) -> None:
        """MissingBindingError is a KeyError with a readable str()."""
        err = MissingBindingError(ErrorCode.FORMULA_MISSING_BINDING, context={"field": "step_3"})

        assert isinstance(err, KeyError)
        assert str(err) == "[CR-1101] Formula references 'step_3' but no binding was provided."

    def test_config_error(self) -> None:
        """config_error carries the key."""
        err = config_error(ErrorCode.CONFIG_INVALID, key="defeat.max_depth", detail="not an int")

        assert err.context["key"] == "defeat.max_depth"
        assert "defeat.max_depth" in err.message

    def test_raise_and_catch_as_base(self) -> None:
        """All subclasses are caught by CredenceError."""
        with pytest.raises(CredenceError, match="CR-3001"):
            raise validation_error(ErrorCode.CALIBRATION_EMPTY_INPUT, field="predictions", detail="empty")
