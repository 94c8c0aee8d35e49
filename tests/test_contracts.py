"""Tests for primitive contracts and the contract registry."""

import threading

import pytest

from credence.confidence import Absent, Derived, Deterministic, Measured
from credence.contracts import (
    ConfidenceDerivationSpec,
    ConfidenceFactor,
    ContractRegistry,
    ErrorSpec,
    ExpectedError,
    Postcondition,
    Precondition,
    PrimitiveContract,
    RetryPolicy,
    create_contract,
    derive_confidence,
    describe_contract,
    validate_contract,
)
from credence.foundation.errors import CredenceError, ErrorCode

TWO_FACTORS = (
    ConfidenceFactor("input", "input_confidence"),
    ConfidenceFactor("quality", "execution_quality", base_weight=3.0),
)


def factor_values() -> dict:
    return {
        "input": Measured("bench", 100, 0.9, (0.84, 0.95)),
        "quality": Measured("bench", 100, 0.5, (0.4, 0.6)),
    }


def non_empty(output) -> bool:
    return bool(output)


class TestValidateContract:
    """Structural checks."""

    def test_valid(self) -> None:
        """A contract with a condition validates cleanly."""
        contract = PrimitiveContract(
            "parse.ast", "Parse AST",
            postconditions=(Postcondition("post.non_empty", "has nodes", non_empty),),
        )

        result = validate_contract(contract)

        assert result.valid
        assert result.warnings == ()

    def test_no_conditions_warns(self) -> None:
        """A contract without conditions is valid but warned about."""
        result = validate_contract(PrimitiveContract("parse.ast", "Parse AST"))

        assert result.valid
        assert result.warnings

    def test_collects_every_problem(self) -> None:
        """All errors are reported together."""
        contract = PrimitiveContract(
            "",
            "",
            preconditions=(Precondition("", "x", "not callable"),),  # type: ignore[arg-type]
            confidence_derivation=ConfidenceDerivationSpec(
                factors=(ConfidenceFactor("a", "input_confidence"), ConfidenceFactor("a", "input_confidence", -1.0)),
                combiner="median",  # type: ignore[arg-type]
            ),
            error_spec=ErrorSpec(retry_policy=RetryPolicy(max_attempts=-1)),
        )

        errors = validate_contract(contract).errors

        assert "primitive_id: required" in errors
        assert "name: required" in errors
        assert "preconditions[0].id: required" in errors
        assert "preconditions[0].check: must be callable" in errors
        assert "confidence_derivation.factors[1].id: duplicate 'a'" in errors
        assert "confidence_derivation.factors[1]: weight must be non-negative" in errors
        assert "error_spec.retry_policy.max_attempts: must be non-negative" in errors
        assert any(e.startswith("confidence_derivation.combiner") for e in errors)

    def test_create_contract_raises(self) -> None:
        """create_contract refuses invalid contracts."""
        with pytest.raises(CredenceError) as exc_info:
            create_contract("parse.ast", "")

        assert exc_info.value.code == ErrorCode.CONTRACT_INVALID
        assert "name: required" in str(exc_info.value)

    def test_create_contract_defaults(self) -> None:
        """Defaults are filled in."""
        contract = create_contract("parse.ast", "Parse AST")

        assert contract.confidence_derivation.combiner == "min"
        assert contract.error_spec.retry_policy.max_attempts == 3
        assert contract.version == "1.0.0"


class TestRetryPolicy:
    def test_backoff(self) -> None:
        """Delays grow geometrically and are capped."""
        policy = RetryPolicy()

        assert [policy.delay_ms(n) for n in (1, 2, 3)] == [100, 200, 400]
        assert policy.delay_ms(20) == 5000


class TestContractRegistry:
    """Registration and lookup."""

    def test_register_and_lookup(self) -> None:
        """Registered contracts can be fetched."""
        registry = ContractRegistry()
        contract = create_contract("parse.ast", "Parse AST")

        registry.register(contract)

        assert registry.has("parse.ast")
        assert registry.get("parse.ast") is contract
        assert registry.require("parse.ast") is contract
        assert registry.list() == [contract]
        assert len(registry) == 1

    def test_duplicate(self) -> None:
        """A second contract for the same primitive is rejected."""
        registry = ContractRegistry()
        registry.register(create_contract("parse.ast", "Parse AST"))

        with pytest.raises(CredenceError) as exc_info:
            registry.register(create_contract("parse.ast", "Other"))

        assert exc_info.value.code == ErrorCode.CONTRACT_DUPLICATE
        assert registry.get("parse.ast").name == "Parse AST"

    def test_missing(self) -> None:
        """get returns None and require raises."""
        registry = ContractRegistry()

        assert registry.get("nope") is None
        with pytest.raises(CredenceError, match="No contract registered for 'nope'"):
            registry.require("nope")

    def test_registries_are_independent(self) -> None:
        """There is no shared global state."""
        first, second = ContractRegistry(), ContractRegistry()
        first.register(create_contract("parse.ast", "Parse AST"))

        assert not second.has("parse.ast")

    def test_concurrent_registration(self) -> None:
        """Exactly one of many racing registrations wins."""
        registry = ContractRegistry()
        failures = []

        def register() -> None:
            try:
                registry.register(create_contract("parse.ast", "Parse AST"))
            except CredenceError as e:
                failures.append(e)

        threads = [threading.Thread(target=register) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(registry) == 1
        assert len(failures) == 9


class TestDeriveConfidence:
    """Combining factor values."""

    def test_min(self) -> None:
        """min uses sequence composition."""
        result = derive_confidence(ConfidenceDerivationSpec(TWO_FACTORS, "min"), factor_values())

        assert isinstance(result, Derived)
        assert result.value == 0.5
        assert result.formula == "min(step_0, step_1)"

    def test_product(self) -> None:
        """product multiplies."""
        result = derive_confidence(ConfidenceDerivationSpec(TWO_FACTORS, "product"), factor_values())

        assert result.value == pytest.approx(0.45)

    def test_noisy_or(self) -> None:
        """noisy_or uses parallel_any."""
        result = derive_confidence(ConfidenceDerivationSpec(TWO_FACTORS, "noisy_or"), factor_values())

        assert result.value == pytest.approx(0.95)

    def test_weighted_average(self) -> None:
        """Weights come from base_weight unless overridden."""
        spec = ConfidenceDerivationSpec(TWO_FACTORS, "weighted_average")
        assert derive_confidence(spec, factor_values()).value == pytest.approx((0.9 + 1.5) / 4)

        override = ConfidenceDerivationSpec(TWO_FACTORS, "weighted_average", weights={"quality": 1.0})
        assert derive_confidence(override, factor_values()).value == pytest.approx(0.7)

    def test_no_factors(self) -> None:
        """An empty spec has insufficient data."""
        assert derive_confidence(ConfidenceDerivationSpec(), {}) == Absent("insufficient_data")

    def test_missing_factor(self) -> None:
        """Missing factors are absent, so min is absent."""
        result = derive_confidence(
            ConfidenceDerivationSpec(TWO_FACTORS, "min"), {"input": Deterministic(1.0, "ok")},
        )

        assert isinstance(result, Absent)

    def test_missing_factor_noisy_or(self) -> None:
        """noisy_or drops missing factors."""
        result = derive_confidence(
            ConfidenceDerivationSpec(TWO_FACTORS, "noisy_or"), {"input": Measured("b", 10, 0.6, (0.3, 0.85))},
        )

        assert result.value == pytest.approx(0.6)
        assert result.calibration_status == "degraded"


class TestDescribeContract:
    def test_summary(self) -> None:
        """The summary lists ids and derivation details."""
        contract = create_contract(
            "parse.ast",
            "Parse AST",
            preconditions=[Precondition("pre.has_source", "source given", non_empty)],
            confidence_derivation=ConfidenceDerivationSpec(TWO_FACTORS, "weighted_average"),
            error_spec=ErrorSpec(expected_errors=(ExpectedError("SYNTAX", False, "throw"),)),
        )

        data = describe_contract(contract)

        assert data["primitiveId"] == "parse.ast"
        assert data["preconditions"] == ["pre.has_source"]
        assert data["confidenceDerivation"]["factors"][1] == {
            "id": "quality", "source": "execution_quality", "weight": 3.0,
        }
        assert data["errorSpec"] == {"expectedErrors": ["SYNTAX"], "fallback": "throw", "maxAttempts": 3}
