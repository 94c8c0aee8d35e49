"""Confidence value algebra.

Five confidence variants (Deterministic, Bounded, Measured, Derived, Absent),
composition operators that track calibration, and a formula AST for
auditing derivations.
"""

from credence.confidence.algebra import (
    ConfidenceStatusReport,
    ThresholdCheck,
    and_confidence,
    apply_decay,
    check_threshold,
    compute_calibration_status,
    confidence_type,
    describe_confidence,
    effective_confidence,
    input_bindings,
    meets_threshold,
    numeric_value,
    or_confidence,
    parallel_all,
    parallel_all_correlated,
    parallel_any,
    re_evaluate,
    select_with_degradation,
    sequence,
    weighted_average,
)
from credence.confidence.formula import (
    FormulaNode,
    Max,
    Min,
    Product,
    Scale,
    Sum,
    Value,
    create_formula,
    evaluate_formula,
    formula_from_dict,
    formula_names,
    formula_to_dict,
    formula_to_string,
)
from credence.confidence.types import (
    Absent,
    Bounded,
    ConfidenceInput,
    ConfidenceValue,
    Derived,
    Deterministic,
    Measured,
    absent,
    bounded,
    confidence_from_dict,
    confidence_to_dict,
    deterministic,
    is_confidence_value,
    measured,
    syntactic,
)

__all__ = [
    # Types
    "Absent",
    "Bounded",
    "ConfidenceInput",
    "ConfidenceValue",
    "Derived",
    "Deterministic",
    "Measured",
    "absent",
    "bounded",
    "confidence_from_dict",
    "confidence_to_dict",
    "deterministic",
    "is_confidence_value",
    "measured",
    "syntactic",
    # Formula
    "FormulaNode",
    "Max",
    "Min",
    "Product",
    "Scale",
    "Sum",
    "Value",
    "create_formula",
    "evaluate_formula",
    "formula_from_dict",
    "formula_names",
    "formula_to_dict",
    "formula_to_string",
    # Algebra
    "ConfidenceStatusReport",
    "ThresholdCheck",
    "and_confidence",
    "apply_decay",
    "check_threshold",
    "compute_calibration_status",
    "confidence_type",
    "describe_confidence",
    "effective_confidence",
    "input_bindings",
    "meets_threshold",
    "numeric_value",
    "or_confidence",
    "parallel_all",
    "parallel_all_correlated",
    "parallel_any",
    "re_evaluate",
    "select_with_degradation",
    "sequence",
    "weighted_average",
]
