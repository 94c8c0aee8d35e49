"""Credence - calibrated confidence for automated reasoning.

Three pieces:

- ``credence.confidence``: typed confidence values and the algebra that
  composes them while tracking whether calibration survives.
- ``credence.defeat``: defeaters, meta-defeat and transitive invalidation
  of dependent claims.
- ``credence.calibration``: measuring and correcting the gap between stated
  confidence and observed accuracy.
"""

__version__ = "0.1.0"

from credence.confidence import (
    Absent,
    Bounded,
    ConfidenceValue,
    Derived,
    Deterministic,
    Measured,
    parallel_all,
    parallel_any,
    sequence,
)
from credence.contracts import ContractRegistry, PrimitiveContract, derive_confidence
from credence.foundation.errors import CredenceError, ErrorCode, ValidationError

__all__ = [
    "__version__",
    # Confidence
    "Absent",
    "Bounded",
    "ConfidenceValue",
    "Derived",
    "Deterministic",
    "Measured",
    "parallel_all",
    "parallel_any",
    "sequence",
    # Contracts
    "ContractRegistry",
    "PrimitiveContract",
    "derive_confidence",
    # Errors
    "CredenceError",
    "ErrorCode",
    "ValidationError",
]
