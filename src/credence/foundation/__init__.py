"""Foundation layer: errors, configuration and logging."""

from credence.foundation.config import CredenceConfig, get_config, load_config, reset_config
from credence.foundation.errors import CredenceError, ErrorCode, ValidationError

__all__ = [
    "CredenceConfig",
    "CredenceError",
    "ErrorCode",
    "ValidationError",
    "get_config",
    "load_config",
    "reset_config",
]
