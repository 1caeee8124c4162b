"""Shared types for toolmesh.

Import from here rather than submodules:
    from toolmesh.types import ConnectionStatus, LogLevel, ValidationResult
"""

from .enums import ConnectionStatus, LogFormat, LogLevel, TransportKind
from .validation import ValidationIssue, ValidationResult

__all__ = [
    # Enums
    "LogLevel",
    "LogFormat",
    "TransportKind",
    "ConnectionStatus",
    # Validation
    "ValidationIssue",
    "ValidationResult",
]
