"""
tsmatrix Validation Module

Exports:
    - validate_store: Consistency report for a ValueStore
    - ValidationError: Raised when store validation fails
    - StoreValidationReport: Report dataclass
"""

from .snapshot_validation import (
    validate_store,
    ValidationError,
    StoreValidationReport,
)

__all__ = [
    'validate_store',
    'ValidationError',
    'StoreValidationReport',
]
