"""
Error classification and exception hierarchy.

Provides:
- ErrorCategory enum for classifying errors
- PipelineError hierarchy for typed exceptions
- Classification utilities for retry/dead-letter decisions
"""

from core.errors.exceptions import (
    DocumentNotFoundError,
    # Enums
    ErrorCategory,
    # Document / store errors
    MalformedDocumentError,
    OutOfOrderError,
    PermanentError,
    # Base classes
    PipelineError,
    ProcessorError,
    RevisionConflictError,
    RevisionNotFoundError,
    StorageDurabilityError,
    StoreError,
    TransientError,
    TransportError,
    # Classification utilities
    classify_exception,
    classify_os_error,
    is_retryable_error,
    wrap_exception,
)

__all__ = [
    # Enums
    "ErrorCategory",
    # Base classes
    "PipelineError",
    "TransientError",
    "PermanentError",
    # Document / store errors
    "MalformedDocumentError",
    "StoreError",
    "RevisionConflictError",
    "OutOfOrderError",
    "DocumentNotFoundError",
    "RevisionNotFoundError",
    "StorageDurabilityError",
    # Processing / transport
    "ProcessorError",
    "TransportError",
    # Classification utilities
    "is_retryable_error",
    "classify_os_error",
    "classify_exception",
    "wrap_exception",
]
