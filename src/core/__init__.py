"""
Core library: Reusable, infrastructure-agnostic components.

Modules:
    resilience  - Retry with exponential backoff and jitter
    logging     - Structured JSON logging with message context
    errors      - Error classification and exception hierarchy
    utils       - JSON serialization helpers, worker ids

Design Principles:
    - No dependencies on the message transport or storage backends
    - All modules are independently testable
    - Async-first where applicable
"""

from .types import ErrorCategory

__version__ = "0.1.0"

__all__ = [
    "ErrorCategory",
]
