"""Core types shared by the error hierarchy and the retry policy."""

from enum import Enum


class ErrorCategory(Enum):
    """
    Classification of error types for handling decisions.

    Categories:
        TRANSIENT: Temporary failures that should retry with backoff
                   (e.g., broker disconnects, publish/commit timeouts)
        PERMANENT: Non-retriable failures that won't succeed on retry
                   (e.g., malformed documents, revision conflicts)
        UNKNOWN: Unclassified errors, may retry conservatively
    """

    TRANSIENT = "transient"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"


__all__ = ["ErrorCategory"]
