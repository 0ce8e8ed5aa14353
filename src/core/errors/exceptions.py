"""
Unified exception hierarchy for the DaaS pipeline.

Provides typed exceptions with retry classification so the broker can decide
between backoff and dead-lettering without inspecting message strings.
"""

# Import ErrorCategory from canonical source to avoid duplicate enum issues
# (comparing enums from different classes always returns False)
from core.types import ErrorCategory


class PipelineError(Exception):
    """
    Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error description
        category: Error classification for retry decisions
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        return self.category in (
            ErrorCategory.TRANSIENT,
            ErrorCategory.UNKNOWN,
        )

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


# =============================================================================
# Transient / Permanent Bases
# =============================================================================


class TransientError(PipelineError):
    """Base class for transient/retriable errors."""

    category = ErrorCategory.TRANSIENT


class PermanentError(PipelineError):
    """Base class for permanent/non-retriable errors."""

    category = ErrorCategory.PERMANENT


# =============================================================================
# Document Errors
# =============================================================================


class MalformedDocumentError(PermanentError):
    """Payload could not be decoded, or content does not match its declared type."""

    pass


# =============================================================================
# Store Errors
# =============================================================================


class StoreError(PermanentError):
    """Base class for document store errors."""

    def __init__(
        self,
        message: str,
        identity: str | None = None,
        revision: int | None = None,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        context = dict(context or {})
        if identity is not None:
            context.setdefault("identity", identity)
        if revision is not None:
            context.setdefault("revision", revision)
        super().__init__(message, cause, context)
        self.identity = identity
        self.revision = revision


class RevisionConflictError(StoreError):
    """(identity, revision) already stored with different content."""

    pass


class OutOfOrderError(StoreError):
    """Revision skips ahead of the stored history and its predecessor never arrived."""

    pass


class DocumentNotFoundError(StoreError):
    """No revisions are stored for the identity."""

    pass


class RevisionNotFoundError(StoreError):
    """Identity exists but the requested revision does not."""

    pass


class StorageDurabilityError(StoreError):
    """Underlying filesystem refused or failed a write. Never retried by the store."""

    pass


# =============================================================================
# Processing / Transport Errors
# =============================================================================


class ProcessorError(PipelineError):
    """
    Failure raised by a processor.

    The processor decides whether the broker should retry via ``retryable``.
    """

    def __init__(
        self,
        message: str,
        retryable: bool = True,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        super().__init__(message, cause, context)
        self.retryable = retryable
        self.category = ErrorCategory.TRANSIENT if retryable else ErrorCategory.PERMANENT


class TransportError(TransientError):
    """Message broker operation failed (publish, commit, fetch)."""

    pass


# =============================================================================
# Error Classification Utilities
# =============================================================================


def is_retryable_error(exc: Exception) -> bool:
    """
    Check if exception should be retried.

    Retryable errors include:
    - Transient errors (connection, timeout, broker unavailable)
    - Processor errors flagged retryable
    - Unknown errors (conservative retry)

    Non-retryable:
    - Permanent errors (malformed documents, revision conflicts)
    - Processor errors flagged non-retryable
    """
    if isinstance(exc, PipelineError):
        return exc.is_retryable

    category = classify_exception(exc)
    return category in (
        ErrorCategory.TRANSIENT,
        ErrorCategory.UNKNOWN,
    )


def classify_os_error(error: OSError) -> ErrorCategory:
    """
    Classify OSError by errno into error category.

    Conservative classification: only mark as PERMANENT if certain.
    Disk full (ENOSPC), read-only filesystem (EROFS), permission denied (EACCES/EPERM).
    """
    import errno

    permanent_errnos = (errno.ENOSPC, errno.EROFS, errno.EACCES, errno.EPERM)
    return ErrorCategory.PERMANENT if error.errno in permanent_errnos else ErrorCategory.TRANSIENT


def classify_exception(exc: Exception) -> ErrorCategory:
    """Classify an exception into error category."""
    # Already classified
    if isinstance(exc, PipelineError):
        return exc.category

    if isinstance(exc, (ValueError, TypeError, KeyError, UnicodeError)):
        return ErrorCategory.PERMANENT

    # asyncio.TimeoutError is the builtin TimeoutError on 3.11+
    if isinstance(exc, (TimeoutError, ConnectionError)):
        return ErrorCategory.TRANSIENT

    exc_type = type(exc).__name__.lower()
    exc_str = str(exc).lower()

    if "timeout" in exc_type or "timeout" in exc_str:
        return ErrorCategory.TRANSIENT

    connection_markers = (
        "connectionerror",
        "connection refused",
        "connection reset",
        "connection aborted",
        "kafkaconnectionerror",
        "nodenotready",
        "notleaderforpartition",
        "broker not available",
        "broken pipe",
    )
    if any(m in exc_type or m in exc_str for m in connection_markers):
        return ErrorCategory.TRANSIENT

    if isinstance(exc, OSError):
        return classify_os_error(exc)

    return ErrorCategory.UNKNOWN


def wrap_exception(
    exc: Exception,
    default_class: type = PipelineError,
    context: dict | None = None,
) -> PipelineError:
    """Wrap a generic exception in appropriate PipelineError subclass."""
    if isinstance(exc, PipelineError):
        if context:
            exc.context.update(context)
        return exc

    category = classify_exception(exc)
    context = context or {}
    context.setdefault("error_type", type(exc).__name__)

    if category == ErrorCategory.TRANSIENT:
        return TransientError(str(exc), cause=exc, context=context)

    if category == ErrorCategory.PERMANENT:
        return PermanentError(str(exc), cause=exc, context=context)

    # Default wrapper
    return default_class(str(exc), cause=exc, context=context)
