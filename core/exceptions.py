"""
Custom exceptions for the NVD sync pipeline with structured error context.

Each exception carries a context dictionary (window label, start index,
file path, ...) so that a failed run can be diagnosed from the log line and
from the persisted run summary alone.

Exception Hierarchy:
    SyncException (base)
    ├── FetchError
    │   ├── TransportError (retryable)
    │   ├── RateLimitExceeded (retryable)
    │   ├── AuthenticationError (non-retryable)
    │   ├── ResourceNotFoundError (non-retryable)
    │   └── MalformedResponseError (non-retryable)
    ├── StorageError
    │   ├── PartitionError
    │   ├── MergeError
    │   └── CheckpointError
    ├── RunLockError
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class SyncException(Exception):
    """
    Base exception for all sync-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (window, path, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        # Add timestamp to context
        self.context["error_timestamp"] = self.timestamp.isoformat()

        # Chain original exception if provided
        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(SyncException):
    """
    Mixin for errors that should trigger retry logic.

    Use this for transient errors like:
    - Network timeouts
    - Rate limiting (HTTP 429)
    - Service unavailable (HTTP 5xx)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        max_retries: int = 3,
        retry_delay: float = 1.0
    ):
        super().__init__(message, context, original_exception)
        self.max_retries = max_retries
        self.retry_delay = retry_delay


class NonRetryableError(SyncException):
    """
    Mixin for errors that should NOT trigger retry logic.

    Use this for permanent errors like:
    - Authentication failures (HTTP 401, 403)
    - Response bodies missing required fields
    - Resource not found (HTTP 404)
    """
    pass


# ============================================================================
# Fetch Errors
# ============================================================================

class FetchError(SyncException):
    """
    Base exception for failures while retrieving a window from the API.

    Context should include:
        - api_url: The API endpoint that failed
        - window: Label of the window being fetched
        - start_index: Pagination offset of the failing request
        - status_code: HTTP status code (if applicable)
    """
    pass


class TransportError(RetryableError, FetchError):
    """Network failures, timeouts and server errors (HTTP 5xx)."""
    pass


class RateLimitExceeded(RetryableError, FetchError):
    """The API kept answering HTTP 429 after all retries."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        retry_after: Optional[float] = None
    ):
        super().__init__(message, context, original_exception)
        self.retry_after = retry_after  # Seconds to wait before retry
        if retry_after:
            self.context["retry_after"] = retry_after


class AuthenticationError(NonRetryableError, FetchError):
    """Authentication failures (HTTP 401, 403), usually a bad apiKey."""
    pass


class ResourceNotFoundError(NonRetryableError, FetchError):
    """Resource not found errors (HTTP 404)."""
    pass


class MalformedResponseError(NonRetryableError, FetchError):
    """
    The response body is not JSON or lacks the fields pagination relies on.

    Context should include:
        - field: The missing or mistyped field (totalResults, vulnerabilities)
        - response_body: Response body (truncated)
    """
    pass


# ============================================================================
# Storage Errors
# ============================================================================

class StorageError(SyncException):
    """Base exception for data directory failures."""
    pass


class PartitionError(StorageError):
    """
    Exception raised when a shard cannot be created, appended or sealed.

    Context should include:
        - shard: Shard file name
        - window: Window label
    """
    pass


class MergeError(StorageError):
    """
    Exception raised when shards cannot be consolidated.

    Context should include:
        - shard: Shard being read when the failure happened
        - line_number: Offending line (for decode failures)
        - output: Dataset path being written
    """
    pass


class CheckpointError(StorageError):
    """
    Exception raised when checkpoint management fails.

    Context should include:
        - path: Checkpoint file path
        - checkpoint_value: The checkpoint value that failed
        - operation: Operation that failed (read, write)
    """
    pass


# ============================================================================
# Run Control Errors
# ============================================================================

class RunLockError(SyncException):
    """Another sync run holds the data directory lock."""
    pass
