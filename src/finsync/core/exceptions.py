"""Custom exception classes for sync and categorization.

Each exception maps to an error code in errors.py and carries the HTTP
status the API layer should answer with.
"""

from typing import Any


class SyncProcessingError(Exception):
    """Base exception for all sync and categorization errors.

    Attributes:
        error_code: Code from the error catalog (e.g., "SYNC_001")
        details: Additional context about the error (for logging)
        http_status: HTTP status code to return (default: 500)
    """

    def __init__(
        self,
        error_code: str,
        details: dict[str, Any] | None = None,
        http_status: int = 500,
    ):
        self.error_code = error_code
        self.details = details or {}
        self.http_status = http_status
        super().__init__(error_code)


class NoLinkedItemsError(SyncProcessingError):
    """Raised when a user has no linked Plaid item matching the request.

    Callers map this to "not found" rather than an upstream failure.
    """

    def __init__(self, details: dict[str, Any] | None = None):
        super().__init__("SYNC_001", details=details, http_status=404)


class UpstreamSyncError(SyncProcessingError):
    """Raised when the upstream transaction feed cannot be read."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        error_code: str = "SYNC_002",
    ):
        self.message = message
        super().__init__(error_code, details=details, http_status=502)

    def __str__(self) -> str:
        return self.message


class CursorDriftError(UpstreamSyncError):
    """Raised when the feed fails again after the one-shot cursor reset."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details=details, error_code="SYNC_003")


class SyncJobNotFoundError(SyncProcessingError):
    """Raised when a sync job does not exist for the requesting user."""

    def __init__(self, details: dict[str, Any] | None = None):
        super().__init__("SYNC_004", details=details, http_status=404)


class TransactionNotFoundError(SyncProcessingError):
    """Raised when a transaction does not exist for the requesting user."""

    def __init__(self, details: dict[str, Any] | None = None):
        super().__init__("TXN_001", details=details, http_status=404)


class InvalidCategoryError(SyncProcessingError):
    """Raised when a category id does not belong to the requesting user."""

    def __init__(self, details: dict[str, Any] | None = None):
        super().__init__("TXN_002", details=details, http_status=400)


class WebhookVerificationError(SyncProcessingError):
    """Raised when an inbound Plaid webhook fails signature verification."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__("HOOK_001", details={"reason": reason}, http_status=401)


class OperatorAuthError(SyncProcessingError):
    """Raised when the operator sweep token is missing or wrong."""

    def __init__(self):
        super().__init__("AUTH_001", http_status=403)
