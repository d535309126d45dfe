"""Error codes and user-friendly messages.

This module defines the error catalog for sync and categorization.
Each error has:
- code: Unique identifier
- message: Technical description (for logs)
- user_message: User-friendly explanation
- suggestion: Actionable guidance for the user
- retry_allowed: Whether the error is retryable

Upstream failures deliberately share one generic user message; retry
details live on the sync job row, not in API responses.
"""

ERROR_CATALOG: dict[str, dict] = {
    "SYNC_001": {
        "code": "SYNC_001",
        "message": "No linked Plaid items found",
        "user_message": "No linked bank connections were found.",
        "suggestion": "Link a bank account before syncing transactions.",
        "retry_allowed": False,
    },
    "SYNC_002": {
        "code": "SYNC_002",
        "message": "Upstream transaction feed request failed",
        "user_message": "We couldn't reach your bank right now.",
        "suggestion": "Please try again in a few minutes.",
        "retry_allowed": True,
    },
    "SYNC_003": {
        "code": "SYNC_003",
        "message": "Upstream feed failed again after cursor reset",
        "user_message": "We couldn't reach your bank right now.",
        "suggestion": "Please try again in a few minutes.",
        "retry_allowed": True,
    },
    "LINK_001": {
        "code": "LINK_001",
        "message": "Public token exchange with Plaid failed",
        "user_message": "We couldn't connect your bank account.",
        "suggestion": "Please try linking the account again.",
        "retry_allowed": True,
    },
    "SYNC_004": {
        "code": "SYNC_004",
        "message": "Sync job not found",
        "user_message": "We couldn't find this sync job.",
        "suggestion": "Please check the job ID and try again.",
        "retry_allowed": False,
    },
    "TXN_001": {
        "code": "TXN_001",
        "message": "Transaction not found",
        "user_message": "We couldn't find this transaction.",
        "suggestion": "Please refresh and try again.",
        "retry_allowed": False,
    },
    "TXN_002": {
        "code": "TXN_002",
        "message": "Invalid category",
        "user_message": "That category doesn't exist.",
        "suggestion": "Please choose one of your categories.",
        "retry_allowed": False,
    },
    "HOOK_001": {
        "code": "HOOK_001",
        "message": "Webhook signature verification failed",
        "user_message": "The webhook could not be verified.",
        "suggestion": "Check the webhook verification configuration.",
        "retry_allowed": False,
    },
    "AUTH_001": {
        "code": "AUTH_001",
        "message": "Operator sweep token missing or invalid",
        "user_message": "You don't have permission to run this operation.",
        "suggestion": "Provide a valid operator token.",
        "retry_allowed": False,
    },
}


def get_error(error_code: str) -> dict:
    """Get error definition by code.

    Args:
        error_code: Error code from the catalog

    Returns:
        Dict with error details (a generic entry for unknown codes)
    """
    if error_code not in ERROR_CATALOG:
        return {
            "code": "UNKNOWN",
            "message": f"Unknown error code: {error_code}",
            "user_message": "An unexpected error occurred.",
            "suggestion": "Please try again. Contact support if the problem persists.",
            "retry_allowed": True,
        }
    return ERROR_CATALOG[error_code]


def get_user_message(error_code: str) -> str:
    """Get user-friendly message for an error code."""
    return get_error(error_code)["user_message"]


def is_retryable(error_code: str) -> bool:
    """Check if an error is retryable."""
    return get_error(error_code)["retry_allowed"]
