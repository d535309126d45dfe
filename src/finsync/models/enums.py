"""String enums stored in the database as plain text columns."""
from enum import Enum


class CategorySource(str, Enum):
    """Who assigned a transaction's category."""

    SYSTEM = "SYSTEM"
    USER = "USER"
    RULE = "RULE"


# Upstream refreshes must leave these categories alone.
PROTECTED_CATEGORY_SOURCES = (CategorySource.USER.value, CategorySource.RULE.value)


class TransactionSource(str, Enum):
    PLAID = "PLAID"


class RuleField(str, Enum):
    MERCHANT_NAME = "MERCHANT_NAME"
    ORIGINAL_DESCRIPTION = "ORIGINAL_DESCRIPTION"
    ACCOUNT_NAME = "ACCOUNT_NAME"
    MCC = "MCC"
    PLAID_PRIMARY_CATEGORY = "PLAID_PRIMARY_CATEGORY"
    PLAID_DETAILED_CATEGORY = "PLAID_DETAILED_CATEGORY"


class RuleOperator(str, Enum):
    EQUALS = "EQUALS"
    CONTAINS = "CONTAINS"
    STARTS_WITH = "STARTS_WITH"
    ENDS_WITH = "ENDS_WITH"
    REGEX = "REGEX"


class RuleCreator(str, Enum):
    USER = "USER"
    SYSTEM = "SYSTEM"


class SyncJobStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    RETRY = "RETRY"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


CLAIMABLE_STATUSES = (SyncJobStatus.PENDING.value, SyncJobStatus.RETRY.value)
TERMINAL_STATUSES = (SyncJobStatus.COMPLETED.value, SyncJobStatus.FAILED.value)


class TriggerSource(str, Enum):
    WEBHOOK = "WEBHOOK"
    MANUAL = "MANUAL"
