"""Database models."""
from finsync.models.user import User
from finsync.models.plaid_item import PlaidItem
from finsync.models.account import Account
from finsync.models.category import Category
from finsync.models.transaction import Transaction
from finsync.models.category_rule import CategoryRule
from finsync.models.category_change_event import CategoryChangeEvent
from finsync.models.sync_job import SyncJob
from finsync.models.audit_event import AuditEvent

__all__ = [
    "User",
    "PlaidItem",
    "Account",
    "Category",
    "Transaction",
    "CategoryRule",
    "CategoryChangeEvent",
    "SyncJob",
    "AuditEvent",
]
