"""Data access repositories."""
from finsync.repositories.account import AccountRepository
from finsync.repositories.audit_event import AuditEventRepository
from finsync.repositories.category import CategoryRepository
from finsync.repositories.category_rule import CategoryRuleRepository
from finsync.repositories.plaid_item import PlaidItemRepository
from finsync.repositories.sync_job import SyncJobRepository
from finsync.repositories.transaction import TransactionRepository
from finsync.repositories.user import UserRepository

__all__ = [
    "AccountRepository",
    "AuditEventRepository",
    "CategoryRepository",
    "CategoryRuleRepository",
    "PlaidItemRepository",
    "SyncJobRepository",
    "TransactionRepository",
    "UserRepository",
]
