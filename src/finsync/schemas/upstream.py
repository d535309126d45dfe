"""Upstream feed payloads.

These mirror the subset of the aggregator's transaction, account and item
objects that finsync stores. Unknown fields are ignored so SDK upgrades do not break
parsing.
"""

from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PersonalFinanceCategory(BaseModel):
    model_config = ConfigDict(extra="ignore")

    primary: str | None = None
    detailed: str | None = None


class UpstreamTransaction(BaseModel):
    """One added or modified transaction from the feed."""

    model_config = ConfigDict(extra="ignore")

    transaction_id: str
    account_id: str
    amount: float
    iso_currency_code: str | None = None
    date: date
    authorized_date: date | None = None
    merchant_name: str | None = None
    name: str = ""
    mcc: str | None = None
    pending: bool = False
    personal_finance_category: PersonalFinanceCategory | None = None

    @property
    def primary_category(self) -> str | None:
        pfc = self.personal_finance_category
        return pfc.primary if pfc else None

    @property
    def detailed_category(self) -> str | None:
        pfc = self.personal_finance_category
        return pfc.detailed if pfc else None


class RemovedTransaction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    transaction_id: str


class SyncPage(BaseModel):
    """One page of the cursor-paginated change feed."""

    added: list[UpstreamTransaction] = Field(default_factory=list)
    modified: list[UpstreamTransaction] = Field(default_factory=list)
    removed: list[RemovedTransaction] = Field(default_factory=list)
    next_cursor: str | None = None
    has_more: bool = False


class TransactionsPage(BaseModel):
    """One page of the offset-paginated date-range feed."""

    transactions: list[UpstreamTransaction] = Field(default_factory=list)
    total_transactions: int = 0


class PublicTokenExchange(BaseModel):
    model_config = ConfigDict(extra="ignore")

    access_token: str
    item_id: str


class AccountBalances(BaseModel):
    model_config = ConfigDict(extra="ignore")

    current: float | None = None
    available: float | None = None
    iso_currency_code: str | None = None


class UpstreamAccount(BaseModel):
    """One account under a linked item."""

    model_config = ConfigDict(extra="ignore")

    account_id: str
    name: str
    mask: str | None = None
    type: str | None = None
    subtype: str | None = None
    balances: AccountBalances = Field(default_factory=AccountBalances)


class AccountsPage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    accounts: list[UpstreamAccount] = Field(default_factory=list)
    item: dict[str, Any] | None = None

    @property
    def institution_id(self) -> str | None:
        value = (self.item or {}).get("institution_id")
        return value if isinstance(value, str) else None
