import os
import sys
import tempfile
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any
from uuid import UUID

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

sys.path.append(str(Path(__file__).parents[1] / "src"))

ENV_TEST_PATH = Path(__file__).parents[1] / ".env.test"

TEST_ENCRYPTION_KEY = "00112233445566778899aabbccddeeff00112233445566778899aabbccddeeff"
TEST_SWEEP_TOKEN = "test-sweep-token"


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for line in path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        os.environ.setdefault(key, value)


_load_env_file(ENV_TEST_PATH)
# Settings are cached on first import, so these must be set before finsync loads.
os.environ.setdefault("ENCRYPTION_KEY", TEST_ENCRYPTION_KEY)
os.environ.setdefault("SWEEP_TOKEN", TEST_SWEEP_TOKEN)
os.environ.setdefault("PLAID_WEBHOOK_VERIFICATION_ENABLED", "false")
os.environ.setdefault("JWT_SECRET", "test-secret")

from finsync.api.deps import get_audit_sink, get_db, get_feed  # noqa: E402
from finsync.config import get_settings  # noqa: E402
from finsync.main import app  # noqa: E402
from finsync.plaid.client import UpstreamFetchError  # noqa: E402
from finsync.schemas.upstream import (  # noqa: E402
    AccountsPage,
    PublicTokenExchange,
    SyncPage,
    TransactionsPage,
    UpstreamTransaction,
)
from finsync.services.audit import NullAuditSink  # noqa: E402

# Postgres is the production backend; a throwaway SQLite file keeps the
# default test run self-contained.
TEST_DATABASE_URL = os.getenv(
    "TEST_DATABASE_URL",
    "sqlite+aiosqlite:///"
    + str(Path(tempfile.gettempdir()) / f"finsync-test-{os.getpid()}.db"),
)
IS_SQLITE = TEST_DATABASE_URL.startswith("sqlite")

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False)
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


class FakeFeed:
    """In-memory upstream feed.

    ``sync_pages`` maps a cursor (None for the first page) to the page to
    return, or to an exception to raise. ``range_transactions`` backs the
    offset-paginated date-range feed.
    """

    def __init__(self):
        self.sync_pages: dict[str | None, Any] = {}
        self.sync_calls: list[tuple[str, str | None]] = []
        self.range_transactions: list[UpstreamTransaction] = []
        self.range_error: Exception | None = None
        self.range_calls: list[tuple[date, date, int, int]] = []
        self.verification_keys: dict[str, dict] = {}
        self.key_calls: list[str] = []
        self.exchanges: dict[str, PublicTokenExchange] = {}
        self.accounts: dict[str, AccountsPage] = {}
        self.link_error: Exception | None = None

    async def sync_transactions(self, access_token: str, cursor: str | None) -> SyncPage:
        self.sync_calls.append((access_token, cursor))
        outcome = self.sync_pages.get(cursor)
        if isinstance(outcome, Exception):
            raise outcome
        if outcome is None:
            return SyncPage(next_cursor=cursor, has_more=False)
        return outcome

    async def get_transactions(
        self, access_token: str, start_date: date, end_date: date, count: int, offset: int
    ) -> TransactionsPage:
        self.range_calls.append((start_date, end_date, count, offset))
        if self.range_error is not None:
            raise self.range_error
        return TransactionsPage(
            transactions=self.range_transactions[offset : offset + count],
            total_transactions=len(self.range_transactions),
        )

    async def get_webhook_verification_key(self, key_id: str) -> dict:
        self.key_calls.append(key_id)
        if key_id not in self.verification_keys:
            raise UpstreamFetchError("INVALID_INPUT", "unknown key")
        return self.verification_keys[key_id]

    async def exchange_public_token(self, public_token: str) -> PublicTokenExchange:
        if self.link_error is not None:
            raise self.link_error
        if public_token not in self.exchanges:
            raise UpstreamFetchError("INVALID_PUBLIC_TOKEN", "unknown public token")
        return self.exchanges[public_token]

    async def get_accounts(self, access_token: str) -> AccountsPage:
        return self.accounts.get(access_token, AccountsPage())


def make_access_token(user_id: UUID, expires_delta: timedelta | None = None) -> str:
    """Issue a bearer token the way the external auth service does."""
    settings = get_settings()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=30))
    return jwt.encode(
        {"sub": str(user_id), "exp": expire, "type": "access"},
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )


def make_upstream_txn(transaction_id: str = "txn-1", **overrides) -> UpstreamTransaction:
    data = {
        "transaction_id": transaction_id,
        "account_id": "plaid-acc-1",
        "amount": 4.25,
        "iso_currency_code": "USD",
        "date": "2026-01-15",
        "merchant_name": "Starbucks",
        "name": "STARBUCKS STORE 1234",
        "pending": False,
        "personal_finance_category": {
            "primary": "FOOD_AND_DRINK",
            "detailed": "FOOD_AND_DRINK_COFFEE",
        },
    }
    data.update(overrides)
    return UpstreamTransaction.model_validate(data)


@pytest.fixture
def upstream_txn():
    """Factory for upstream transaction payloads."""
    return make_upstream_txn


@pytest.fixture
def fake_feed() -> FakeFeed:
    return FakeFeed()


@pytest.fixture(scope="function")
async def setup_database():
    """Create tables for tests that need the database, and drop them after.

    Not autouse, so pure unit tests run without a database.
    """
    from finsync.models import base

    async with test_engine.begin() as conn:
        await conn.run_sync(base.Base.metadata.create_all)

    yield

    async with test_engine.begin() as conn:
        await conn.run_sync(base.Base.metadata.drop_all)

    await test_engine.dispose()


@pytest.fixture
async def db_session(setup_database):
    """Provide test database session with fresh connection per test."""
    async with TestSessionLocal() as session:
        yield session
        await session.rollback()


@pytest.fixture
def session_factory(setup_database):
    """Session factory bound to the test database, for code that opens its own sessions."""
    return TestSessionLocal


@pytest.fixture
async def test_user(db_session: AsyncSession):
    from finsync.models.user import User
    from finsync.repositories.user import UserRepository

    return await UserRepository(db_session).create(
        User(email="testuser@example.com", display_name="Test User")
    )


@pytest.fixture
async def other_user(db_session: AsyncSession):
    from finsync.models.user import User
    from finsync.repositories.user import UserRepository

    return await UserRepository(db_session).create(
        User(email="other@example.com", display_name="Other User")
    )


@pytest.fixture
async def linked_item(db_session: AsyncSession, test_user):
    """A linked item with one mapped account (upstream id ``plaid-acc-1``)."""
    from finsync.core.token_crypto import encrypt_secret
    from finsync.models.account import Account
    from finsync.models.plaid_item import PlaidItem

    item = PlaidItem(
        user_id=test_user.id,
        plaid_item_id="item-upstream-1",
        access_token_encrypted=encrypt_secret("access-sandbox-abc", TEST_ENCRYPTION_KEY),
        institution_name="First Platypus Bank",
    )
    db_session.add(item)
    await db_session.flush()
    db_session.add(
        Account(
            user_id=test_user.id,
            plaid_item_id=item.id,
            plaid_account_id="plaid-acc-1",
            name="Everyday Checking",
            type="depository",
            subtype="checking",
        )
    )
    await db_session.commit()
    await db_session.refresh(item)
    return item


@pytest.fixture
async def auth_headers(test_user):
    """Provide authentication headers with valid JWT token."""
    token = make_access_token(test_user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def client(db_session: AsyncSession, fake_feed: FakeFeed):
    """Provide test client with database, feed and audit overrides."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_feed] = lambda: fake_feed
    app.dependency_overrides[get_audit_sink] = lambda: NullAuditSink()
    app.state.metrics.reset()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
