"""Unit tests for the Plaid-backed upstream feed."""

import json
from datetime import date
from unittest.mock import MagicMock

import plaid
import pytest
from urllib3.exceptions import MaxRetryError, NewConnectionError

from finsync.config import Settings
from finsync.plaid.client import PLAID_HOSTS, PlaidFeedClient, UpstreamFetchError


def _api_exception(body) -> plaid.ApiException:
    exc = plaid.ApiException(status=400, reason="Bad Request")
    exc.body = body
    return exc


@pytest.fixture
def api() -> MagicMock:
    return MagicMock()


@pytest.fixture
def feed(api) -> PlaidFeedClient:
    return PlaidFeedClient(api=api)


class TestSyncTransactions:
    """Test the cursor-paginated change feed."""

    @pytest.mark.asyncio
    async def test_parses_page(self, feed, api):
        api.transactions_sync.return_value.to_dict.return_value = {
            "added": [
                {
                    "transaction_id": "t1",
                    "account_id": "a1",
                    "amount": 12.5,
                    "date": date(2026, 2, 1),
                    "name": "UBER TRIP",
                    "personal_finance_category": {
                        "primary": "TRANSPORTATION",
                        "detailed": "TRANSPORTATION_TAXIS_AND_RIDE_SHARES",
                        "confidence_level": "HIGH",
                    },
                    "location": {"city": "Austin"},
                }
            ],
            "modified": [],
            "removed": [{"transaction_id": "t0", "account_id": "a1"}],
            "next_cursor": "cursor-2",
            "has_more": True,
            "request_id": "req-1",
        }

        page = await feed.sync_transactions("access-sandbox-1", "cursor-1")

        assert page.next_cursor == "cursor-2"
        assert page.has_more is True
        assert page.added[0].detailed_category == "TRANSPORTATION_TAXIS_AND_RIDE_SHARES"
        assert page.removed[0].transaction_id == "t0"
        request = api.transactions_sync.call_args.args[0]
        assert request.access_token == "access-sandbox-1"
        assert request.cursor == "cursor-1"

    @pytest.mark.asyncio
    async def test_first_page_omits_cursor(self, feed, api):
        api.transactions_sync.return_value.to_dict.return_value = {"next_cursor": "c1"}

        await feed.sync_transactions("access-sandbox-1", None)

        request = api.transactions_sync.call_args.args[0]
        assert "cursor" not in request.to_dict()

    @pytest.mark.asyncio
    async def test_api_error_is_normalized(self, feed, api):
        api.transactions_sync.side_effect = _api_exception(
            json.dumps(
                {
                    "error_code": "TRANSACTIONS_SYNC_MUTATION_DURING_PAGINATION",
                    "error_message": "Underlying transaction data changed",
                }
            )
        )

        with pytest.raises(UpstreamFetchError) as exc_info:
            await feed.sync_transactions("access-sandbox-1", "c1")

        assert exc_info.value.code == "TRANSACTIONS_SYNC_MUTATION_DURING_PAGINATION"
        assert str(exc_info.value) == (
            "TRANSACTIONS_SYNC_MUTATION_DURING_PAGINATION: Underlying transaction data changed"
        )

    @pytest.mark.asyncio
    async def test_unparseable_error_body(self, feed, api):
        api.transactions_sync.side_effect = _api_exception("<html>gateway</html>")

        with pytest.raises(UpstreamFetchError) as exc_info:
            await feed.sync_transactions("access-sandbox-1", None)

        assert exc_info.value.code is None
        assert exc_info.value.message == "Bad Request"
        assert str(exc_info.value).startswith("PLAID_ERROR: ")

    @pytest.mark.asyncio
    async def test_transport_error_is_normalized(self, feed, api):
        api.transactions_sync.side_effect = MaxRetryError(
            None, "/transactions/sync", reason="read timed out"
        )

        with pytest.raises(UpstreamFetchError) as exc_info:
            await feed.sync_transactions("access-sandbox-1", "c1")

        assert exc_info.value.code is None
        assert isinstance(exc_info.value.__cause__, MaxRetryError)

    @pytest.mark.asyncio
    async def test_socket_error_is_normalized(self, feed, api):
        api.transactions_sync.side_effect = ConnectionResetError("reset by peer")

        with pytest.raises(UpstreamFetchError) as exc_info:
            await feed.sync_transactions("access-sandbox-1", None)

        assert exc_info.value.message == "reset by peer"

    @pytest.mark.asyncio
    async def test_malformed_page_is_normalized(self, feed, api):
        api.transactions_sync.return_value.to_dict.return_value = {
            "added": [{"transaction_id": "t1"}],
        }

        with pytest.raises(UpstreamFetchError) as exc_info:
            await feed.sync_transactions("access-sandbox-1", None)

        assert exc_info.value.code is None
        assert "SyncPage" in exc_info.value.message


class TestGetTransactions:
    @pytest.mark.asyncio
    async def test_passes_window_and_paging(self, feed, api):
        api.transactions_get.return_value.to_dict.return_value = {
            "transactions": [],
            "total_transactions": 0,
        }

        page = await feed.get_transactions(
            "access-sandbox-1", date(2026, 1, 1), date(2026, 3, 1), 500, 1000
        )

        assert page.total_transactions == 0
        request = api.transactions_get.call_args.args[0]
        assert request.start_date == date(2026, 1, 1)
        assert request.options.count == 500
        assert request.options.offset == 1000


class TestWebhookVerificationKey:
    @pytest.mark.asyncio
    async def test_returns_key(self, feed, api):
        api.webhook_verification_key_get.return_value.to_dict.return_value = {
            "key": {"kid": "k1", "kty": "EC"},
            "request_id": "r",
        }

        assert await feed.get_webhook_verification_key("k1") == {"kid": "k1", "kty": "EC"}


class TestItemLinking:
    @pytest.mark.asyncio
    async def test_exchange_public_token(self, feed, api):
        api.item_public_token_exchange.return_value.to_dict.return_value = {
            "access_token": "access-sandbox-new",
            "item_id": "item-1",
            "request_id": "r",
        }

        result = await feed.exchange_public_token("public-sandbox-1")

        assert (result.access_token, result.item_id) == ("access-sandbox-new", "item-1")
        request = api.item_public_token_exchange.call_args.args[0]
        assert request.public_token == "public-sandbox-1"

    @pytest.mark.asyncio
    async def test_get_accounts(self, feed, api):
        api.accounts_get.return_value.to_dict.return_value = {
            "accounts": [
                {
                    "account_id": "acc-1",
                    "name": "Plaid Checking",
                    "mask": "0000",
                    "type": "depository",
                    "subtype": "checking",
                    "balances": {
                        "current": 110.0,
                        "available": 100.0,
                        "iso_currency_code": "USD",
                    },
                }
            ],
            "item": {"item_id": "item-1", "institution_id": "ins_109508"},
        }

        page = await feed.get_accounts("access-sandbox-new")

        assert [a.account_id for a in page.accounts] == ["acc-1"]
        assert page.accounts[0].balances.available == 100.0
        assert page.institution_id == "ins_109508"

    @pytest.mark.asyncio
    async def test_connection_failure_during_exchange(self, feed, api):
        api.item_public_token_exchange.side_effect = NewConnectionError(
            None, "Failed to establish a new connection"
        )

        with pytest.raises(UpstreamFetchError):
            await feed.exchange_public_token("public-sandbox-1")


class TestConfiguration:
    def test_builds_sdk_client_for_environment(self):
        client = PlaidFeedClient(
            settings=Settings(plaid_env="production", plaid_client_id="cid", plaid_secret="s")
        )
        assert client._api.api_client.configuration.host == PLAID_HOSTS["production"]
