"""Upstream transaction feed backed by the Plaid SDK.

The SDK is synchronous, so every call runs in a worker thread. API errors,
transport failures and unparseable responses are all normalized into
``UpstreamFetchError`` so callers never depend on the SDK's exception types.
"""

import asyncio
import json
import logging
from datetime import date
from typing import Any, Protocol

import plaid
from plaid.api import plaid_api
from plaid.model.accounts_get_request import AccountsGetRequest
from plaid.model.item_public_token_exchange_request import ItemPublicTokenExchangeRequest
from plaid.model.transactions_get_request import TransactionsGetRequest
from plaid.model.transactions_get_request_options import TransactionsGetRequestOptions
from plaid.model.transactions_sync_request import TransactionsSyncRequest
from plaid.model.webhook_verification_key_get_request import WebhookVerificationKeyGetRequest
from pydantic import BaseModel, ValidationError
from urllib3.exceptions import HTTPError as TransportError

from finsync.config import Settings, get_settings
from finsync.schemas.upstream import (
    AccountsPage,
    PublicTokenExchange,
    SyncPage,
    TransactionsPage,
)

logger = logging.getLogger(__name__)

PLAID_HOSTS = {
    "sandbox": "https://sandbox.plaid.com",
    "development": "https://development.plaid.com",
    "production": "https://production.plaid.com",
}


class UpstreamFetchError(Exception):
    """A failed call to the upstream feed.

    Attributes:
        code: Provider error code when one was returned (e.g. "ITEM_LOGIN_REQUIRED")
        message: Provider or transport error message
    """

    def __init__(self, code: str | None, message: str):
        self.code = code
        self.message = message
        super().__init__(f"{code or 'PLAID_ERROR'}: {message}")


class UpstreamFeed(Protocol):
    """What the reconciler, item linking and webhook verifier need from the provider."""

    async def sync_transactions(self, access_token: str, cursor: str | None) -> SyncPage:
        ...

    async def get_transactions(
        self, access_token: str, start_date: date, end_date: date, count: int, offset: int
    ) -> TransactionsPage:
        ...

    async def get_webhook_verification_key(self, key_id: str) -> dict[str, Any]:
        ...

    async def exchange_public_token(self, public_token: str) -> PublicTokenExchange:
        ...

    async def get_accounts(self, access_token: str) -> AccountsPage:
        ...


def _error_from_api_exception(exc: "plaid.ApiException") -> UpstreamFetchError:
    code = None
    message = None
    try:
        body = json.loads(exc.body) if exc.body else {}
    except (TypeError, ValueError):
        body = {}
    if isinstance(body, dict):
        if isinstance(body.get("error_code"), str):
            code = body["error_code"]
        if isinstance(body.get("error_message"), str) and body["error_message"].strip():
            message = body["error_message"]
    if message is None:
        message = (exc.reason or str(exc) or "").strip() or "Unknown Plaid sync error"
    return UpstreamFetchError(code, message)


class PlaidFeedClient:
    """``UpstreamFeed`` implementation over ``plaid_api.PlaidApi``."""

    def __init__(self, settings: Settings | None = None, api: plaid_api.PlaidApi | None = None):
        settings = settings or get_settings()
        if api is None:
            configuration = plaid.Configuration(
                host=PLAID_HOSTS[settings.plaid_env],
                api_key={
                    "clientId": settings.plaid_client_id,
                    "secret": settings.plaid_secret,
                },
            )
            api = plaid_api.PlaidApi(plaid.ApiClient(configuration))
        self._api = api

    async def _call(self, fn, request) -> dict[str, Any]:
        try:
            response = await asyncio.to_thread(fn, request)
        except plaid.ApiException as exc:
            error = _error_from_api_exception(exc)
            logger.warning(
                "Plaid API call failed",
                extra={"error_code": error.code or "PLAID_ERROR", "error_type": "ApiException"},
            )
            raise error from exc
        except (TransportError, OSError) as exc:
            # Transport failure: no API response was received.
            logger.warning(
                "Plaid request did not complete",
                extra={"error_code": "PLAID_ERROR", "error_type": type(exc).__name__},
            )
            raise UpstreamFetchError(None, str(exc) or type(exc).__name__) from exc
        return response.to_dict()

    @staticmethod
    def _parse(model: type[BaseModel], data: dict[str, Any]) -> Any:
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            logger.warning(
                "Plaid response could not be parsed",
                extra={"error_code": "PLAID_ERROR", "error_type": "ValidationError"},
            )
            raise UpstreamFetchError(
                None, f"Malformed {model.__name__} response ({exc.error_count()} errors)"
            ) from exc

    async def sync_transactions(self, access_token: str, cursor: str | None) -> SyncPage:
        params: dict[str, Any] = {"access_token": access_token}
        if cursor:
            params["cursor"] = cursor
        data = await self._call(self._api.transactions_sync, TransactionsSyncRequest(**params))
        return self._parse(SyncPage, data)

    async def get_transactions(
        self, access_token: str, start_date: date, end_date: date, count: int, offset: int
    ) -> TransactionsPage:
        request = TransactionsGetRequest(
            access_token=access_token,
            start_date=start_date,
            end_date=end_date,
            options=TransactionsGetRequestOptions(count=count, offset=offset),
        )
        data = await self._call(self._api.transactions_get, request)
        return self._parse(TransactionsPage, data)

    async def get_webhook_verification_key(self, key_id: str) -> dict[str, Any]:
        data = await self._call(
            self._api.webhook_verification_key_get,
            WebhookVerificationKeyGetRequest(key_id=key_id),
        )
        return data["key"]

    async def exchange_public_token(self, public_token: str) -> PublicTokenExchange:
        """Trade a Link public token for a long-lived access token and item id."""
        data = await self._call(
            self._api.item_public_token_exchange,
            ItemPublicTokenExchangeRequest(public_token=public_token),
        )
        return self._parse(PublicTokenExchange, data)

    async def get_accounts(self, access_token: str) -> AccountsPage:
        data = await self._call(
            self._api.accounts_get, AccountsGetRequest(access_token=access_token)
        )
        return self._parse(AccountsPage, data)
