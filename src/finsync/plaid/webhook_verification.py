"""Plaid webhook signature verification.

Plaid signs each webhook with an ES256 JWT in the ``Plaid-Verification``
header. The JWT names its key (``kid``), carries an ``iat`` and the SHA-256 of
the raw request body.
"""

import hashlib
import hmac
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable

from jose import JWTError, jwt

logger = logging.getLogger(__name__)

MAX_IAT_SKEW_SECONDS = 5 * 60

KeyFetcher = Callable[[str], Awaitable[dict[str, Any]]]

_JWK_FIELDS = ("kty", "crv", "x", "y", "alg", "kid", "use")


@dataclass(frozen=True)
class VerificationResult:
    ok: bool
    reason: str | None = None


def _expiry_unix(expired_at: Any) -> float | None:
    if expired_at is None or expired_at == "":
        return None
    if isinstance(expired_at, (int, float)):
        return float(expired_at)
    if isinstance(expired_at, datetime):
        return expired_at.timestamp()
    return datetime.fromisoformat(str(expired_at).replace("Z", "+00:00")).timestamp()


class WebhookKeyCache:
    """Verification keys by ``kid``, kept until the key's ``expired_at``."""

    def __init__(self):
        self._keys: dict[str, tuple[dict[str, Any], float | None]] = {}

    async def get(self, kid: str, fetcher: KeyFetcher, now: float) -> dict[str, Any]:
        cached = self._keys.get(kid)
        if cached is not None:
            key, expires_at = cached
            if expires_at is None or expires_at > now:
                return key

        raw = await fetcher(kid)
        key = {name: raw[name] for name in _JWK_FIELDS if raw.get(name) is not None}
        self._keys[kid] = (key, _expiry_unix(raw.get("expired_at")))
        return key

    def clear(self) -> None:
        self._keys.clear()


default_key_cache = WebhookKeyCache()


def _secure_equal_hex(left: str, right: str) -> bool:
    return hmac.compare_digest(left.lower().encode("utf-8"), right.lower().encode("utf-8"))


async def verify_plaid_webhook(
    header: str | None,
    raw_body: bytes,
    key_fetcher: KeyFetcher,
    key_cache: WebhookKeyCache | None = None,
    now: float | None = None,
) -> VerificationResult:
    """Verify a webhook's ``Plaid-Verification`` header against its raw body.

    Never raises: every failure is reported through ``VerificationResult``.

    Args:
        header: Value of the ``Plaid-Verification`` header
        raw_body: Request body exactly as received
        key_fetcher: Coroutine returning the JWK for a key id
        key_cache: Key cache to use (module default when omitted)
        now: Current unix time, for tests

    Returns:
        VerificationResult with ``ok`` and, on failure, a short reason
    """
    cache = key_cache or default_key_cache
    now = time.time() if now is None else now

    token = (header or "").strip()
    if not token:
        return VerificationResult(False, "Missing Plaid-Verification header")

    try:
        token_header = jwt.get_unverified_header(token)
    except JWTError:
        return VerificationResult(False, "Invalid Plaid verification token format")

    kid = token_header.get("kid")
    if not isinstance(kid, str) or not kid or token_header.get("alg") != "ES256":
        return VerificationResult(False, "Invalid Plaid verification token header")

    try:
        key = await cache.get(kid, key_fetcher, now)
        claims = jwt.decode(
            token,
            key,
            algorithms=["ES256"],
            options={"verify_aud": False},
        )
    except Exception as exc:
        logger.warning(
            "Plaid webhook signature verification failed",
            extra={"error_type": type(exc).__name__},
        )
        return VerificationResult(False, "Plaid webhook signature verification failed")

    iat = claims.get("iat")
    if not isinstance(iat, (int, float)) or isinstance(iat, bool):
        return VerificationResult(False, "Missing iat claim in Plaid verification token")
    if abs(now - iat) > MAX_IAT_SKEW_SECONDS:
        return VerificationResult(False, "Stale Plaid verification token")

    body_hash = claims.get("request_body_sha256")
    if not isinstance(body_hash, str) or not body_hash:
        return VerificationResult(
            False, "Missing request_body_sha256 claim in Plaid verification token"
        )

    expected = hashlib.sha256(raw_body).hexdigest()
    if not _secure_equal_hex(expected, body_hash):
        return VerificationResult(False, "Plaid webhook body hash mismatch")

    return VerificationResult(True)
