"""FastAPI dependency injection for authentication, database and services."""

import hmac
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from finsync.config import Settings, get_settings
from finsync.core.exceptions import OperatorAuthError
from finsync.core.security import get_user_id_from_token
from finsync.db.session import AsyncSessionLocal, get_db
from finsync.models.user import User
from finsync.observability.metrics import MetricsRegistry
from finsync.plaid.client import PlaidFeedClient, UpstreamFeed
from finsync.plaid.reconciler import Reconciler
from finsync.repositories.user import UserRepository
from finsync.services.audit import AuditSink, DatabaseAuditSink
from finsync.services.categorization import CategorizationService
from finsync.services.linking import ItemLinkService
from finsync.sync.jobs import SyncJobService

__all__ = [
    "get_audit_sink",
    "get_categorization_service",
    "get_current_user",
    "get_db",
    "get_feed",
    "get_item_link_service",
    "get_metrics",
    "get_reconciler",
    "get_sync_job_service",
    "require_sweep_token",
]

# Bearer token scheme
security = HTTPBearer()


def get_metrics(request: Request) -> MetricsRegistry:
    """Get the application's metrics registry."""
    return request.app.state.metrics


def get_feed(request: Request) -> UpstreamFeed:
    """Get the upstream feed client, creating it on first use."""
    feed = getattr(request.app.state, "feed", None)
    if feed is None:
        feed = PlaidFeedClient()
        request.app.state.feed = feed
    return feed


def get_audit_sink() -> AuditSink:
    return DatabaseAuditSink(AsyncSessionLocal)


async def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Extract and validate user from JWT token.

    Args:
        request: Incoming request (the user id is stored on its state for logging)
        credentials: HTTP bearer token credentials
        db: Database session

    Returns:
        Authenticated, active user

    Raises:
        HTTPException: If token is invalid, expired, or user not found
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        user_id = get_user_id_from_token(credentials.credentials)
    except (JWTError, ValueError):
        raise credentials_exception

    user = await UserRepository(db).get_by_id(user_id)
    if user is None:
        raise credentials_exception

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )

    request.state.user_id = str(user.id)
    return user


def require_sweep_token(
    x_sweep_token: Annotated[str | None, Header()] = None,
    settings: Settings = Depends(get_settings),
) -> None:
    """Guard the global sweep with the operator token; unset token disables it."""
    expected = settings.sweep_token
    if not expected or not x_sweep_token:
        raise OperatorAuthError()
    if not hmac.compare_digest(expected.encode("utf-8"), x_sweep_token.encode("utf-8")):
        raise OperatorAuthError()


async def get_sync_job_service(
    db: AsyncSession = Depends(get_db),
    feed: UpstreamFeed = Depends(get_feed),
    metrics: MetricsRegistry = Depends(get_metrics),
    audit: AuditSink = Depends(get_audit_sink),
    settings: Settings = Depends(get_settings),
) -> SyncJobService:
    return SyncJobService(db, feed, settings=settings, metrics=metrics, audit=audit)


async def get_categorization_service(
    db: AsyncSession = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
) -> CategorizationService:
    return CategorizationService(db, audit=audit)


async def get_reconciler(
    db: AsyncSession = Depends(get_db),
    feed: UpstreamFeed = Depends(get_feed),
) -> Reconciler:
    return Reconciler(db, feed)


async def get_item_link_service(
    db: AsyncSession = Depends(get_db),
    feed: UpstreamFeed = Depends(get_feed),
    audit: AuditSink = Depends(get_audit_sink),
) -> ItemLinkService:
    return ItemLinkService(db, feed, audit=audit)
