"""API version 1 routes."""

from fastapi import APIRouter

from finsync.api.v1 import items, sync, transactions, webhooks

router = APIRouter(prefix="/api/v1")

router.include_router(webhooks.router)
router.include_router(items.router)
router.include_router(sync.router)
router.include_router(transactions.router)
