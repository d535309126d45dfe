from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from finsync.api.deps import get_db, get_metrics
from finsync.observability.metrics import MetricsRegistry

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    """Basic health check."""
    return {"status": "ok"}


@router.get("/health/ready")
async def health_ready(db: AsyncSession = Depends(get_db)):
    """Readiness check with database connection."""
    try:
        await db.execute(text("SELECT 1"))
        return {"status": "ready", "database": "connected"}
    except Exception as e:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not ready",
                "database": "disconnected",
                "error_type": type(e).__name__,
            },
        )


@router.get("/health/metrics")
async def health_metrics(metrics: MetricsRegistry = Depends(get_metrics)):
    """Process-local request and sync counters since startup."""
    return metrics.snapshot()
