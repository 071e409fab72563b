from fastapi import APIRouter, Depends, HTTPException
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core import booking_lock as lock_module
from backend.app.core.config import settings
from backend.app.db.session import get_session


router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, bool]:
    """Basic liveness check."""
    return {"ok": True}


@router.get("/readiness")
async def readiness(session: AsyncSession = Depends(get_session)) -> dict[str, bool]:
    """Ensure the configured store and booking lock backends are reachable."""
    if settings.RESERVATION_STORE == "postgres":
        await session.execute(text("SELECT 1"))

    if settings.BOOKING_LOCK_BACKEND == "redis":
        if lock_module.redis_client is None:
            raise HTTPException(status_code=503, detail="Redis unavailable")
        try:
            await lock_module.redis_client.ping()
        except RedisError as exc:
            raise HTTPException(status_code=503, detail="Redis unavailable") from exc

    return {"ready": True}
