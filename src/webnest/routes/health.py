from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from webnest.config import settings
from webnest.managers.redis_manager import redis_manager
from webnest.routes.dependencies import get_db

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health(db=Depends(get_db)):
    """
    Liveness and dependency status.

    Answers **503** when MongoDB is unreachable. Redis is reported but optional, so it never
    degrades the status.
    """
    database_ok = await db.health_check()
    redis_ok = await redis_manager.health_check()
    body = {
        "success": database_ok,
        "service": settings.APP_NAME,
        "status": "healthy" if database_ok else "unhealthy",
        "database": "connected" if database_ok else "disconnected",
        "redis": "disabled" if redis_ok is None else ("connected" if redis_ok else "disconnected"),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    return JSONResponse(status_code=200 if database_ok else 503, content=body)
