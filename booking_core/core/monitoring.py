"""Health checks and monitoring endpoints"""
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session
import redis.asyncio as redis

from booking_core.api.dependencies import get_session
from booking_core.config.settings import get_settings

health_router = APIRouter()


@health_router.get("")
async def health_check():
    """Basic health check"""
    return {"status": "healthy", "service": get_settings().APP_NAME}


@health_router.get("/detailed")
async def detailed_health_check(db: Session = Depends(get_session)):
    """Detailed health check with dependencies"""
    settings = get_settings()
    checks = {
        "api": "healthy",
        "database": "unknown",
        "broker": "unknown",
        "overall": "unknown"
    }

    # Check database
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except Exception as e:
        checks["database"] = f"unhealthy: {str(e)}"

    # Check the Celery broker when it is Redis
    if settings.CELERY_BROKER_URL.startswith("redis"):
        try:
            redis_client = redis.from_url(settings.CELERY_BROKER_URL)
            await redis_client.ping()
            checks["broker"] = "healthy"
            await redis_client.aclose()
        except Exception as e:
            checks["broker"] = f"unhealthy: {str(e)}"

    # Overall status
    if all(status == "healthy" for status in checks.values() if status != "unknown"):
        checks["overall"] = "healthy"
    else:
        checks["overall"] = "degraded"

    return checks
