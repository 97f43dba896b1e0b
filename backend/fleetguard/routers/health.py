"""
Health check endpoints для мониторинга состояния сервисов
"""
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from datetime import datetime
from typing import Dict, Any

from fleetguard.database import engine
from fleetguard.config import get_settings
from fleetguard.logger import logger

router = APIRouter(prefix="/health", tags=["Health"])

settings = get_settings()


def check_database() -> Dict[str, Any]:
    """Проверка подключения к БД"""
    try:
        start = datetime.now()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        latency = (datetime.now() - start).total_seconds() * 1000
        return {"status": "healthy", "latency_ms": round(latency, 2)}
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {"status": "unhealthy", "error": str(e)}


def get_scheduler_info(request: Request) -> Dict[str, Any]:
    """Состояние планировщика"""
    registry = getattr(request.app.state, "scheduler_registry", None)
    if registry is None:
        return {"status": "disabled"}
    return {
        "status": "running" if registry.running else "stopped",
        "jobs_count": len(registry.job_names)
    }


@router.get("/live")
async def liveness():
    """
    Liveness probe - проверка что приложение запущено.

    Returns:
        200 OK если приложение работает
    """
    return {"status": "alive", "timestamp": datetime.utcnow().isoformat()}


@router.get("/ready")
async def readiness():
    """
    Readiness probe - проверка готовности принимать трафик.

    Returns:
        200 OK если БД доступна
        503 Service Unavailable если нет
    """
    database = check_database()
    ready = database["status"] == "healthy"
    response = {
        "status": "ready" if ready else "not_ready",
        "timestamp": datetime.utcnow().isoformat(),
        "checks": {"database": database}
    }
    if not ready:
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=response)
    return response


@router.get("/")
async def health_check(request: Request):
    """
    Полная проверка здоровья системы.
    """
    database = check_database()
    healthy = database["status"] == "healthy"

    response = {
        "status": "healthy" if healthy else "degraded",
        "timestamp": datetime.utcnow().isoformat(),
        "version": settings.api_version,
        "environment": settings.environment,
        "checks": {"database": database},
        "scheduler": get_scheduler_info(request)
    }

    status_code = status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=status_code, content=response)
