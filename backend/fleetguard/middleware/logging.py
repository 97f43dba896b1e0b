"""
Middleware журналирования HTTP запросов к API
"""
import time
import uuid
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from fleetguard.logger import logger


# Пробы и документация не попадают в журнал
QUIET_PREFIXES = ("/health", "/docs", "/openapi.json", "/redoc")


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Пишет в журнал каждый запрос к API с кодом ответа и длительностью.

    Ответ дополняется заголовками X-Request-ID и X-Process-Time.
    """

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        quiet = request.url.path.startswith(QUIET_PREFIXES)
        context = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else None,
            "event_type": "request",
            "event_category": "http",
        }

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"{request.method} {request.url.path} завершился исключением",
                extra={**context, "error": str(e), "process_time_ms": _elapsed_ms(started)},
                exc_info=True
            )
            raise

        duration = _elapsed_ms(started)
        if not quiet:
            level = "error" if response.status_code >= 500 else "info"
            getattr(logger, level)(
                f"{request.method} {request.url.path} -> {response.status_code} за {duration} мс",
                extra={**context, "status_code": response.status_code, "process_time_ms": duration}
            )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = str(duration)
        return response
