"""
HTTP middleware: error envelope, request logging and timing.

Registered in ``screening.main``. Streaming responses (NDJSON evaluation
progress) pass through untouched; only their headers are decorated.
"""
import time
import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.middleware.base import BaseHTTPMiddleware

from screening.utils.exceptions import ScreeningBaseException, map_to_http_exception
from screening.utils.logging_config import get_logger

logger = get_logger(__name__)

MAX_LOGGED_BODY = 1000


def _request_id(request: Request) -> str:
    """Id shared by every middleware layer for one request; the outermost layer creates it."""
    request_id = getattr(request.state, "request_id", None)
    if request_id is None:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
    return request_id


def error_response(request_id: str, status_code: int, detail: Any) -> JSONResponse:
    """``{"success": false, ...}`` body shared by every error the middleware produces"""
    if not isinstance(detail, dict):
        detail = {"message": str(detail)}
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "request_id": request_id,
            "status_code": status_code,
            **detail,
        },
        headers={"X-Request-ID": request_id},
    )


class ExceptionHandlerMiddleware(BaseHTTPMiddleware):
    """Turns anything a route lets escape into a JSON error envelope"""

    async def dispatch(self, request: Request, call_next):
        request_id = _request_id(request)
        where = f"{request.method} {request.url.path}"
        context = {"request_id": request_id, "method": request.method, "path": request.url.path}

        try:
            response = await call_next(request)
        except ScreeningBaseException as exc:
            logger.error(f"{exc.__class__.__name__} in {where}: {exc.message}",
                         extra={**context, "error_code": exc.error_code, "details": exc.details})
            http_exc = map_to_http_exception(exc)
            return error_response(request_id, http_exc.status_code, http_exc.detail)
        except ValidationError as exc:
            # model construction inside a service, not request parsing (FastAPI answers that with 422)
            logger.error(f"Data validation failed in {where}: {exc.error_count()} error(s)", extra=context)
            return error_response(request_id, 400, {
                "error": "Data validation failed",
                "message": "Invalid data format or values",
                "validation_errors": exc.errors(include_url=False, include_context=False),
            })
        except HTTPException as exc:
            logger.warning(f"HTTP {exc.status_code} in {where}: {exc.detail}", extra=context)
            return error_response(request_id, exc.status_code, exc.detail)
        except Exception as exc:
            logger.error(f"Unhandled {exc.__class__.__name__} in {where}: {exc}", extra=context, exc_info=True)
            return error_response(request_id, 500, {
                "error": "Internal server error",
                "message": "An unexpected error occurred. Please try again later.",
            })

        response.headers["X-Request-ID"] = request_id
        logger.info(f"Request completed: {where} - {response.status_code}",
                    extra={**context, "status_code": response.status_code})
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Debug-logs request bodies (truncated) and info-logs every response"""

    async def dispatch(self, request: Request, call_next):
        started = time.time()
        request_id = _request_id(request)

        if request.method in ("POST", "PUT", "PATCH"):
            body = await request.body()
            logger.debug(f"Request body for {request.method} {request.url.path}: "
                         f"{body[:MAX_LOGGED_BODY].decode('utf-8', errors='ignore')}"
                         f"{' ...' if len(body) > MAX_LOGGED_BODY else ''}",
                         extra={"request_id": request_id, "body_bytes": len(body)})

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(f"Request failed: {request.method} {request.url.path} after {time.time() - started:.3f}s",
                         extra={"request_id": request_id, "exception": str(exc)})
            raise

        elapsed = time.time() - started
        logger.info(f"Response: {request.method} {request.url.path} - {response.status_code} in {elapsed:.3f}s",
                    extra={"request_id": request_id, "status_code": response.status_code, "processing_time": elapsed})
        return response


class PerformanceMiddleware(BaseHTTPMiddleware):
    """Adds ``X-Processing-Time`` and warns about slow requests"""

    def __init__(self, app, slow_request_threshold: float = 2.0):
        super().__init__(app)
        self.slow_request_threshold = slow_request_threshold

    async def dispatch(self, request: Request, call_next):
        started = time.time()
        response = await call_next(request)
        # for streamed bodies this is time to first byte
        elapsed = time.time() - started

        if elapsed > self.slow_request_threshold:
            logger.warning(f"Slow request: {request.method} {request.url.path} took {elapsed:.3f}s",
                           extra={"request_id": _request_id(request), "threshold": self.slow_request_threshold})
        response.headers["X-Processing-Time"] = f"{elapsed:.3f}"
        return response
