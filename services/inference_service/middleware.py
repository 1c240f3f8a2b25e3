"""
HTTP middleware for the inference service.

Registration order matters: the last one registered is the outermost.
``install_middleware`` wires CORS innermost, then slowapi rate limiting,
then request logging so every request (rejected ones included) is logged.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from shared.inference.models import ErrorResponse
from shared.logging.logger import bind_request_id, request_id_var
from shared.observability.metrics import http_requests, rate_limited_requests

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
RATE_LIMIT_ERROR = "rate_limit_error"


def error_response(code: int, message: str, error_type: str, details: Any = None) -> JSONResponse:
    body = ErrorResponse(code=code, message=message, type=error_type, details=details)
    logger.error(
        "Request error",
        extra={
            "_extra": {
                "error_code": code,
                "error_message": message,
                "error_type": error_type,
            }
        },
    )
    return JSONResponse(status_code=code, content=body.model_dump(exclude_none=True))


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    rate_limited_requests.inc()
    return error_response(429, "Rate limit exceeded", RATE_LIMIT_ERROR)


def client_id(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _route_path(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def install_middleware(app: FastAPI) -> None:
    """Expects ``app.state.limiter`` to hold a slowapi Limiter before the first request."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    @app.middleware("http")
    async def request_logger(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        token = bind_request_id(request_id)
        request.state.request_id = request_id
        start = time.monotonic()
        try:
            logger.info(
                "Request started",
                extra={
                    "_extra": {
                        "method": request.method,
                        "path": request.url.path,
                        "remote": client_id(request),
                    }
                },
            )
            response = await call_next(request)
            duration_ms = int((time.monotonic() - start) * 1000)
            response.headers[REQUEST_ID_HEADER] = request_id
            http_requests.labels(
                method=request.method,
                path=_route_path(request),
                status=str(response.status_code),
            ).inc()
            logger.info(
                "Request completed",
                extra={
                    "_extra": {
                        "method": request.method,
                        "path": request.url.path,
                        "status_code": response.status_code,
                        "duration_ms": duration_ms,
                    }
                },
            )
            return response
        finally:
            request_id_var.reset(token)
