"""
Core middleware registration for the FastAPI application.

This module provides the middleware components for request tracking,
timing and error logging.
"""
from __future__ import annotations

import time
import uuid
from typing import Callable, Optional

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from school_admin.core.logging import get_logger, request_id as request_id_var, school_id as school_id_var

logger = get_logger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds a unique request ID to each incoming request.

    The request ID is:
    - Stored in request.state.request_id and the logging context
    - Added to response headers as X-Request-ID
    """

    def __init__(self, app: ASGIApp, header_name: str = "X-Request-ID"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Reuse an upstream request ID when a proxy already assigned one
        request_id = request.headers.get(self.header_name) or str(uuid.uuid4())
        request.state.request_id = request_id

        id_token = request_id_var.set(request_id)
        school_token = school_id_var.set(_parse_school_header(request))
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(id_token)
            school_id_var.reset(school_token)

        response.headers[self.header_name] = request_id
        return response


class TimingMiddleware(BaseHTTPMiddleware):
    """
    Middleware that measures and logs request processing time.

    Adds X-Process-Time header to responses with the processing duration in seconds.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        response = await call_next(request)
        process_time = time.perf_counter() - start_time

        response.headers["X-Process-Time"] = f"{process_time:.4f}"

        logger.info(
            "Request completed",
            extra={
                "request_id": getattr(request.state, "request_id", "unknown"),
                "method": request.method,
                "url": str(request.url.path),
                "status_code": response.status_code,
                "process_time": f"{process_time:.4f}s",
            }
        )
        return response


class ErrorLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware that logs errors and exceptions during request processing.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                f"Request processing failed: {exc}",
                extra={
                    "request_id": getattr(request.state, "request_id", "unknown"),
                    "method": request.method,
                    "url": str(request.url.path),
                    "error_type": type(exc).__name__,
                },
                exc_info=True
            )
            raise

        if response.status_code >= 400:
            logger.warning(
                f"Request returned error status {response.status_code}",
                extra={
                    "request_id": getattr(request.state, "request_id", "unknown"),
                    "method": request.method,
                    "url": str(request.url.path),
                    "status_code": response.status_code,
                }
            )
        return response


def _parse_school_header(request: Request) -> Optional[int]:
    raw = request.headers.get("X-School-ID")
    if raw and raw.isdigit():
        return int(raw)
    return None


def register_middlewares(app: FastAPI) -> None:
    """
    Register all core middlewares to the FastAPI application.

    Middlewares are registered in reverse order of execution (LIFO).
    The last middleware added is the first one to process the request.

    Execution order:
        1. RequestIDMiddleware (adds request ID first)
        2. ErrorLoggingMiddleware
        3. TimingMiddleware
    """
    app.add_middleware(TimingMiddleware)
    app.add_middleware(ErrorLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    logger.info(
        "Core middlewares registered successfully",
        extra={"count": 3}
    )


def get_request_id(request: Request) -> Optional[str]:
    """Retrieve the request ID from the current request, if any."""
    return getattr(request.state, "request_id", None)
