from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from school_admin.api.v1.router import router as api_v1_router
from school_admin.config.settings import settings
from school_admin.core.exceptions import BaseAppException, ErrorCode
from school_admin.core.logging import get_logger
from school_admin.core.middleware import get_request_id, register_middlewares
from school_admin.db.init_db import init_db
from school_admin.schemas.common.response import ErrorDetail, ErrorResponse

logger = get_logger(__name__)


def _error_response(request: Request, status_code: int, **fields: Any) -> JSONResponse:
    body = ErrorResponse(
        timestamp=datetime.now(timezone.utc).isoformat(),
        path=request.url.path,
        request_id=get_request_id(request),
        **fields,
    )
    return JSONResponse(status_code=status_code, content=body.to_payload())


def _validation_details(exc: RequestValidationError) -> List[ErrorDetail]:
    details = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ())]
        details.append(
            ErrorDetail(
                field=location[-1] if location else None,
                message=error.get("msg", "Invalid value"),
                code=error.get("type"),
                location=location,
            )
        )
    return details


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(BaseAppException)
    async def app_exception_handler(request: Request, exc: BaseAppException) -> JSONResponse:
        details: Optional[Dict[str, Any]] = exc.details or None
        return _error_response(
            request,
            exc.status_code,
            message=exc.message,
            error_code=exc.error_code.value,
            details=details,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error_response(
            request,
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            message="Request validation failed",
            error_code=ErrorCode.VALIDATION_ERROR.value,
            errors=_validation_details(exc),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
        return _error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            message="Internal server error",
            error_code=ErrorCode.INTERNAL_ERROR.value,
        )


def create_app() -> FastAPI:
    """
    Application factory for the FastAPI app.

    - Configures title, version, debug mode from Settings.
    - Registers CORS, core middleware, and exception handlers.
    - Includes the versioned API router under /api/v1.
    """
    app = FastAPI(
        title=settings.APP_NAME,
        debug=settings.DEBUG,
        version=settings.API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # CORS Configuration
    if settings.CORS_ORIGINS and settings.CORS_ORIGINS != ["*"]:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ORIGINS,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    else:
        # Permissive for development; tighten in production
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=False,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Register shared core middlewares (request ID, timing, error logging)
    register_middlewares(app)
    register_exception_handlers(app)

    # Mount API v1 under /api/v1
    app.include_router(api_v1_router, prefix=settings.API_V1_STR)

    # Schema bootstrap outside production; production databases are provisioned separately
    @app.on_event("startup")
    async def on_startup() -> None:
        if not settings.is_production():
            init_db()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("school_admin.main:app", host=settings.HOST, port=settings.PORT, reload=settings.is_development())
