from __future__ import annotations

import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from api.gateway.files_route import router as files_router
from core.logging_config import setup_logging
from core.response_envelope import error_response, http_exception_response, request_id_of, success_payload
from core.settings import Settings, get_settings
from core.storage import ObjectStoreManager
from core.validation_errors import format_validation_error_details


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        with logger.contextualize(request_id=request_id):
            response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class RequestTimingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        response.headers["X-Process-Time"] = str(time.time() - start_time)
        return response


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(level=settings.log_level, json_format=settings.json_logging)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        manager = ObjectStoreManager.configure_from_settings(settings)
        logger.info("Object store configured with backend: {}", manager.provider.backend_name)
        yield

    app = FastAPI(lifespan=lifespan, title="File Storage Gateway")
    app.state.settings = settings
    app.add_middleware(RequestTimingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    @app.exception_handler(HTTPException)
    async def custom_http_exception_handler(request: Request, exc: HTTPException):
        return http_exception_response(exc=exc, request=request)

    @app.exception_handler(RequestValidationError)
    async def custom_validation_exception_handler(request: Request, exc: RequestValidationError):
        return error_response(
            status_code=422,
            message="Validation error",
            data={"code": "VALIDATION_FAILED", "details": format_validation_error_details(exc.errors())},
            request_id=request_id_of(request),
        )

    @app.exception_handler(Exception)
    async def custom_exception_handler(request: Request, exc: Exception):
        logger.opt(exception=exc).error("Unhandled error on {} {}", request.method, request.url.path)
        details = str(exc) if (settings.debug_include_error_details and not settings.is_production) else None
        return error_response(
            status_code=500,
            message="Internal Server Error",
            data={"code": "INTERNAL_ERROR", "details": details},
            request_id=request_id_of(request),
        )

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        return success_payload(
            data={
                "status": "healthy",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "storage_backend": settings.storage_backend,
            },
            message="Health check completed",
            request_id=request_id_of(request),
        )

    app.include_router(files_router)
    return app


app = create_app()
