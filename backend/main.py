from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from sqlalchemy.exc import IntegrityError
from sqlalchemy.exc import OperationalError as SAOperationalError
from sqlalchemy.orm.exc import StaleDataError

from api.router import api_router
from core.bootstrap import bootstrap_database
from core.config import settings
from core.database import DatabaseUnavailableError, database_is_up, is_transient_db_connectivity_error
from core.errors import AppError
from core.logging import setup_logging


logger = logging.getLogger(__name__)

_HTTP_MESSAGES = {
    "NOT_AUTHENTICATED": "Authentication required",
    "INVALID_TOKEN": "Invalid or expired token",
    "NOT_AUTHORIZED": "Access denied",
    "USER_DISABLED": "Account is disabled",
    "RATE_LIMITED": "Too many attempts, please retry later",
    "SIGNUP_DISABLED": "Self-registration is disabled",
}


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": code, "message": message})


def _unavailable() -> JSONResponse:
    return _error(503, "DATABASE_UNAVAILABLE", "Database temporarily unavailable. Please retry.")


def create_app() -> FastAPI:
    setup_logging(environment=settings.environment, level=settings.log_level)
    is_production = settings.is_production

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        if settings.auto_create_schema:
            bootstrap_database()
        yield

    app = FastAPI(
        title="GROWF API",
        version="0.1.0",
        docs_url=None if is_production else "/docs",
        redoc_url=None if is_production else "/redoc",
        openapi_url=None if is_production else "/openapi.json",
        lifespan=lifespan,
    )

    @app.exception_handler(AppError)
    def _app_error(request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("Request failed path=%s code=%s", request.url.path, exc.code, exc_info=exc)
        message = exc.message
        if exc.status_code >= 500 and is_production:
            message = "Internal server error"
        return _error(exc.status_code, exc.code, message)

    @app.exception_handler(StarletteHTTPException)
    def _http_error(_request, exc: StarletteHTTPException):
        code = str(exc.detail) if exc.detail else "HTTP_ERROR"
        response = _error(exc.status_code, code, _HTTP_MESSAGES.get(code, code.replace("_", " ").capitalize()))
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(RequestValidationError)
    def _validation_error(_request, exc: RequestValidationError):
        problems = []
        for err in exc.errors():
            loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
            problems.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
        return _error(400, "VALIDATION_ERROR", "; ".join(problems) or "Invalid data")

    @app.exception_handler(IntegrityError)
    def _integrity_error(request, exc: IntegrityError):
        logger.warning("Integrity error path=%s", request.url.path, exc_info=exc)
        return _error(409, "CONFLICT", "Resource conflicts with existing data")

    @app.exception_handler(StaleDataError)
    def _stale_data(request, exc: StaleDataError):
        logger.warning("Concurrent update rejected path=%s", request.url.path)
        return _error(409, "CONCURRENT_UPDATE", "The record was modified concurrently. Reload and retry.")

    @app.exception_handler(DatabaseUnavailableError)
    def _db_unavailable(_request, _exc: DatabaseUnavailableError):
        logger.warning("Database unavailable (503)", exc_info=_exc)
        return _unavailable()

    @app.exception_handler(SAOperationalError)
    def _sqlalchemy_operational_error(_request, exc: SAOperationalError):
        if is_transient_db_connectivity_error(exc):
            logger.warning("Database transient connectivity error (503)", exc_info=exc)
            return _unavailable()
        logger.error("Database operation failed", exc_info=exc)
        return _error(500, "DATABASE_ERROR", "Database operation failed.")

    @app.exception_handler(Exception)
    def _unhandled(request, exc: Exception):
        logger.exception("Unhandled error path=%s", request.url.path)
        message = "Internal server error" if is_production else str(exc) or exc.__class__.__name__
        return _error(500, "INTERNAL_ERROR", message)

    allow_origins = [settings.frontend_origin]
    allow_origin_regex = None
    if not is_production:
        # Dev-friendly: allow the configured origin and any localhost port.
        allow_origins.extend(["http://localhost:5173", "http://127.0.0.1:5173"])
        allow_origin_regex = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_origin_regex=allow_origin_regex,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health() -> dict:
        # Always respond; reflect DB availability without crashing.
        return {"app": "ok", "database": "ok" if database_is_up() else "down"}

    app.include_router(api_router, prefix="/api")
    return app


app = create_app()
