import json
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Sequence

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.modules.provisioning.api.v1.scim_errors import ScimError, scim_error_response
from app.shared.core.app_routes import register_api_routers, register_lifecycle_routes
from app.shared.core.config import get_settings
from app.shared.core.exceptions import ScimBridgeException
from app.shared.core.logging import setup_logging
from app.shared.core.middleware import (
    RequestIDMiddleware,
    ScimRequestLogMiddleware,
    is_scim_path,
)
from app.shared.db.session import get_engine

setup_logging()
settings = get_settings()
logger = structlog.get_logger()

INTERNAL_ERROR_DETAIL = "An error occurred while processing your request"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info(
        "app_starting",
        app_name=settings.APP_NAME,
        version=settings.VERSION,
        environment=settings.ENVIRONMENT,
    )

    yield

    logger.info("app_shutting_down")
    await get_engine().dispose()
    logger.info("db_engine_disposed")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    lifespan=lifespan,
)

__all__ = ["app", "lifespan"]


@app.exception_handler(ScimBridgeException)
async def scim_bridge_exception_handler(
    request: Request, exc: ScimBridgeException
) -> JSONResponse:
    """Render domain errors as SCIM errors on the SCIM surface, plain JSON elsewhere."""
    if exc.status_code >= 500:
        # Server faults never echo their message; the cause stays in the log.
        logger.error(
            "request_failed",
            path=request.url.path,
            code=exc.code,
            error=exc.message,
            cause=str(exc.__cause__) if exc.__cause__ else None,
        )
        if is_scim_path(request.url.path):
            return scim_error_response(ScimError(exc.status_code, INTERNAL_ERROR_DETAIL))
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": "Internal Server Error",
                "code": exc.code,
                "message": INTERNAL_ERROR_DETAIL,
            },
        )
    if is_scim_path(request.url.path):
        return scim_error_response(ScimError.from_exception(exc))
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "code": exc.code, "message": exc.message},
    )


@app.exception_handler(ScimError)
async def scim_error_handler(_request: Request, exc: ScimError) -> JSONResponse:
    """Return SCIM-compliant error responses for /scim/v2 endpoints."""
    return scim_error_response(exc)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTP exceptions with standardized format."""
    detail_text = str(exc.detail) if isinstance(exc.detail, str) else "Request failed"
    if is_scim_path(request.url.path):
        return scim_error_response(ScimError(exc.status_code, detail_text))
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": detail_text,
            "code": "HTTP_ERROR",
            "message": detail_text,
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors."""

    def _json_safe(value: Any) -> Any:
        if isinstance(value, Exception):
            return str(value)
        try:
            json.dumps(value)
            return value
        except (TypeError, ValueError):
            return str(value)

    def _sanitize_errors(errors: Sequence[Any]) -> List[Dict[str, Any]]:
        sanitized = []
        for err in errors:
            clean = dict(err)
            if "ctx" in clean and isinstance(clean["ctx"], dict):
                clean["ctx"] = {k: _json_safe(v) for k, v in clean["ctx"].items()}
            if "input" in clean:
                clean["input"] = _json_safe(clean["input"])
            sanitized.append(clean)
        return sanitized

    errors = _sanitize_errors(exc.errors())
    if is_scim_path(request.url.path):
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        detail = f"Invalid request: {location} {first.get('msg', '')}".strip()
        return scim_error_response(ScimError(400, detail, scim_type="invalidSyntax"))

    return JSONResponse(
        status_code=422,
        content={
            "error": "Unprocessable Entity",
            "code": "VALIDATION_ERROR",
            "message": "The request body or parameters are invalid.",
            "details": errors,
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unhandled exceptions and return a sanitized 500."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    if is_scim_path(request.url.path):
        return scim_error_response(ScimError(500, "Internal Server Error"))
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal Server Error",
            "code": "INTERNAL_ERROR",
            "message": "An unexpected internal error occurred",
        },
    )


# Keep app entrypoint lean by registering lifecycle/health routes in a focused module.
register_lifecycle_routes(
    app,
    app_name=settings.APP_NAME,
    version=settings.VERSION,
)
register_api_routers(app)

# Middleware is processed in REVERSE order of addition.
# CORS must be added LAST so it processes FIRST for incoming requests.
app.add_middleware(ScimRequestLogMiddleware)
app.add_middleware(RequestIDMiddleware)

if settings.CORS_ORIGINS and "*" in settings.CORS_ORIGINS:
    # allow_credentials=True with a wildcard origin is rejected by browsers.
    logger.error("insecure_cors_config_detected", msg="allow_credentials=True with '*' origin is forbidden")
    cors_allowed_origins = [o for o in settings.CORS_ORIGINS if o != "*"]
else:
    cors_allowed_origins = settings.CORS_ORIGINS

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
)
