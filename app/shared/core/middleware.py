from collections.abc import Awaitable, Callable
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from fastapi import Request
import time
import uuid
import structlog

logger = structlog.get_logger()

SCIM_PATH_MARKER = "/scim/v2/"


def is_scim_path(path: str) -> bool:
    return SCIM_PATH_MARKER in path or path.endswith("/scim/v2")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Injects a unique X-Request-ID into the logs and response.
    NOTE: This middleware trusts the X-Request-ID header if provided by the client.
    This is intended for correlation and debugging, not as a security principal.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))

        # Store in state for easy access in endpoints and tests
        request.state.request_id = request_id

        # Log injection via contextvars (supported by structlog)
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class ScimRequestLogMiddleware(BaseHTTPMiddleware):
    """
    Emit one `scim_request` event per call to a tenant SCIM endpoint.

    This is the audit trail IdP integrators use to see what was sent; the
    payload itself is not logged.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if not is_scim_path(request.url.path):
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "scim_request",
            method=request.method,
            path=request.url.path,
            query=request.url.query or None,
            status_code=response.status_code,
            tenant_id=request.path_params.get("tenant_id")
            or getattr(request.state, "tenant_id", None),
            user_agent=request.headers.get("user-agent"),
            client_ip=request.client.host if request.client else None,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return response
