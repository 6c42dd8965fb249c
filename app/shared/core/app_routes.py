from typing import Annotated, Any

import structlog
from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.db.session import get_db

logger = structlog.get_logger()

TENANT_PREFIX = "/api/{tenant_id}"
SCIM_PREFIX = f"{TENANT_PREFIX}/scim/v2"

_REQUIRED_API_PREFIXES = {
    TENANT_PREFIX,
    SCIM_PREFIX,
}


def _validate_router_registry(routes: list[tuple[Any, str]]) -> None:
    seen_prefixes: set[str] = set()
    for router, prefix in routes:
        route_list = getattr(router, "routes", None)
        if not isinstance(route_list, list) or not route_list:
            raise RuntimeError("Router registry includes an empty router definition")
        normalized_prefix = prefix.strip()
        if not normalized_prefix.startswith("/"):
            raise RuntimeError(f"Router prefix must start with '/': {prefix!r}")
        seen_prefixes.add(normalized_prefix)

    missing_prefixes = sorted(_REQUIRED_API_PREFIXES - seen_prefixes)
    if missing_prefixes:
        raise RuntimeError(
            "Router registry is missing required API prefixes: "
            + ", ".join(missing_prefixes)
        )

    unexpected_prefixes = sorted(seen_prefixes - _REQUIRED_API_PREFIXES)
    if unexpected_prefixes:
        raise RuntimeError(
            "Router registry includes unexpected API prefixes: "
            + ", ".join(unexpected_prefixes)
        )


def register_lifecycle_routes(
    app: FastAPI,
    *,
    app_name: str,
    version: str,
) -> None:
    """Register lifecycle and health endpoints."""

    @app.get("/", tags=["Lifecycle"])
    async def root() -> dict[str, str]:
        """Root endpoint for basic reachability."""
        return {"status": "ok", "app": app_name, "version": version}

    @app.get("/health", tags=["Lifecycle"])
    async def health_check(db: Annotated[AsyncSession, Depends(get_db)]) -> Any:
        """Report database reachability for load balancers."""
        try:
            await db.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            logger.error("health_check_database_down", error=str(exc))
            return JSONResponse(
                status_code=503,
                content={"status": "unhealthy", "database": {"status": "down"}},
            )
        return {"status": "healthy", "database": {"status": "up"}}


def register_api_routers(app: FastAPI) -> None:
    """Register API route modules in one place to keep app entrypoint focused."""
    from app.modules.provisioning.api.v1.keys import router as keys_router
    from app.modules.provisioning.api.v1.scim import router as scim_router
    from app.modules.provisioning.api.v1.tenant import router as tenant_router

    routes: list[tuple[Any, str]] = [
        (keys_router, TENANT_PREFIX),
        (tenant_router, TENANT_PREFIX),
        (scim_router, SCIM_PREFIX),
    ]

    _validate_router_registry(routes)

    for router, prefix in routes:
        app.include_router(router, prefix=prefix)
