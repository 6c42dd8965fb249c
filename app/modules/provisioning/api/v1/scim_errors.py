from __future__ import annotations

from typing import Any

from fastapi.responses import JSONResponse

from app.modules.provisioning.domain.resources import SCIM_ERROR_SCHEMA
from app.shared.core.exceptions import ScimBridgeException


class ScimError(Exception):
    """Protocol-level error raised directly by the SCIM routes and dependencies."""

    def __init__(
        self, status_code: int, detail: str, *, scim_type: str | None = None
    ) -> None:
        super().__init__(detail)
        self.status_code = int(status_code)
        self.detail = str(detail)
        self.scim_type = scim_type

    @classmethod
    def from_exception(cls, exc: ScimBridgeException) -> "ScimError":
        return cls(exc.status_code, exc.message, scim_type=exc.scim_type)


def scim_error_response(exc: ScimError) -> JSONResponse:
    payload: dict[str, Any] = {
        "schemas": [SCIM_ERROR_SCHEMA],
        "status": str(exc.status_code),
        "detail": exc.detail,
    }
    if exc.scim_type:
        payload["scimType"] = exc.scim_type
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content=payload,
        headers=headers,
    )
