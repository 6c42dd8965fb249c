"""
Request-scoped collaborators for the provisioning routes.

Tenant resolution:
- SCIM routes accept a tenant API key (`Authorization: Bearer scim_...`) or an
  operator session cookie. Either way the credential must belong to the tenant
  named in the path.
- Key management and reset routes accept the operator session only.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import structlog
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.provisioning.api.v1.scim_errors import ScimError
from app.modules.provisioning.domain.api_keys import ApiKeyService
from app.modules.provisioning.domain.group_service import GroupService
from app.modules.provisioning.domain.store import ResourceStore
from app.modules.provisioning.domain.user_service import UserService
from app.shared.core.auth import CurrentOperator, get_operator_from_request
from app.shared.core.config import get_settings
from app.shared.core.exceptions import AuthError
from app.shared.db.session import get_db

logger = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class ScimContext:
    tenant_id: str
    auth_method: Literal["api_key", "session"]


def _extract_bearer_token(request: Request) -> str | None:
    raw = (request.headers.get("Authorization") or "").strip()
    if not raw.lower().startswith("bearer "):
        return None
    token = raw.split(" ", 1)[-1].strip()
    return token or None


def _operator_for_tenant(request: Request, tenant_id: str) -> CurrentOperator | None:
    operator = get_operator_from_request(request)
    if operator is None:
        return None
    if operator.tenant_id != tenant_id:
        logger.warning("operator_tenant_mismatch", tenant_id=tenant_id)
        raise AuthError("Session does not grant access to this tenant")
    return operator


async def get_scim_context(
    request: Request,
    tenant_id: str,
    db: AsyncSession = Depends(get_db),
) -> ScimContext:
    """
    Resolve the caller to the path tenant.

    An API key is tried first; when it is absent or rejected the operator
    session is tried. 401 only when neither credential authorizes the tenant.
    """
    token = _extract_bearer_token(request)
    if token is not None:
        owner = await ApiKeyService(db).validate_key(token, tenant_id=tenant_id)
        if owner is not None:
            request.state.tenant_id = owner
            return ScimContext(tenant_id=owner, auth_method="api_key")

    try:
        operator = _operator_for_tenant(request, tenant_id)
    except AuthError as exc:
        if token is not None:
            raise ScimError(401, "Invalid API Key.") from exc
        raise ScimError.from_exception(exc) from exc

    if operator is None:
        if token is not None:
            raise ScimError(401, "Invalid API Key.")
        raise ScimError(401, "Authorization header is missing or invalid.")

    request.state.tenant_id = operator.tenant_id
    return ScimContext(tenant_id=operator.tenant_id, auth_method="session")


async def require_operator(request: Request, tenant_id: str) -> CurrentOperator:
    operator = _operator_for_tenant(request, tenant_id)
    if operator is None:
        raise AuthError("Not authenticated")
    request.state.tenant_id = operator.tenant_id
    return operator


def get_user_service(db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(ResourceStore(db), base_url=get_settings().API_URL)


def get_group_service(db: AsyncSession = Depends(get_db)) -> GroupService:
    return GroupService(ResourceStore(db), base_url=get_settings().API_URL)


def get_api_key_service(db: AsyncSession = Depends(get_db)) -> ApiKeyService:
    return ApiKeyService(db)
