"""
SCIM 2.0 provisioning API, mounted per tenant under /api/{tenant_id}/scim/v2.

Supported resources:
- Users (create, list with `userName eq` filter, get, PUT, delete)
- Groups (the same verbs plus PATCH for membership deltas)
- Discovery: ServiceProviderConfig, ResourceTypes, Schemas

Domain errors raised by the services are rendered as SCIM error bodies by the
application exception handlers; missing resources come back from the services
as None and are turned into 404s here.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Body, Depends, Request, Response
from fastapi.responses import JSONResponse

from app.modules.provisioning.api.v1.deps import (
    ScimContext,
    get_group_service,
    get_scim_context,
    get_user_service,
)
from app.modules.provisioning.api.v1.scim_errors import ScimError
from app.modules.provisioning.api.v1.scim_schemas import (
    SCIM_LIST_SCHEMA,
    scim_resource_types,
    scim_schema_resources,
    scim_service_provider_config,
)
from app.modules.provisioning.domain.group_service import GroupService
from app.modules.provisioning.domain.resources import (
    ScimGroup,
    ScimListResponse,
    ScimPatchRequest,
    ScimUser,
    dump_resource,
)
from app.modules.provisioning.domain.user_service import UserService
from app.shared.core.config import get_settings

logger = structlog.get_logger()
router = APIRouter(tags=["SCIM"])


def _resource_response(resource: ScimUser | ScimGroup, *, status_code: int = 200) -> JSONResponse:
    headers = {"ETag": resource.meta.version}
    if status_code == 201:
        headers["Location"] = resource.meta.location
    return JSONResponse(status_code=status_code, content=dump_resource(resource), headers=headers)


def _not_found(resource_type: str, resource_id: str) -> ScimError:
    return ScimError(404, f"{resource_type} {resource_id} not found")


def _validate_paging(start_index: int, count: int | None) -> int:
    settings = get_settings()
    if start_index < 1:
        raise ScimError(400, "startIndex must be >= 1", scim_type="invalidValue")
    if count is None:
        return settings.SCIM_DEFAULT_PAGE_SIZE
    if count < 0 or count > settings.SCIM_MAX_PAGE_SIZE:
        raise ScimError(
            400,
            f"count must be between 0 and {settings.SCIM_MAX_PAGE_SIZE}",
            scim_type="invalidValue",
        )
    return count


def _list_response(
    resources: list[ScimUser] | list[ScimGroup], *, total: int, start_index: int
) -> ScimListResponse:
    return ScimListResponse(
        schemas=[SCIM_LIST_SCHEMA],
        totalResults=total,
        startIndex=start_index,
        itemsPerPage=len(resources),
        Resources=[dump_resource(resource) for resource in resources],
    )


# Discovery (RFC 7644 section 4); no credentials required.


@router.get("/ServiceProviderConfig")
async def get_service_provider_config() -> dict[str, Any]:
    return scim_service_provider_config(max_results=get_settings().SCIM_MAX_PAGE_SIZE)


@router.get("/ResourceTypes")
async def get_resource_types(tenant_id: str) -> dict[str, Any]:
    return scim_resource_types(base_url=get_settings().API_URL, tenant_id=tenant_id)


@router.get("/Schemas")
async def list_schemas(tenant_id: str) -> dict[str, Any]:
    resources = list(
        scim_schema_resources(base_url=get_settings().API_URL, tenant_id=tenant_id).values()
    )
    return {
        "schemas": [SCIM_LIST_SCHEMA],
        "totalResults": len(resources),
        "startIndex": 1,
        "itemsPerPage": len(resources),
        "Resources": resources,
    }


@router.get("/Schemas/{schema_id:path}")
async def get_schema(tenant_id: str, schema_id: str) -> dict[str, Any]:
    schemas = scim_schema_resources(base_url=get_settings().API_URL, tenant_id=tenant_id)
    schema = schemas.get((schema_id or "").strip())
    if schema is None:
        raise ScimError(404, f"Schema {schema_id} not found")
    return schema


# Users


@router.get("/Users", response_model=ScimListResponse)
async def list_users(
    startIndex: int = 1,
    count: int | None = None,
    filter: str | None = None,
    ctx: ScimContext = Depends(get_scim_context),
    users: UserService = Depends(get_user_service),
) -> ScimListResponse:
    page_size = _validate_paging(startIndex, count)
    page, total = await users.get_users(startIndex, page_size, ctx.tenant_id, filter)
    return _list_response(page, total=total, start_index=startIndex)


@router.post("/Users")
async def create_user(
    body: dict[str, Any] = Body(...),
    ctx: ScimContext = Depends(get_scim_context),
    users: UserService = Depends(get_user_service),
) -> JSONResponse:
    user = await users.create_user(body, ctx.tenant_id)
    return _resource_response(user, status_code=201)


@router.get("/Users/{user_id}")
async def get_user(
    user_id: str,
    ctx: ScimContext = Depends(get_scim_context),
    users: UserService = Depends(get_user_service),
) -> JSONResponse:
    user = await users.get_user_by_id(user_id, ctx.tenant_id)
    if user is None:
        raise _not_found("User", user_id)
    return _resource_response(user)


@router.put("/Users/{user_id}")
async def put_user(
    user_id: str,
    body: dict[str, Any] = Body(...),
    ctx: ScimContext = Depends(get_scim_context),
    users: UserService = Depends(get_user_service),
) -> JSONResponse:
    user = await users.update_user(user_id, body, ctx.tenant_id)
    if user is None:
        raise _not_found("User", user_id)
    return _resource_response(user)


@router.delete("/Users/{user_id}")
async def delete_user(
    user_id: str,
    ctx: ScimContext = Depends(get_scim_context),
    users: UserService = Depends(get_user_service),
) -> Response:
    if not await users.delete_user(user_id, ctx.tenant_id):
        raise _not_found("User", user_id)
    return Response(status_code=200)


# Groups


@router.get("/Groups", response_model=ScimListResponse)
async def list_groups(
    startIndex: int = 1,
    count: int | None = None,
    filter: str | None = None,
    ctx: ScimContext = Depends(get_scim_context),
    groups: GroupService = Depends(get_group_service),
) -> ScimListResponse:
    page_size = _validate_paging(startIndex, count)
    page, total = await groups.get_groups(startIndex, page_size, ctx.tenant_id, filter)
    return _list_response(page, total=total, start_index=startIndex)


@router.post("/Groups")
async def create_group(
    body: dict[str, Any] = Body(...),
    ctx: ScimContext = Depends(get_scim_context),
    groups: GroupService = Depends(get_group_service),
) -> JSONResponse:
    group = await groups.create_group(body, ctx.tenant_id)
    return _resource_response(group, status_code=201)


@router.get("/Groups/{group_id}")
async def get_group(
    group_id: str,
    ctx: ScimContext = Depends(get_scim_context),
    groups: GroupService = Depends(get_group_service),
) -> JSONResponse:
    group = await groups.get_group_by_id(group_id, ctx.tenant_id)
    if group is None:
        raise _not_found("Group", group_id)
    return _resource_response(group)


@router.put("/Groups/{group_id}")
async def put_group(
    group_id: str,
    body: dict[str, Any] = Body(...),
    ctx: ScimContext = Depends(get_scim_context),
    groups: GroupService = Depends(get_group_service),
) -> JSONResponse:
    group = await groups.update_group(group_id, body, ctx.tenant_id)
    if group is None:
        raise _not_found("Group", group_id)
    return _resource_response(group)


@router.patch("/Groups/{group_id}")
async def patch_group(
    group_id: str,
    body: ScimPatchRequest,
    ctx: ScimContext = Depends(get_scim_context),
    groups: GroupService = Depends(get_group_service),
) -> JSONResponse:
    group = await groups.patch_group(group_id, body, ctx.tenant_id)
    if group is None:
        raise _not_found("Group", group_id)
    return _resource_response(group)


@router.delete("/Groups/{group_id}")
async def delete_group(
    group_id: str,
    ctx: ScimContext = Depends(get_scim_context),
    groups: GroupService = Depends(get_group_service),
) -> Response:
    if not await groups.delete_group(group_id, ctx.tenant_id):
        raise _not_found("Group", group_id)
    return Response(status_code=200)
