from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict

from app.modules.provisioning.api.v1.deps import get_api_key_service, require_operator
from app.modules.provisioning.domain.api_keys import ApiKeyService
from app.shared.core.auth import CurrentOperator

logger = structlog.get_logger()
router = APIRouter(tags=["API Keys"])


class ApiKeyCreateRequest(BaseModel):
    name: str

    model_config = ConfigDict(str_strip_whitespace=True)


class ApiKeyCreated(BaseModel):
    rawKey: str
    id: str


class ApiKeySummary(BaseModel):
    id: str
    name: str
    key_prefix: str
    created_at: str | None = None


@router.get("/keys", response_model=list[ApiKeySummary])
async def list_keys(
    operator: CurrentOperator = Depends(require_operator),
    keys: ApiKeyService = Depends(get_api_key_service),
) -> list[dict[str, Any]]:
    return await keys.list_keys(operator.tenant_id)


@router.post("/keys", response_model=ApiKeyCreated, status_code=201)
async def create_key(
    body: ApiKeyCreateRequest,
    operator: CurrentOperator = Depends(require_operator),
    keys: ApiKeyService = Depends(get_api_key_service),
) -> ApiKeyCreated:
    raw_key, key_id = await keys.generate_key(body.name, operator.tenant_id)
    return ApiKeyCreated(rawKey=raw_key, id=key_id)


@router.delete("/keys/{key_id}")
async def revoke_key(
    key_id: str,
    operator: CurrentOperator = Depends(require_operator),
    keys: ApiKeyService = Depends(get_api_key_service),
) -> dict[str, str]:
    if not await keys.revoke_key(key_id, operator.tenant_id):
        raise HTTPException(status_code=404, detail="API key not found")
    return {"message": "API key revoked"}
