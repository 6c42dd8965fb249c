from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends

from app.modules.provisioning.api.v1.deps import (
    get_group_service,
    get_user_service,
    require_operator,
)
from app.modules.provisioning.domain.group_service import GroupService
from app.modules.provisioning.domain.user_service import UserService
from app.shared.core.auth import CurrentOperator

logger = structlog.get_logger()
router = APIRouter(tags=["Tenant"])


@router.post("/resourceReset")
async def reset_tenant_resources(
    operator: CurrentOperator = Depends(require_operator),
    users: UserService = Depends(get_user_service),
    groups: GroupService = Depends(get_group_service),
) -> dict[str, Any]:
    """Remove every Group and then every User of the operator's tenant."""
    tenant_id = operator.tenant_id
    logger.info("tenant_reset_started", tenant_id=tenant_id)

    groups_deleted = await groups.delete_all_groups(tenant_id)
    users_deleted = await users.delete_all_users(tenant_id)

    logger.info(
        "tenant_reset_completed",
        tenant_id=tenant_id,
        groups_deleted=groups_deleted,
        users_deleted=users_deleted,
    )
    return {
        "message": f"Database reset completed for tenant {tenant_id}",
        "groupsDeleted": groups_deleted,
        "usersDeleted": users_deleted,
    }
