from __future__ import annotations

import copy
from typing import Any
from uuid import uuid4

import structlog
from pydantic import ValidationError as PydanticValidationError

from app.models.scim_resource import ScimGroupRecord
from app.modules.provisioning.domain.filters import parse_group_filter, parse_uuid
from app.modules.provisioning.domain.patch import apply_group_patch
from app.modules.provisioning.domain.resources import (
    SCIM_GROUP_SCHEMA,
    ScimGroup,
    ScimPatchRequest,
    build_meta,
    refresh_meta,
    resource_location,
    utc_now,
)
from app.modules.provisioning.domain.store import ResourceStore
from app.shared.core.exceptions import ConflictError, DuplicateRecordError, ValidationError

logger = structlog.get_logger()


def _validate_group(document: dict[str, Any]) -> ScimGroup:
    try:
        return ScimGroup.model_validate(document)
    except PydanticValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        if location == "displayName":
            raise ValidationError("displayName is a required field") from exc
        raise ValidationError(
            f"Invalid value for '{location}': {first.get('msg', 'invalid value')}"
        ) from exc


def _require_display_name(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("displayName is a required field")
    return value


def _conflict(display_name: Any) -> ConflictError:
    return ConflictError(f"Group with name '{display_name}' already exists")


class GroupService:
    """
    Group lifecycle plus PATCH.

    Mirrors `UserService`: uniqueness is on `displayName` within the tenant,
    missing rows come back as `None`, and PUT is a shallow merge.
    """

    def __init__(self, store: ResourceStore, *, base_url: str) -> None:
        self.store = store
        self.base_url = base_url

    async def create_group(self, group_data: dict[str, Any], tenant_id: str) -> ScimGroup:
        display_name = _require_display_name(group_data.get("displayName"))

        existing = await self.store.select_one(
            ScimGroupRecord, tenant_id=tenant_id, display_name=display_name
        )
        if existing is not None:
            raise _conflict(display_name)

        group_id = str(uuid4())
        now = utc_now()
        document: dict[str, Any] = {
            "members": [],
            **group_data,
            "schemas": [SCIM_GROUP_SCHEMA],
            "id": group_id,
            "meta": build_meta(
                resource_type="Group",
                location=resource_location(self.base_url, tenant_id, "Group", group_id),
                now=now,
            ),
        }
        if document.get("members") is None:
            document["members"] = []
        group = _validate_group(document)

        try:
            await self.store.insert(
                ScimGroupRecord,
                {
                    "id": group_id,
                    "tenant_id": tenant_id,
                    "display_name": group.displayName,
                    "resource": document,
                    "created_at": now,
                    "last_modified_at": now,
                },
            )
        except DuplicateRecordError as exc:
            raise _conflict(display_name) from exc

        logger.info("scim_group_created", tenant_id=tenant_id, group_id=group_id)
        return group

    async def get_groups(
        self,
        start_index: int,
        count: int,
        tenant_id: str,
        filter: str | None = None,
    ) -> tuple[list[ScimGroup], int]:
        equals: dict[str, Any] = {}
        if filter:
            equals["display_name"] = parse_group_filter(filter)

        rows, total = await self.store.select_range(
            ScimGroupRecord,
            tenant_id=tenant_id,
            offset=start_index - 1,
            limit=count,
            **equals,
        )
        return [ScimGroup.model_validate(row.resource) for row in rows], total

    async def get_group_by_id(self, group_id: str, tenant_id: str) -> ScimGroup | None:
        document = await self._load_document(group_id, tenant_id)
        if document is None:
            return None
        return ScimGroup.model_validate(document)

    async def update_group(
        self, group_id: str, group_data: dict[str, Any], tenant_id: str
    ) -> ScimGroup | None:
        original = await self._load_document(group_id, tenant_id)
        if original is None:
            return None

        updated = {
            **original,
            **group_data,
            "id": original["id"],
            "schemas": [SCIM_GROUP_SCHEMA],
        }
        if updated.get("members") is None:
            updated["members"] = []
        return await self._write(updated, original, tenant_id, event="scim_group_updated")

    async def patch_group(
        self, group_id: str, patch_request: ScimPatchRequest, tenant_id: str
    ) -> ScimGroup | None:
        original = await self._load_document(group_id, tenant_id)
        if original is None:
            return None

        patched = apply_group_patch(original, patch_request.Operations)
        patched["id"] = original["id"]
        patched["schemas"] = [SCIM_GROUP_SCHEMA]
        return await self._write(
            patched,
            original,
            tenant_id,
            event="scim_group_patched",
            operations=len(patch_request.Operations),
        )

    async def delete_group(self, group_id: str, tenant_id: str) -> bool:
        if parse_uuid(group_id) is None:
            return False
        count = await self.store.delete_where(
            ScimGroupRecord, tenant_id=tenant_id, id=group_id
        )
        if count:
            logger.info("scim_group_deleted", tenant_id=tenant_id, group_id=group_id)
        return count > 0

    async def delete_all_groups(self, tenant_id: str) -> int:
        count = await self.store.delete_where(ScimGroupRecord, tenant_id=tenant_id)
        logger.info("scim_groups_reset", tenant_id=tenant_id, deleted=count)
        return count

    async def _write(
        self,
        document: dict[str, Any],
        original: dict[str, Any],
        tenant_id: str,
        *,
        event: str,
        **log_fields: Any,
    ) -> ScimGroup | None:
        now = utc_now()
        _require_display_name(document.get("displayName"))
        document["meta"] = refresh_meta(original.get("meta"), now=now)
        group = _validate_group(document)

        try:
            affected = await self.store.update(
                ScimGroupRecord,
                {
                    "display_name": group.displayName,
                    "resource": document,
                    "last_modified_at": now,
                },
                tenant_id=tenant_id,
                id=original["id"],
            )
        except DuplicateRecordError as exc:
            raise _conflict(group.displayName) from exc
        if not affected:
            return None

        logger.info(event, tenant_id=tenant_id, group_id=original["id"], **log_fields)
        return group

    async def _load_document(self, group_id: str, tenant_id: str) -> dict[str, Any] | None:
        if parse_uuid(group_id) is None:
            return None
        record = await self.store.select_one(
            ScimGroupRecord, tenant_id=tenant_id, id=group_id
        )
        if record is None:
            return None
        return copy.deepcopy(record.resource)
