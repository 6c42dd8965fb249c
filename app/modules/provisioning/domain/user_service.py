"""
User lifecycle for the tenant-scoped SCIM surface.

PUT is a shallow merge: attributes omitted from the request keep their stored
values. Strict RFC 7644 replacement would silently clear attributes for IdPs
that send partial PUT bodies, so the merge behaviour is kept on purpose.
"""

from __future__ import annotations

import copy
from typing import Any
from uuid import uuid4

import structlog
from pydantic import ValidationError as PydanticValidationError

from app.models.scim_resource import ScimUserRecord
from app.modules.provisioning.domain.filters import parse_user_filter, parse_uuid
from app.modules.provisioning.domain.resources import (
    SCIM_USER_SCHEMA,
    ScimUser,
    build_meta,
    refresh_meta,
    resource_location,
    utc_now,
)
from app.modules.provisioning.domain.store import ResourceStore
from app.shared.core.exceptions import ConflictError, DuplicateRecordError, ValidationError

logger = structlog.get_logger()


def _validate_user(document: dict[str, Any]) -> ScimUser:
    try:
        return ScimUser.model_validate(document)
    except PydanticValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise ValidationError(
            f"Invalid value for '{location}': {first.get('msg', 'invalid value')}"
        ) from exc


def _require_user_name(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("userName is a required field")
    return value


def _fill_defaults(document: dict[str, Any]) -> None:
    # A null from the caller means the default, not an invalid value.
    for attribute, default in (("active", True), ("name", {}), ("emails", [])):
        if document.get(attribute) is None:
            document[attribute] = default


class UserService:
    def __init__(self, store: ResourceStore, *, base_url: str) -> None:
        self.store = store
        self.base_url = base_url

    async def create_user(self, user_data: dict[str, Any], tenant_id: str) -> ScimUser:
        user_name = _require_user_name(user_data.get("userName"))

        existing = await self.store.select_one(
            ScimUserRecord, tenant_id=tenant_id, username=user_name
        )
        if existing is not None:
            raise ConflictError(f"User with userName '{user_name}' already exists")

        user_id = str(uuid4())
        now = utc_now()
        document: dict[str, Any] = {
            **user_data,
            "schemas": [SCIM_USER_SCHEMA],
            "id": user_id,
            "meta": build_meta(
                resource_type="User",
                location=resource_location(self.base_url, tenant_id, "User", user_id),
                now=now,
            ),
        }
        _fill_defaults(document)
        user = _validate_user(document)

        try:
            await self.store.insert(
                ScimUserRecord,
                {
                    "id": user_id,
                    "tenant_id": tenant_id,
                    "username": user.userName,
                    "active": user.active,
                    "resource": document,
                    "created_at": now,
                    "last_modified_at": now,
                },
            )
        except DuplicateRecordError as exc:
            raise ConflictError(f"User with userName '{user_name}' already exists") from exc

        logger.info("scim_user_created", tenant_id=tenant_id, user_id=user_id)
        return user

    async def get_users(
        self,
        start_index: int,
        count: int,
        tenant_id: str,
        filter: str | None = None,
    ) -> tuple[list[ScimUser], int]:
        equals: dict[str, Any] = {}
        if filter:
            equals["username"] = parse_user_filter(filter)

        rows, total = await self.store.select_range(
            ScimUserRecord,
            tenant_id=tenant_id,
            offset=start_index - 1,
            limit=count,
            **equals,
        )
        return [ScimUser.model_validate(row.resource) for row in rows], total

    async def get_user_by_id(self, user_id: str, tenant_id: str) -> ScimUser | None:
        document = await self._load_document(user_id, tenant_id)
        if document is None:
            return None
        return ScimUser.model_validate(document)

    async def update_user(
        self, user_id: str, user_data: dict[str, Any], tenant_id: str
    ) -> ScimUser | None:
        original = await self._load_document(user_id, tenant_id)
        if original is None:
            return None

        now = utc_now()
        updated: dict[str, Any] = {
            **original,
            **user_data,
            "id": original["id"],
            "schemas": [SCIM_USER_SCHEMA],
            "meta": refresh_meta(original.get("meta"), now=now),
        }
        _fill_defaults(updated)
        _require_user_name(updated.get("userName"))
        user = _validate_user(updated)

        try:
            affected = await self.store.update(
                ScimUserRecord,
                {
                    "username": user.userName,
                    "active": user.active,
                    "resource": updated,
                    "last_modified_at": now,
                },
                tenant_id=tenant_id,
                id=original["id"],
            )
        except DuplicateRecordError as exc:
            raise ConflictError(
                f"User with userName '{user.userName}' already exists"
            ) from exc
        if not affected:
            # Deleted between the read and the write.
            return None

        logger.info("scim_user_updated", tenant_id=tenant_id, user_id=original["id"])
        return user

    async def delete_user(self, user_id: str, tenant_id: str) -> bool:
        if parse_uuid(user_id) is None:
            return False
        count = await self.store.delete_where(
            ScimUserRecord, tenant_id=tenant_id, id=user_id
        )
        if count:
            logger.info("scim_user_deleted", tenant_id=tenant_id, user_id=user_id)
        return count > 0

    async def delete_all_users(self, tenant_id: str) -> int:
        count = await self.store.delete_where(ScimUserRecord, tenant_id=tenant_id)
        logger.info("scim_users_reset", tenant_id=tenant_id, deleted=count)
        return count

    async def _load_document(self, user_id: str, tenant_id: str) -> dict[str, Any] | None:
        # A malformed id cannot exist; treat it as not found rather than a fault.
        if parse_uuid(user_id) is None:
            return None
        record = await self.store.select_one(ScimUserRecord, tenant_id=tenant_id, id=user_id)
        if record is None:
            return None
        return copy.deepcopy(record.resource)
