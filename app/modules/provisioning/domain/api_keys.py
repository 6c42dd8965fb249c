"""
Per-tenant provisioning API keys.

Raw keys look like `scim_<32 hex chars>` and are returned exactly once, from
`generate_key`. Only the SHA-256 hex digest is stored, so validation is a
single indexed lookup on `hashed_key`.
"""

from __future__ import annotations

import hashlib
from typing import Any
from uuid import uuid4

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.api_key import ScimApiKey
from app.modules.provisioning.domain.resources import utc_now
from app.shared.core.config import get_settings
from app.shared.core.exceptions import StoreError, ValidationError

logger = structlog.get_logger()


def hash_api_key(raw_key: str) -> str:
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()


class ApiKeyService:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.settings = get_settings()

    async def generate_key(self, name: str, tenant_id: str) -> tuple[str, str]:
        """Create a key for `tenant_id` and return `(raw_key, key_id)`."""
        if not name or not name.strip():
            raise ValidationError("API key name is required")
        if not tenant_id:
            raise ValidationError("tenant_id is required")

        raw_key = f"{self.settings.API_KEY_PREFIX}{uuid4().hex}"
        record = ScimApiKey(
            id=str(uuid4()),
            tenant_id=tenant_id,
            name=name.strip(),
            hashed_key=hash_api_key(raw_key),
            key_prefix=raw_key[: self.settings.API_KEY_DISPLAY_PREFIX_LENGTH],
            created_at=utc_now(),
        )
        self.db.add(record)
        try:
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error("api_key_create_failed", tenant_id=tenant_id, error=str(exc))
            raise StoreError("Error creating API key") from exc

        logger.info(
            "api_key_created",
            tenant_id=tenant_id,
            key_id=record.id,
            key_prefix=record.key_prefix,
        )
        return raw_key, record.id

    async def validate_key(self, raw_key: str | None, tenant_id: str | None = None) -> str | None:
        """
        Return the owning tenant id for a valid key, otherwise None.

        When `tenant_id` is given, a key that belongs to a different tenant is
        treated as invalid.
        """
        if not raw_key:
            return None
        try:
            result = await self.db.execute(
                select(ScimApiKey.tenant_id).where(
                    ScimApiKey.hashed_key == hash_api_key(raw_key)
                )
            )
        except SQLAlchemyError as exc:
            logger.error("api_key_validation_failed", error=str(exc))
            raise StoreError("Error validating API key") from exc

        owner = result.scalar_one_or_none()
        if owner is None:
            return None
        if tenant_id is not None and owner != tenant_id:
            logger.warning("api_key_tenant_mismatch", tenant_id=tenant_id)
            return None
        return owner

    async def list_keys(self, tenant_id: str) -> list[dict[str, Any]]:
        try:
            result = await self.db.execute(
                select(ScimApiKey)
                .where(ScimApiKey.tenant_id == tenant_id)
                .order_by(ScimApiKey.created_at.desc(), ScimApiKey.id.desc())
            )
        except SQLAlchemyError as exc:
            logger.error("api_key_list_failed", tenant_id=tenant_id, error=str(exc))
            raise StoreError("Error fetching API keys") from exc
        return [
            {
                "id": key.id,
                "name": key.name,
                "key_prefix": key.key_prefix,
                "created_at": key.created_at.isoformat() if key.created_at else None,
            }
            for key in result.scalars().all()
        ]

    async def revoke_key(self, key_id: str, tenant_id: str) -> bool:
        try:
            result = await self.db.execute(
                delete(ScimApiKey).where(
                    ScimApiKey.id == key_id,
                    ScimApiKey.tenant_id == tenant_id,
                )
            )
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error("api_key_revoke_failed", tenant_id=tenant_id, error=str(exc))
            raise StoreError("Error revoking API key") from exc

        revoked = int(result.rowcount or 0) > 0
        if revoked:
            logger.info("api_key_revoked", tenant_id=tenant_id, key_id=key_id)
        return revoked
