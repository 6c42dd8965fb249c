"""
SCIM resource tables.

Each row stores the full SCIM document in `resource` and duplicates the few
attributes the services filter or enforce uniqueness on (`username`,
`display_name`, `active`) as plain columns so the query can be pushed down.

Design:
- Tenant-partitioned: every row carries `tenant_id`, and uniqueness is scoped to it.
- The JSON document is authoritative for everything returned to SCIM clients.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, String, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.shared.db.base import Base

_DOCUMENT = JSON().with_variant(JSONB, "postgresql")


class ScimUserRecord(Base):
    __tablename__ = "scim_users"
    __table_args__ = (
        UniqueConstraint("tenant_id", "username", name="uq_scim_users_tenant_username"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    username: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    resource: Mapped[dict[str, Any]] = mapped_column(_DOCUMENT, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )
    last_modified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return f"<ScimUserRecord id={self.id} tenant={self.tenant_id} username={self.username}>"


class ScimGroupRecord(Base):
    __tablename__ = "scim_groups"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "display_name", name="uq_scim_groups_tenant_display_name"
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    resource: Mapped[dict[str, Any]] = mapped_column(_DOCUMENT, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )
    last_modified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return f"<ScimGroupRecord id={self.id} tenant={self.tenant_id} name={self.display_name}>"
