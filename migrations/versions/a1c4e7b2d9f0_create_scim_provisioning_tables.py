"""Create SCIM provisioning tables.

Revision ID: a1c4e7b2d9f0
Revises:
Create Date: 2026-10-19

Users and Groups are stored as JSON documents with the attributes used for
lookups and per-tenant uniqueness duplicated into plain columns. API keys are
stored hashed.
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "a1c4e7b2d9f0"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_DOCUMENT = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "scim_users",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("tenant_id", sa.String(length=255), nullable=False),
        sa.Column("username", sa.String(length=255), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("resource", _DOCUMENT, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("last_modified_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_scim_users")),
        sa.UniqueConstraint("tenant_id", "username", name="uq_scim_users_tenant_username"),
    )
    op.create_index(op.f("ix_scim_users_tenant_id"), "scim_users", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_scim_users_username"), "scim_users", ["username"], unique=False)
    op.create_index(op.f("ix_scim_users_created_at"), "scim_users", ["created_at"], unique=False)

    op.create_table(
        "scim_groups",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("tenant_id", sa.String(length=255), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=False),
        sa.Column("resource", _DOCUMENT, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("last_modified_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_scim_groups")),
        sa.UniqueConstraint(
            "tenant_id",
            "display_name",
            name="uq_scim_groups_tenant_display_name",
        ),
    )
    op.create_index(op.f("ix_scim_groups_tenant_id"), "scim_groups", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_scim_groups_display_name"), "scim_groups", ["display_name"], unique=False)
    op.create_index(op.f("ix_scim_groups_created_at"), "scim_groups", ["created_at"], unique=False)

    op.create_table(
        "scim_api_keys",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("tenant_id", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("hashed_key", sa.String(length=64), nullable=False),
        sa.Column("key_prefix", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_scim_api_keys")),
    )
    op.create_index(op.f("ix_scim_api_keys_tenant_id"), "scim_api_keys", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_scim_api_keys_hashed_key"), "scim_api_keys", ["hashed_key"], unique=True)
    op.create_index(op.f("ix_scim_api_keys_created_at"), "scim_api_keys", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_scim_api_keys_created_at"), table_name="scim_api_keys")
    op.drop_index(op.f("ix_scim_api_keys_hashed_key"), table_name="scim_api_keys")
    op.drop_index(op.f("ix_scim_api_keys_tenant_id"), table_name="scim_api_keys")
    op.drop_table("scim_api_keys")

    op.drop_index(op.f("ix_scim_groups_created_at"), table_name="scim_groups")
    op.drop_index(op.f("ix_scim_groups_display_name"), table_name="scim_groups")
    op.drop_index(op.f("ix_scim_groups_tenant_id"), table_name="scim_groups")
    op.drop_table("scim_groups")

    op.drop_index(op.f("ix_scim_users_created_at"), table_name="scim_users")
    op.drop_index(op.f("ix_scim_users_username"), table_name="scim_users")
    op.drop_index(op.f("ix_scim_users_tenant_id"), table_name="scim_users")
    op.drop_table("scim_users")
