"""
Canonical SCIM resource shapes (RFC 7643) and the metadata helpers shared by
the user and group services.

Documents are persisted and exchanged as plain dicts; these models validate a
document before it is written and shape it before it is returned. Unknown
attributes are kept (`extra="allow"`) because callers may send any core
attribute and expect it back.
"""

from __future__ import annotations

import re
import time
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

SCIM_USER_SCHEMA = "urn:ietf:params:scim:schemas:core:2.0:User"
SCIM_GROUP_SCHEMA = "urn:ietf:params:scim:schemas:core:2.0:Group"
SCIM_LIST_SCHEMA = "urn:ietf:params:scim:api:messages:2.0:ListResponse"
SCIM_PATCH_SCHEMA = "urn:ietf:params:scim:api:messages:2.0:PatchOp"
SCIM_ERROR_SCHEMA = "urn:ietf:params:scim:api:2.0:Error"

ResourceType = Literal["User", "Group"]

_VERSION_RE = re.compile(r'^W/"(\d+)"$')


class Meta(BaseModel):
    resourceType: ResourceType
    created: str
    lastModified: str
    location: str
    version: str

    model_config = ConfigDict(extra="ignore")


class Name(BaseModel):
    formatted: str | None = None
    familyName: str | None = None
    givenName: str | None = None
    middleName: str | None = None
    honorificPrefix: str | None = None
    honorificSuffix: str | None = None

    model_config = ConfigDict(extra="allow")


class Email(BaseModel):
    value: str
    display: str | None = None
    type: str | None = None
    primary: bool = False

    model_config = ConfigDict(extra="allow")


class GroupMembershipRef(BaseModel):
    value: str
    ref: str | None = Field(default=None, alias="$ref")
    display: str | None = None

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class Member(BaseModel):
    value: str
    ref: str | None = Field(default=None, alias="$ref")
    display: str | None = None
    type: str | None = None

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class ScimUser(BaseModel):
    schemas: list[str] = Field(default_factory=lambda: [SCIM_USER_SCHEMA])
    id: str
    userName: str = Field(min_length=1)
    name: Name = Field(default_factory=Name)
    active: bool = True
    emails: list[Email] = Field(default_factory=list)
    groups: list[GroupMembershipRef] | None = None
    meta: Meta

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    def primary_email(self) -> Email | None:
        # Several entries may claim primary; the first one wins.
        return next((email for email in self.emails if email.primary), None)


class ScimGroup(BaseModel):
    schemas: list[str] = Field(default_factory=lambda: [SCIM_GROUP_SCHEMA])
    id: str
    displayName: str = Field(min_length=1)
    members: list[Member] = Field(default_factory=list)
    meta: Meta

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    def member_ids(self) -> list[str]:
        return [member.value for member in self.members]


class ScimListResponse(BaseModel):
    schemas: list[str] = Field(default_factory=lambda: [SCIM_LIST_SCHEMA])
    totalResults: int
    itemsPerPage: int
    startIndex: int
    Resources: list[dict[str, Any]]

    model_config = ConfigDict(extra="forbid")


class ScimPatchOperation(BaseModel):
    # `op` stays a free string: unknown operations are skipped, not rejected.
    op: str
    path: str | None = None
    value: Any | None = None

    model_config = ConfigDict(extra="ignore")


class ScimPatchRequest(BaseModel):
    schemas: list[str] = Field(default_factory=lambda: [SCIM_PATCH_SCHEMA])
    Operations: list[ScimPatchOperation] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """Render an aware datetime as an RFC 3339 string with millisecond precision."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def next_version(previous: str | None = None) -> str:
    """
    Build a weak ETag from the current epoch milliseconds.

    When the previous version was minted in the same millisecond (or the clock
    stepped back) the counter is bumped so every write yields a new version.
    """
    millis = time.time_ns() // 1_000_000
    if previous:
        match = _VERSION_RE.match(previous)
        if match:
            millis = max(millis, int(match.group(1)) + 1)
    return f'W/"{millis}"'


def resource_location(base_url: str, tenant_id: str, resource_type: ResourceType, resource_id: str) -> str:
    collection = "Users" if resource_type == "User" else "Groups"
    return f"{base_url.rstrip('/')}/api/{tenant_id}/scim/v2/{collection}/{resource_id}"


def build_meta(
    *,
    resource_type: ResourceType,
    location: str,
    now: datetime,
) -> dict[str, Any]:
    stamp = format_timestamp(now)
    return {
        "resourceType": resource_type,
        "created": stamp,
        "lastModified": stamp,
        "location": location,
        "version": next_version(),
    }


def refresh_meta(meta: dict[str, Any] | None, *, now: datetime) -> dict[str, Any]:
    """Return a copy of `meta` with lastModified/version advanced for a new write."""
    refreshed = dict(meta or {})
    stamp = format_timestamp(now)
    previous_stamp = refreshed.get("lastModified")
    # lastModified never moves backwards, even across small clock corrections.
    if isinstance(previous_stamp, str) and previous_stamp > stamp:
        stamp = previous_stamp
    refreshed["lastModified"] = stamp
    refreshed["version"] = next_version(refreshed.get("version"))
    return refreshed


def dump_resource(model: BaseModel) -> dict[str, Any]:
    """Serialize a resource the way SCIM clients expect it (aliases, no nulls)."""
    return model.model_dump(by_alias=True, exclude_none=True, mode="json")
