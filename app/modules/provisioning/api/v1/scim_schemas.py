from __future__ import annotations

from typing import Any

from app.modules.provisioning.domain.resources import (
    SCIM_GROUP_SCHEMA,
    SCIM_LIST_SCHEMA,
    SCIM_USER_SCHEMA,
)

SCIM_SCHEMA_SCHEMA = "urn:ietf:params:scim:schemas:core:2.0:Schema"
SCIM_RESOURCE_TYPE_SCHEMA = "urn:ietf:params:scim:schemas:core:2.0:ResourceType"
SCIM_SERVICE_PROVIDER_CONFIG_SCHEMA = (
    "urn:ietf:params:scim:schemas:core:2.0:ServiceProviderConfig"
)


def _attribute(
    name: str,
    type_: str = "string",
    *,
    required: bool = False,
    multi_valued: bool = False,
    mutability: str = "readWrite",
    uniqueness: str = "none",
    sub_attributes: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    attribute: dict[str, Any] = {
        "name": name,
        "type": type_,
        "multiValued": multi_valued,
        "required": required,
        "caseExact": False,
        "mutability": mutability,
        "returned": "default",
        "uniqueness": uniqueness,
    }
    if sub_attributes is not None:
        attribute["subAttributes"] = sub_attributes
    return attribute


def _tenant_base(base_url: str, tenant_id: str) -> str:
    return f"{base_url.rstrip('/')}/api/{tenant_id}/scim/v2"


def scim_user_schema_resource(*, base_url: str, tenant_id: str) -> dict[str, Any]:
    return {
        "schemas": [SCIM_SCHEMA_SCHEMA],
        "id": SCIM_USER_SCHEMA,
        "name": "User",
        "description": "User account provisioned by an identity provider",
        "attributes": [
            _attribute("userName", required=True, uniqueness="server"),
            _attribute(
                "name",
                "complex",
                sub_attributes=[
                    _attribute("formatted"),
                    _attribute("familyName"),
                    _attribute("givenName"),
                    _attribute("middleName"),
                    _attribute("honorificPrefix"),
                    _attribute("honorificSuffix"),
                ],
            ),
            _attribute("displayName"),
            _attribute("active", "boolean"),
            _attribute(
                "emails",
                "complex",
                multi_valued=True,
                sub_attributes=[
                    _attribute("value"),
                    _attribute("display"),
                    _attribute("type"),
                    _attribute("primary", "boolean"),
                ],
            ),
            _attribute(
                "groups",
                "complex",
                multi_valued=True,
                mutability="readOnly",
                sub_attributes=[
                    _attribute("value", mutability="readOnly"),
                    _attribute("$ref", "reference", mutability="readOnly"),
                    _attribute("display", mutability="readOnly"),
                ],
            ),
        ],
        "meta": {
            "resourceType": "Schema",
            "location": f"{_tenant_base(base_url, tenant_id)}/Schemas/{SCIM_USER_SCHEMA}",
        },
    }


def scim_group_schema_resource(*, base_url: str, tenant_id: str) -> dict[str, Any]:
    return {
        "schemas": [SCIM_SCHEMA_SCHEMA],
        "id": SCIM_GROUP_SCHEMA,
        "name": "Group",
        "description": "Group of users",
        "attributes": [
            _attribute("displayName", required=True, uniqueness="server"),
            _attribute(
                "members",
                "complex",
                multi_valued=True,
                sub_attributes=[
                    _attribute("value", mutability="immutable"),
                    _attribute("$ref", "reference", mutability="immutable"),
                    _attribute("display"),
                    _attribute("type", mutability="immutable"),
                ],
            ),
        ],
        "meta": {
            "resourceType": "Schema",
            "location": f"{_tenant_base(base_url, tenant_id)}/Schemas/{SCIM_GROUP_SCHEMA}",
        },
    }


def scim_schema_resources(*, base_url: str, tenant_id: str) -> dict[str, dict[str, Any]]:
    return {
        SCIM_USER_SCHEMA: scim_user_schema_resource(base_url=base_url, tenant_id=tenant_id),
        SCIM_GROUP_SCHEMA: scim_group_schema_resource(base_url=base_url, tenant_id=tenant_id),
    }


def scim_service_provider_config(*, max_results: int) -> dict[str, Any]:
    return {
        "schemas": [SCIM_SERVICE_PROVIDER_CONFIG_SCHEMA],
        "patch": {"supported": True},
        "bulk": {"supported": False, "maxOperations": 0, "maxPayloadSize": 0},
        "filter": {"supported": True, "maxResults": max_results},
        "changePassword": {"supported": False},
        "sort": {"supported": False},
        # Versions are stamped on every write but If-Match is not enforced.
        "etag": {"supported": False},
        "authenticationSchemes": [
            {
                "type": "oauthbearertoken",
                "name": "API Key",
                "description": "Tenant-scoped provisioning API key sent as a bearer token",
                "specUri": "https://www.rfc-editor.org/rfc/rfc6750",
                "primary": True,
            }
        ],
    }


def scim_resource_types(*, base_url: str, tenant_id: str) -> dict[str, Any]:
    base = _tenant_base(base_url, tenant_id)
    resources = [
        {
            "schemas": [SCIM_RESOURCE_TYPE_SCHEMA],
            "id": "User",
            "name": "User",
            "endpoint": "/Users",
            "schema": SCIM_USER_SCHEMA,
            "meta": {"resourceType": "ResourceType", "location": f"{base}/ResourceTypes/User"},
        },
        {
            "schemas": [SCIM_RESOURCE_TYPE_SCHEMA],
            "id": "Group",
            "name": "Group",
            "endpoint": "/Groups",
            "schema": SCIM_GROUP_SCHEMA,
            "meta": {"resourceType": "ResourceType", "location": f"{base}/ResourceTypes/Group"},
        },
    ]
    return {
        "schemas": [SCIM_LIST_SCHEMA],
        "totalResults": len(resources),
        "startIndex": 1,
        "itemsPerPage": len(resources),
        "Resources": resources,
    }
