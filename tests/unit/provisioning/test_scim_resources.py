from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from app.modules.provisioning.domain import resources
from app.modules.provisioning.domain.resources import (
    ScimGroup,
    ScimUser,
    build_meta,
    dump_resource,
    format_timestamp,
    next_version,
    refresh_meta,
    resource_location,
)


def _meta(resource_type: str = "User") -> dict:
    return build_meta(
        resource_type=resource_type,
        location="https://scim.test/x",
        now=datetime(2026, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc),
    )


def test_format_timestamp_is_utc_with_milliseconds():
    moment = datetime(2026, 1, 2, 3, 4, 5, 678901, tzinfo=timezone.utc)
    assert format_timestamp(moment) == "2026-01-02T03:04:05.678Z"


def test_next_version_is_weak_etag():
    version = next_version()
    assert version.startswith('W/"') and version.endswith('"')
    assert version[3:-1].isdigit()


def test_next_version_always_changes_within_same_millisecond():
    with patch.object(resources.time, "time_ns", return_value=1_700_000_000_000_000_000):
        first = next_version()
        second = next_version(first)
        third = next_version(second)
    assert first == 'W/"1700000000000"'
    assert second == 'W/"1700000000001"'
    assert third == 'W/"1700000000002"'


def test_build_meta_sets_created_equal_to_last_modified():
    meta = _meta()
    assert meta["resourceType"] == "User"
    assert meta["created"] == meta["lastModified"] == "2026-01-02T03:04:05.678Z"
    assert meta["location"] == "https://scim.test/x"


def test_refresh_meta_keeps_created_and_moves_forward():
    meta = _meta()
    later = datetime(2026, 1, 3, tzinfo=timezone.utc)
    refreshed = refresh_meta(meta, now=later)
    assert refreshed["created"] == meta["created"]
    assert refreshed["location"] == meta["location"]
    assert refreshed["lastModified"] == "2026-01-03T00:00:00.000Z"
    assert refreshed["version"] != meta["version"]
    # The input is left untouched.
    assert meta["lastModified"] == "2026-01-02T03:04:05.678Z"


def test_refresh_meta_never_moves_last_modified_backwards():
    meta = _meta()
    earlier = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc) - timedelta(seconds=30)
    refreshed = refresh_meta(meta, now=earlier)
    assert refreshed["lastModified"] == meta["lastModified"]


def test_resource_location_uses_tenant_collection_path():
    assert (
        resource_location("https://scim.test/", "t1", "User", "abc")
        == "https://scim.test/api/t1/scim/v2/Users/abc"
    )
    assert (
        resource_location("https://scim.test", "t1", "Group", "g1")
        == "https://scim.test/api/t1/scim/v2/Groups/g1"
    )


def test_user_allows_multiple_primary_emails_and_returns_first():
    user = ScimUser.model_validate(
        {
            "id": "u1",
            "userName": "alice",
            "emails": [
                {"value": "a@work.test", "primary": False},
                {"value": "alice@home.test", "primary": True},
                {"value": "alice@other.test", "primary": True},
            ],
            "meta": _meta(),
        }
    )
    primary = user.primary_email()
    assert primary is not None
    assert primary.value == "alice@home.test"


def test_user_keeps_extra_attributes_and_drops_nulls_on_dump():
    user = ScimUser.model_validate(
        {"id": "u1", "userName": "alice", "title": "Engineer", "meta": _meta()}
    )
    payload = dump_resource(user)
    assert payload["title"] == "Engineer"
    assert payload["active"] is True
    assert payload["name"] == {}
    assert "groups" not in payload


def test_group_member_ref_alias_round_trips():
    group = ScimGroup.model_validate(
        {
            "id": "g1",
            "displayName": "Eng",
            "members": [{"value": "u1", "$ref": "https://scim.test/Users/u1"}],
            "meta": _meta("Group"),
        }
    )
    assert group.member_ids() == ["u1"]
    assert dump_resource(group)["members"][0]["$ref"] == "https://scim.test/Users/u1"
