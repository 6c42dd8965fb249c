import uuid

import pytest
import pytest_asyncio

from app.modules.provisioning.domain.group_service import GroupService
from app.modules.provisioning.domain.resources import SCIM_GROUP_SCHEMA, ScimPatchRequest
from app.modules.provisioning.domain.store import ResourceStore
from app.shared.core.exceptions import ConflictError, InvalidFilterError, ValidationError

TENANT = "tenant-a"
OTHER_TENANT = "tenant-b"


@pytest_asyncio.fixture
async def groups(db) -> GroupService:
    return GroupService(ResourceStore(db), base_url="https://scim.test")


def _patch(*operations: dict) -> ScimPatchRequest:
    return ScimPatchRequest.model_validate({"Operations": list(operations)})


@pytest.mark.asyncio
async def test_create_group_defaults(groups):
    group = await groups.create_group({"displayName": "Eng"}, TENANT)
    assert group.schemas == [SCIM_GROUP_SCHEMA]
    assert group.members == []
    assert group.meta.resourceType == "Group"
    assert group.meta.location.endswith(f"/api/{TENANT}/scim/v2/Groups/{group.id}")


@pytest.mark.asyncio
async def test_create_group_requires_display_name(groups):
    with pytest.raises(ValidationError) as exc:
        await groups.create_group({"members": []}, TENANT)
    assert exc.value.message == "displayName is a required field"


@pytest.mark.asyncio
async def test_display_name_is_unique_per_tenant(groups):
    await groups.create_group({"displayName": "Eng"}, TENANT)
    with pytest.raises(ConflictError) as exc:
        await groups.create_group({"displayName": "Eng"}, TENANT)
    assert exc.value.message == "Group with name 'Eng' already exists"
    assert (await groups.create_group({"displayName": "Eng"}, OTHER_TENANT)).displayName == "Eng"


@pytest.mark.asyncio
async def test_get_groups_filter_and_pagination(groups):
    for name in ("Eng", "Ops", "Sales"):
        await groups.create_group({"displayName": name}, TENANT)

    page, total = await groups.get_groups(2, 1, TENANT)
    assert total == 3
    assert [g.displayName for g in page] == ["Ops"]

    page, total = await groups.get_groups(1, 10, TENANT, 'displayName eq "Sales"')
    assert total == 1
    assert page[0].displayName == "Sales"

    with pytest.raises(InvalidFilterError):
        await groups.get_groups(1, 10, TENANT, 'userName eq "Sales"')


@pytest.mark.asyncio
async def test_patch_group_membership_flow(groups):
    group = await groups.create_group({"displayName": "Eng"}, TENANT)

    added = await groups.patch_group(
        group.id,
        _patch({"op": "add", "path": "members", "value": [{"value": "u1"}, {"value": "u2"}]}),
        TENANT,
    )
    assert added is not None
    assert added.member_ids() == ["u1", "u2"]
    assert added.meta.version != group.meta.version

    removed = await groups.patch_group(
        group.id,
        _patch({"op": "remove", "path": 'members[value eq "u1"]'}),
        TENANT,
    )
    assert removed is not None
    assert removed.member_ids() == ["u2"]
    assert removed.meta.version != added.meta.version
    assert removed.meta.lastModified >= added.meta.lastModified
    assert removed.meta.created == group.meta.created

    stored = await groups.get_group_by_id(group.id, TENANT)
    assert stored is not None
    assert stored.member_ids() == ["u2"]
    assert stored.meta.version == removed.meta.version


@pytest.mark.asyncio
async def test_patch_group_missing_returns_none(groups):
    result = await groups.patch_group(
        str(uuid.uuid4()), _patch({"op": "add", "path": "members", "value": []}), TENANT
    )
    assert result is None
    assert await groups.patch_group("nope", _patch(), TENANT) is None


@pytest.mark.asyncio
async def test_patch_group_is_tenant_scoped(groups):
    group = await groups.create_group({"displayName": "Eng"}, TENANT)
    result = await groups.patch_group(
        group.id,
        _patch({"op": "add", "path": "members", "value": {"value": "u1"}}),
        OTHER_TENANT,
    )
    assert result is None


@pytest.mark.asyncio
async def test_patch_group_rename_conflict(groups):
    await groups.create_group({"displayName": "Eng"}, TENANT)
    ops = await groups.create_group({"displayName": "Ops"}, TENANT)
    with pytest.raises(ConflictError):
        await groups.patch_group(
            ops.id,
            _patch({"op": "replace", "path": "displayName", "value": "Eng"}),
            TENANT,
        )


@pytest.mark.asyncio
@pytest.mark.parametrize("display_name", ["", "   ", None])
async def test_patch_group_rejects_blank_display_name(groups, display_name):
    group = await groups.create_group({"displayName": "Eng"}, TENANT)
    with pytest.raises(ValidationError) as exc:
        await groups.patch_group(
            group.id,
            _patch({"op": "replace", "path": "displayName", "value": display_name}),
            TENANT,
        )
    assert exc.value.message == "displayName is a required field"

    stored = await groups.get_group_by_id(group.id, TENANT)
    assert stored.displayName == "Eng"


@pytest.mark.asyncio
@pytest.mark.parametrize("display_name", ["", "   ", None])
async def test_update_group_rejects_blank_display_name(groups, display_name):
    group = await groups.create_group({"displayName": "Eng"}, TENANT)
    with pytest.raises(ValidationError) as exc:
        await groups.update_group(group.id, {"displayName": display_name}, TENANT)
    assert exc.value.message == "displayName is a required field"


@pytest.mark.asyncio
async def test_patch_group_with_only_ignored_operations_still_bumps_version(groups):
    group = await groups.create_group({"displayName": "Eng"}, TENANT)
    patched = await groups.patch_group(
        group.id,
        _patch({"op": "copy", "path": "members"}, {"op": "replace", "path": "externalId", "value": "x"}),
        TENANT,
    )
    assert patched is not None
    assert patched.members == []
    assert patched.meta.version != group.meta.version


@pytest.mark.asyncio
async def test_update_group_shallow_merge(groups):
    group = await groups.create_group(
        {"displayName": "Eng", "members": [{"value": "u1"}], "externalId": "ext-1"}, TENANT
    )
    updated = await groups.update_group(group.id, {"displayName": "Engineering"}, TENANT)
    assert updated is not None
    assert updated.displayName == "Engineering"
    assert updated.member_ids() == ["u1"]
    assert updated.model_extra["externalId"] == "ext-1"

    assert await groups.update_group(str(uuid.uuid4()), {"displayName": "X"}, TENANT) is None


@pytest.mark.asyncio
async def test_delete_group_twice(groups):
    group = await groups.create_group({"displayName": "Eng"}, TENANT)
    assert await groups.delete_group(group.id, TENANT) is True
    assert await groups.delete_group(group.id, TENANT) is False
    assert await groups.get_group_by_id(group.id, TENANT) is None


@pytest.mark.asyncio
async def test_delete_all_groups(groups):
    await groups.create_group({"displayName": "Eng"}, TENANT)
    await groups.create_group({"displayName": "Ops"}, TENANT)
    await groups.create_group({"displayName": "Eng"}, OTHER_TENANT)
    assert await groups.delete_all_groups(TENANT) == 2
    _page, total = await groups.get_groups(1, 10, OTHER_TENANT)
    assert total == 1
