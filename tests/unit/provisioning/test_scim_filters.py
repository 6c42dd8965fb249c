import pytest

from app.modules.provisioning.domain.filters import (
    parse_eq_filter,
    parse_group_filter,
    parse_member_filter_from_path,
    parse_user_filter,
    parse_uuid,
)
from app.shared.core.exceptions import InvalidFilterError


def test_parse_eq_filter_accepts_case_insensitive_operator():
    parsed = parse_eq_filter('userName EQ "alice"')
    assert parsed.attribute == "userName"
    assert parsed.value == "alice"

    parsed = parse_eq_filter('  displayName eq "Eng Team"  ')
    assert parsed.attribute == "displayName"
    assert parsed.value == "Eng Team"


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "userName",
        "userName eq alice",
        'userName ne "alice"',
        'userName sw "al"',
        'userName eq "alice" and active eq "true"',
        'userName eq ""',
    ],
)
def test_parse_eq_filter_rejects_other_shapes(raw):
    with pytest.raises(InvalidFilterError) as exc:
        parse_eq_filter(raw)
    assert exc.value.status_code == 400
    assert exc.value.scim_type == "invalidFilter"
    assert "Invalid or unsupported filter" in exc.value.message


def test_parse_user_filter_truncates_to_local_part():
    assert parse_user_filter('userName eq "alice@example.com"') == "alice"
    assert parse_user_filter('userName eq "bob"') == "bob"
    # Attribute names are case-insensitive per RFC 7643.
    assert parse_user_filter('username eq "carol@corp.test"') == "carol"


def test_parse_user_filter_rejects_other_attributes():
    with pytest.raises(InvalidFilterError) as exc:
        parse_user_filter('active eq "true"')
    assert "active" in exc.value.message


def test_parse_group_filter_uses_value_verbatim():
    assert parse_group_filter('displayName eq "ops@corp"') == "ops@corp"
    with pytest.raises(InvalidFilterError):
        parse_group_filter('userName eq "alice"')


def test_parse_member_filter_from_path():
    assert parse_member_filter_from_path('members[value eq "u1"]') == "u1"
    assert parse_member_filter_from_path('Members[ value EQ "abc-123" ]') == "abc-123"

    assert parse_member_filter_from_path(None) is None
    assert parse_member_filter_from_path("members") is None
    assert parse_member_filter_from_path('members[display eq "u1"]') is None
    assert parse_member_filter_from_path('members[value eq "u1" or value eq "u2"]') is None
    assert parse_member_filter_from_path('emails[value eq "u1"]') is None


def test_parse_uuid_handles_invalid_values():
    assert parse_uuid(None) is None
    assert parse_uuid("") is None
    assert parse_uuid("not-a-uuid") is None
    assert str(parse_uuid("1b4e28ba-2fa1-11d2-883f-0016d3cca427")) == (
        "1b4e28ba-2fa1-11d2-883f-0016d3cca427"
    )
