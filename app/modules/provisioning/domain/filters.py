from __future__ import annotations

import re
from dataclasses import dataclass
from uuid import UUID

from app.shared.core.exceptions import InvalidFilterError

# <attribute> eq "<value>"; the operator is case-insensitive per RFC 7644 3.4.2.2.
_EQ_FILTER_RE = re.compile(r'^\s*([\w.]+)\s+(?i:eq)\s+"([^"]+)"\s*$')

# members[value eq "<id>"], the only value-filtered path PATCH understands.
_MEMBER_VALUE_PATH_RE = re.compile(r'^\s*members\[\s*value\s+eq\s+"([^"]+)"\s*\]\s*$', re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class EqualityFilter:
    attribute: str
    value: str


def parse_uuid(value: str | None) -> UUID | None:
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


def parse_eq_filter(filter_value: str) -> EqualityFilter:
    """
    Parse `attr eq "value"`.

    Raises InvalidFilterError for anything else (other operators, logical
    expressions, unquoted values).
    """
    match = _EQ_FILTER_RE.match(filter_value or "")
    if not match:
        raise InvalidFilterError(f'Invalid or unsupported filter syntax: "{filter_value}"')
    return EqualityFilter(attribute=match.group(1), value=match.group(2))


def parse_user_filter(filter_value: str) -> str:
    """
    Translate a Users filter into the `username` column value to match.

    Only `userName` is supported. The value is reduced to its local part, so
    `userName eq "alice@example.com"` matches the user stored as `alice`.
    """
    parsed = parse_eq_filter(filter_value)
    if parsed.attribute.lower() != "username":
        raise InvalidFilterError(
            f"Invalid or unsupported filter attribute: {parsed.attribute}"
        )
    return parsed.value.split("@", 1)[0]


def parse_group_filter(filter_value: str) -> str:
    """Translate a Groups filter into the `display_name` column value to match."""
    parsed = parse_eq_filter(filter_value)
    if parsed.attribute.lower() != "displayname":
        raise InvalidFilterError(
            f"Invalid or unsupported filter attribute: {parsed.attribute}"
        )
    return parsed.value


def parse_member_filter_from_path(path: str | None) -> str | None:
    """
    Support Okta/Azure-style member remove path:
      members[value eq "id"]

    Returns the quoted member id, or None when the path has any other shape.
    """
    match = _MEMBER_VALUE_PATH_RE.match(path or "")
    if not match:
        return None
    return match.group(1)
