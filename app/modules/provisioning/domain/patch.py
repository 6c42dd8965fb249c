"""
SCIM PATCH interpreter for Group documents.

Operations are applied strictly in request order to a deep copy of the stored
document, so a later operation sees the effect of an earlier one. Dispatch is a
table keyed by (operation kind, path target); the `members[value eq "id"]` path
grammar lives in `filters.parse_member_filter_from_path`.

The interpreter is forgiving: an unknown `op`, or a path that no handler
understands, is logged and skipped instead of failing the request. Strict
rejection would break IdPs that send attributes this server does not manage.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable

import structlog

from app.modules.provisioning.domain.filters import parse_member_filter_from_path
from app.modules.provisioning.domain.resources import ScimPatchOperation

logger = structlog.get_logger()


class PatchOpKind(str, Enum):
    ADD = "add"
    REPLACE = "replace"
    REMOVE = "remove"

    @classmethod
    def parse(cls, raw: str | None) -> "PatchOpKind | None":
        try:
            return cls(str(raw or "").strip().lower())
        except ValueError:
            return None


class PathTarget(str, Enum):
    MEMBERS = "members"
    DISPLAY_NAME = "displayName"
    MEMBER_BY_VALUE = "members[value eq]"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True, slots=True)
class PatchPath:
    target: PathTarget
    member_id: str | None = None


def parse_patch_path(path: str | None) -> PatchPath:
    normalized = (path or "").strip()
    lowered = normalized.lower()
    if lowered == "members":
        return PatchPath(PathTarget.MEMBERS)
    if lowered == "displayname":
        return PatchPath(PathTarget.DISPLAY_NAME)
    # Member ids compare trimmed on both sides, matching `_member_value`.
    member_id = (parse_member_filter_from_path(normalized) or "").strip()
    if member_id:
        return PatchPath(PathTarget.MEMBER_BY_VALUE, member_id=member_id)
    return PatchPath(PathTarget.UNSUPPORTED)


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _member_value(candidate: Any) -> str:
    if not isinstance(candidate, dict):
        return ""
    return str(candidate.get("value") or "").strip()


def _replace_members(document: dict[str, Any], path: PatchPath, value: Any) -> None:
    # Wholesale overwrite; no merge with the previous list and no dedup.
    document["members"] = _as_list(value) if value else []


def _replace_display_name(document: dict[str, Any], path: PatchPath, value: Any) -> None:
    document["displayName"] = value


def _add_members(document: dict[str, Any], path: PatchPath, value: Any) -> None:
    members = document.setdefault("members", [])
    existing_ids = {_member_value(member) for member in members}
    for candidate in _as_list(value):
        member_id = _member_value(candidate)
        if not member_id or member_id in existing_ids:
            continue
        members.append(candidate)
        existing_ids.add(member_id)


def _remove_member_by_value(document: dict[str, Any], path: PatchPath, value: Any) -> None:
    document["members"] = [
        member
        for member in document.get("members") or []
        if _member_value(member) != path.member_id
    ]


PatchHandler = Callable[[dict[str, Any], PatchPath, Any], None]

_HANDLERS: dict[tuple[PatchOpKind, PathTarget], PatchHandler] = {
    (PatchOpKind.REPLACE, PathTarget.MEMBERS): _replace_members,
    (PatchOpKind.REPLACE, PathTarget.DISPLAY_NAME): _replace_display_name,
    (PatchOpKind.ADD, PathTarget.MEMBERS): _add_members,
    (PatchOpKind.REMOVE, PathTarget.MEMBER_BY_VALUE): _remove_member_by_value,
}


def apply_group_patch(
    document: dict[str, Any],
    operations: Iterable[ScimPatchOperation],
) -> dict[str, Any]:
    """Return a patched deep copy of `document`; the input is never mutated."""
    working = copy.deepcopy(document)
    for index, operation in enumerate(operations):
        kind = PatchOpKind.parse(operation.op)
        if kind is None:
            logger.warning("scim_patch_op_unsupported", op=operation.op, index=index)
            continue

        path = parse_patch_path(operation.path)
        handler = _HANDLERS.get((kind, path.target))
        if handler is None:
            logger.warning(
                "scim_patch_path_ignored",
                op=kind.value,
                path=operation.path,
                index=index,
            )
            continue
        handler(working, path, operation.value)
    return working
