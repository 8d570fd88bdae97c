from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from aqua_tracker.domain.errors import InvalidIdentifier, UnresolvedItemType

if TYPE_CHECKING:
    from aqua_tracker.domain.model import Session

REQUIREMENT = "Requirement"
TEST_CASE = "TestCase"
DEFECT = "Defect"

PREFIX_TYPES: dict[str, str] = {
    "RQ": REQUIREMENT,
    "TC": TEST_CASE,
    "DF": DEFECT,
}

# Unsubstituted template value some callers send instead of a real id.
TASK_PLACEHOLDER = "%TASK_CONTEXT_TASK_ID%"

_PREFIXED_ID = re.compile(r"^(?P<prefix>[A-Za-z]{2})(?P<number>\d+)$")


@dataclass(frozen=True)
class ItemIdentifier:
    numeric_id: str
    item_type: str

    def __str__(self) -> str:
        return f"{self.item_type} {self.numeric_id}"


def _match_prefix(raw_id: str) -> tuple[str, str] | None:
    m = _PREFIXED_ID.match(raw_id)
    if not m:
        return None
    item_type = PREFIX_TYPES.get(m.group("prefix").upper())
    if item_type is None:
        return None
    return m.group("number"), item_type


def parse(raw_id: str | None, explicit_type: str | None = None) -> ItemIdentifier:
    """Classifies a raw item id such as ``TC1234`` into numeric id and item type.

    An explicit type always wins over the prefix; the numeric part of a
    recognized prefix is still extracted. Without a recognized prefix the raw
    string is used as the numeric id, which requires ``explicit_type``.
    """
    if raw_id is None and not explicit_type:
        raise UnresolvedItemType("No item id and no item type given")
    if not isinstance(raw_id, str) or not raw_id.strip():
        raise InvalidIdentifier(f"Item id must be a non-empty string, got {raw_id!r}")

    raw = raw_id.strip()
    matched = _match_prefix(raw)
    if matched is not None:
        numeric_id, inferred_type = matched
        return ItemIdentifier(numeric_id=numeric_id, item_type=explicit_type or inferred_type)
    if not explicit_type:
        raise UnresolvedItemType(
            f"Cannot infer item type from {raw!r}; use one of "
            f"{', '.join(PREFIX_TYPES)} prefixes or pass the item type explicitly"
        )
    return ItemIdentifier(numeric_id=raw_id, item_type=explicit_type)


def resolve_item_id(raw_id: str | None, session: "Session") -> str | None:
    """Falls back to the session's current task when no usable id is given."""
    if raw_id and raw_id != TASK_PLACEHOLDER:
        return raw_id
    return session.current_task_id


def require_item_id(raw_id: str | None, session: "Session") -> str:
    item_id = resolve_item_id(raw_id, session)
    if not item_id:
        raise InvalidIdentifier("No item id provided and none found in session")
    return item_id
