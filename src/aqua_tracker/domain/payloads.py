from __future__ import annotations

import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Union

from aqua_tracker.domain.identifiers import TEST_CASE

# Item types whose update payload carries {Added, Deleted} sub-collections.
STRUCTURED_COLLECTIONS: dict[str, tuple[str, ...]] = {
    TEST_CASE: ("TestSteps",),
}


@dataclass(frozen=True)
class NewTestStep:
    name: str
    description: str
    expected_result: str = ""

    def to_payload(self, index: int) -> dict[str, Any]:
        return {
            "Name": self.name,
            "Description": {"Html": self.description},
            "ExpectedResult": {"Html": self.expected_result},
            "Automation": None,
            "Index": index,
            "StepType": "Step",
            "uniqueId": str(uuid.uuid4()),
        }


@dataclass(frozen=True)
class CollectionChanges:
    """An {Added, Deleted} pair. Both lists are always submitted, possibly empty."""

    added: list[Any] = field(default_factory=list)
    deleted: list[Any] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "CollectionChanges":
        data = data or {}
        return cls(added=list(data.get("Added") or []), deleted=list(data.get("Deleted") or []))

    def to_payload(self) -> dict[str, list[Any]]:
        return {"Added": list(self.added), "Deleted": list(self.deleted)}


@dataclass(frozen=True)
class ItemUpdate:
    """Plain field update for item types without structured sub-collections."""

    fields: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        return dict(self.fields)


@dataclass(frozen=True)
class TestCaseUpdate:
    test_steps: CollectionChanges = field(default_factory=CollectionChanges)
    fields: dict[str, Any] = field(default_factory=dict)

    __test__ = False  # not a pytest class

    @classmethod
    def adding_steps(cls, steps: Sequence[NewTestStep], *, existing_count: int = 0) -> "TestCaseUpdate":
        added = [step.to_payload(existing_count + i + 1) for i, step in enumerate(steps)]
        return cls(test_steps=CollectionChanges(added=added))

    def to_payload(self) -> dict[str, Any]:
        payload = dict(self.fields)
        payload["TestSteps"] = self.test_steps.to_payload()
        return payload


UpdatePayload = Union[ItemUpdate, TestCaseUpdate]


def normalize_update_payload(item_type: str, payload: UpdatePayload | Mapping[str, Any]) -> dict[str, Any]:
    """Returns the body for an explicit-lock mutation.

    Structured collections present in a raw mapping get both ``Added`` and
    ``Deleted`` lists. The caller's mapping is not modified.
    """
    if isinstance(payload, (ItemUpdate, TestCaseUpdate)):
        return payload.to_payload()
    body = dict(payload)
    for key in STRUCTURED_COLLECTIONS.get(item_type, ()):
        if key in body:
            extra = {k: v for k, v in (body[key] or {}).items() if k not in ("Added", "Deleted")}
            body[key] = {**extra, **CollectionChanges.from_mapping(body[key]).to_payload()}
    return body
