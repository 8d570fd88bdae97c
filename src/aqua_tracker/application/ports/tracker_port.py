from __future__ import annotations

from typing import Any, Protocol

from aqua_tracker.domain.identifiers import ItemIdentifier
from aqua_tracker.domain.model import Session


class TrackerPort(Protocol):
    """Item-level Tracker operations. Each call is authorized for the session
    and raises the domain error matching a non-success outcome."""

    async def get_item_details(self, session: Session, item: ItemIdentifier) -> dict[str, Any]: ...

    async def lock_item(self, session: Session, item: ItemIdentifier, version: int) -> Any: ...

    async def unlock_item(self, session: Session, item: ItemIdentifier) -> Any: ...

    async def update_locked_item(
        self, session: Session, item: ItemIdentifier, body: dict[str, Any]
    ) -> Any: ...

    async def add_comment(self, session: Session, item: ItemIdentifier, html: str) -> Any: ...

    async def get_test_steps(self, session: Session, test_case_id: str) -> list[dict[str, Any]]: ...

    async def create_item(
        self,
        session: Session,
        title: str,
        description: str,
        *,
        item_type: str,
        project_id: str | None = None,
        parent_requirement_id: str | None = None,
    ) -> dict[str, Any]: ...
