from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from bs4 import BeautifulSoup  # type: ignore[import-untyped]

from aqua_tracker.application.ports.tracker_port import TrackerPort
from aqua_tracker.application.use_cases.locked_item_updater import LockedItemUpdater
from aqua_tracker.domain.identifiers import REQUIREMENT, TASK_PLACEHOLDER, TEST_CASE, parse, require_item_id
from aqua_tracker.domain.model import Session
from aqua_tracker.domain.payloads import NewTestStep, TestCaseUpdate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ItemSummary:
    title: str | None
    description_html: str
    description_text: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": {"html": self.description_html, "plainText": self.description_text},
        }


def html_to_text(html: str) -> str:
    if not html:
        return ""
    return BeautifulSoup(html, "html.parser").get_text(" ", strip=True)


def summarize_item(details: dict[str, Any]) -> ItemSummary:
    description = details.get("Description") or {}
    html = description.get("Html") or ""
    text = description.get("PlainText") or html_to_text(html)
    return ItemSummary(title=details.get("Name"), description_html=html, description_text=text)


class GetItemDetailsUseCase:
    def __init__(self, tracker: TrackerPort) -> None:
        self.tracker = tracker

    async def execute(self, session: Session, raw_id: str | None, item_type: str | None = None) -> ItemSummary:
        item = parse(require_item_id(raw_id, session), item_type)
        return summarize_item(await self.tracker.get_item_details(session, item))


class AddCommentUseCase:
    def __init__(self, tracker: TrackerPort) -> None:
        self.tracker = tracker

    async def execute(
        self, session: Session, raw_id: str | None, comment: str, item_type: str | None = None
    ) -> str:
        item = parse(require_item_id(raw_id, session), item_type)
        await self.tracker.add_comment(session, item, comment)
        return item.numeric_id


@dataclass(frozen=True)
class NewItem:
    title: str
    description: str


class CreateItemsUseCase:
    """Creates top-level items in the session project, or sub-items of a parent requirement."""

    def __init__(self, tracker: TrackerPort) -> None:
        self.tracker = tracker

    async def execute(
        self,
        session: Session,
        items: Sequence[NewItem],
        *,
        item_type: str = REQUIREMENT,
        parent_item_id: str | None = None,
    ) -> list[dict[str, Any]]:
        if not session.project_id:
            raise ValueError("No project id found in the session")
        parent_id = None
        if parent_item_id and parent_item_id != TASK_PLACEHOLDER:
            parent_id = parse(parent_item_id, REQUIREMENT).numeric_id

        created = []
        for new in items:
            created.append(
                await self.tracker.create_item(
                    session,
                    new.title,
                    new.description,
                    item_type=item_type,
                    project_id=session.project_id,
                    parent_requirement_id=parent_id,
                )
            )
        return created


class GetTestStepsUseCase:
    def __init__(self, tracker: TrackerPort) -> None:
        self.tracker = tracker

    async def execute(self, session: Session, raw_id: str | None) -> list[dict[str, Any]]:
        item = parse(require_item_id(raw_id, session), TEST_CASE)
        return await self.tracker.get_test_steps(session, item.numeric_id)


class AddTestStepsUseCase:
    """Appends steps after the existing ones through a locked update."""

    def __init__(self, tracker: TrackerPort) -> None:
        self.tracker = tracker

    async def execute(
        self,
        session: Session,
        raw_id: str | None,
        steps: Sequence[NewTestStep],
        item_type: str = TEST_CASE,
    ) -> Any:
        item = parse(require_item_id(raw_id, session), item_type)
        existing = await self.tracker.get_test_steps(session, item.numeric_id)
        update = TestCaseUpdate.adding_steps(steps, existing_count=len(existing))
        logger.info("Adding %d test step(s) to %s", len(steps), item)
        return await LockedItemUpdater(self.tracker, session, item).run(update)
