from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request

from aqua_tracker.application.use_cases.item_operations import (
    AddCommentUseCase,
    AddTestStepsUseCase,
    CreateItemsUseCase,
    GetItemDetailsUseCase,
    GetTestStepsUseCase,
    NewItem,
)
from aqua_tracker.domain.identifiers import REQUIREMENT, TEST_CASE
from aqua_tracker.domain.payloads import NewTestStep

router = APIRouter(prefix="/v1/sessions/{session_id}", tags=["items"])


def _session_and_tracker(request: Request, session_id: str):
    container = request.app.state.container
    return container.store.get(session_id), container.tracker


@router.get("/items/{raw_id}")
async def get_item(session_id: str, raw_id: str, request: Request, item_type: str | None = None):  # type: ignore[misc]
    session, tracker = _session_and_tracker(request, session_id)
    summary = await GetItemDetailsUseCase(tracker).execute(session, raw_id, item_type)
    return summary.as_dict()


@router.post("/items/{raw_id}/comments", status_code=201)
async def add_comment(session_id: str, raw_id: str, body: dict[str, Any], request: Request):  # type: ignore[misc]
    comment = body.get("comment")
    if not comment:
        raise HTTPException(status_code=422, detail="comment is required")
    session, tracker = _session_and_tracker(request, session_id)
    item_id = await AddCommentUseCase(tracker).execute(session, raw_id, comment, body.get("item_type"))
    return {"message": f"Successfully added comment to item {item_id}."}


@router.post("/items", status_code=201)
async def create_items(session_id: str, body: dict[str, Any], request: Request):  # type: ignore[misc]
    tasks = body.get("tasks") or []
    if not tasks:
        raise HTTPException(status_code=422, detail="tasks must contain at least one item")
    items = [NewItem(title=t.get("title", ""), description=t.get("description", "")) for t in tasks]
    session, tracker = _session_and_tracker(request, session_id)
    created = await CreateItemsUseCase(tracker).execute(
        session,
        items,
        item_type=body.get("item_type", REQUIREMENT),
        parent_item_id=body.get("parent_item_id"),
    )
    return {"created": created, "count": len(created)}


@router.get("/test-cases/{raw_id}/steps")
async def get_test_steps(session_id: str, raw_id: str, request: Request):  # type: ignore[misc]
    session, tracker = _session_and_tracker(request, session_id)
    return {"steps": await GetTestStepsUseCase(tracker).execute(session, raw_id)}


@router.post("/test-cases/{raw_id}/steps")
async def add_test_steps(session_id: str, raw_id: str, body: dict[str, Any], request: Request):  # type: ignore[misc]
    steps = [NewTestStep(name=s.get("name", ""), description=s.get("description", "")) for s in body.get("steps") or []]
    if not steps:
        raise HTTPException(status_code=422, detail="steps must contain at least one step")
    session, tracker = _session_and_tracker(request, session_id)
    result = await AddTestStepsUseCase(tracker).execute(
        session, raw_id, steps, item_type=body.get("item_type", TEST_CASE)
    )
    return {"added": len(steps), "response": result}
