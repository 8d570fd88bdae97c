from __future__ import annotations

from fastapi import APIRouter, Header, HTTPException, Request

from aqua_tracker.domain.errors import AuthenticationError
from aqua_tracker.domain.model import TrackerCredentials

router = APIRouter(prefix="/v1/sessions", tags=["sessions"])


@router.post("", status_code=201)
async def create_session(  # type: ignore[misc]
    request: Request,
    x_aqua_url: str | None = Header(default=None),
    x_aqua_username: str | None = Header(default=None),
    x_aqua_password: str | None = Header(default=None),
    x_aqua_projectid: str | None = Header(default=None),
    x_task_id: str | None = Header(default=None),
) -> dict[str, str | None]:
    if not (x_aqua_url and x_aqua_username and x_aqua_password and x_aqua_projectid):
        raise HTTPException(
            status_code=401,
            detail="Missing x-aqua-username, x-aqua-password, x-aqua-url, or x-aqua-projectid headers",
        )
    container = request.app.state.container
    container.store.evict_idle()
    session = container.store.create(
        TrackerCredentials(base_url=x_aqua_url, username=x_aqua_username, password=x_aqua_password),
        project_id=x_aqua_projectid,
        context={"task_id": x_task_id} if x_task_id else None,
    )
    try:
        await container.tokens.get_authorization(session)
    except AuthenticationError:
        container.store.delete(session.session_id)
        raise
    return {"session_id": session.session_id, "project_id": session.project_id}


@router.delete("/{session_id}", status_code=204)
def close_session(session_id: str, request: Request) -> None:  # type: ignore[misc]
    request.app.state.container.store.delete(session_id)
