from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])

@router.get("/health")
def health(request: Request) -> dict[str, str | int]:  # type: ignore[misc]
    return {"status": "ok", "sessions": len(request.app.state.container.store)}
