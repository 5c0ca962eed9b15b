from fastapi import APIRouter, Request


router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request):
    return {
        "status": "ok",
        "quiz_ready": getattr(request.app.state, "orchestrator", None) is not None,
    }
