"""Health check endpoint."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health_check(request: Request) -> dict:
    state = request.app.state
    return {
        "success": True,
        "data": {
            "status": "healthy",
            "version": state.settings.app_version,
            "localStorage": "up" if getattr(state, "redis", None) is not None else "degraded",
            "database": "up" if getattr(state, "db_session_factory", None) is not None else "degraded",
        },
        "requestId": request.state.request_id,
    }
