"""Health check router."""

from fastapi import APIRouter, Depends

from ..services.context import TrackerContext, get_context

router = APIRouter()


@router.get("/health")
async def health_check(context: TrackerContext = Depends(get_context)):
    """Health check endpoint."""
    scheduler = context.scheduler
    return {
        "status": "ok",
        "service": "burn-tracker",
        "version": "1.0.0",
        "auto_sync": bool(scheduler and scheduler.is_running),
    }
