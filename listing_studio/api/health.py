"""Health check endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter, Request

from .. import __version__

router = APIRouter()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@router.get("/")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": _now(),
        "service": "listing-studio",
        "version": __version__,
    }


@router.get("/ready")
async def readiness_check(request: Request):
    """Ready once the lifespan has built the controller."""
    controller = getattr(request.app.state, "controller", None)
    scheduler = getattr(request.app.state, "scheduler", None)
    return {
        "ready": controller is not None,
        "pending_tasks": scheduler.pending if scheduler is not None else 0,
        "timestamp": _now(),
    }
