"""
Health Check Router
===================
Endpoints for health checks and readiness probes.
"""
from fastapi import APIRouter, Request

from code_insight import __version__

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint.
    Returns OK if the service is running.
    """
    return {"status": "ok", "version": __version__}


@router.get("/ready")
async def readiness_check(request: Request):
    """
    Readiness check endpoint.
    Ready once at least one tool is registered.
    """
    manager = request.app.state.manager
    return {"status": "ready" if len(manager) else "not_ready", "tools": len(manager)}
