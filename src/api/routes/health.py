"""
Health and Readiness Endpoints

Kubernetes-compatible health probes for load balancers and orchestration.
"""
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from loguru import logger

from src.config import settings

router = APIRouter(tags=["Health"])

# API version - single source of truth
API_VERSION = "0.4.0"


@router.get("/health")
async def health_check():
    """
    Basic health check endpoint.

    Returns 200 if service is running.
    """
    return {
        "status": "healthy",
        "service": "lead-intelligence",
        "version": API_VERSION
    }


@router.get("/ready")
async def readiness_check(request: Request):
    """
    Readiness probe - checks if service can handle requests.

    Verifies:
    - Orchestrator is initialized
    - Context store answers a ping

    Returns 200 if ready, 503 if not ready.
    """
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "reason": "Orchestrator not initialized"}
        )

    if not await orchestrator.store.ping():
        logger.error("Readiness check failed: context store unreachable")
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "reason": "Context store unreachable"}
        )

    return {
        "status": "ready",
        "context_store": settings.context_store_backend,
        "orchestrator": "initialized"
    }


@router.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "service": "Lead Intelligence API",
        "version": API_VERSION,
        "endpoints": {
            "health": "/health",
            "ready": "/ready",
            "metrics": "/metrics",
            "coordinator_metrics": "/metrics/coordinator",
            "session_init": "/api/intelligence/session-init (POST)",
            "message": "/api/intelligence/message (POST)",
            "context": "/api/intelligence/context/{session_id}",
            "capabilities": "/api/intelligence/capabilities (POST)",
            "chat": "/api/chat (POST, text/event-stream)"
        }
    }
