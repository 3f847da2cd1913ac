"""
Intelligence Endpoints

Session initialization, conversation messages, context reads and
capability tracking.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header, Response
from fastapi.responses import JSONResponse
from loguru import logger

from src.api.dependencies import get_capability_tracker, get_orchestrator
from src.api.models.session import (
    CapabilityRequest,
    CapabilityResponse,
    CapabilityUsageResponse,
    ContextResponse,
    MessageRequest,
    MessageResponse,
    SessionInitRequest,
    SessionInitResponse,
    TriggersResponse,
)
from src.config import settings
from src.core.session_orchestrator import SessionOrchestrator
from src.services.capability_tracker import CapabilityTracker

router = APIRouter(prefix="/api/intelligence", tags=["Intelligence"])

NO_STORE = "no-store"


@router.post("/session-init", response_model=SessionInitResponse)
async def session_init(
    body: SessionInitRequest,
    response: Response,
    header_session_id: Optional[str] = Header(None, alias=settings.session_header),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
):
    """
    Initialize a session and kick off (or reuse) background research.

    Flow:
    1. Resolve the session id (body > X-Intelligence-Session-Id header > generated)
    2. Persist identity without touching existing research
    3. Return stored research, or run enrichment once per session

    Returns:
        {sessionId, contextReady, snapshot}. contextReady is false when
        research could not be produced; the session is still usable.
    """
    result = await orchestrator.init_session(
        email=body.email,
        name=body.name,
        company_url=body.company_url,
        session_id=body.session_id,
        header_session_id=header_session_id,
    )

    response.headers[settings.session_echo_header] = result.session_id
    response.headers["Cache-Control"] = NO_STORE

    return SessionInitResponse(
        session_id=result.session_id,
        context_ready=result.context_ready,
        snapshot=result.snapshot,
    )


@router.post("/message", response_model=MessageResponse)
async def conversation_message(
    body: MessageRequest,
    response: Response,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
):
    """Apply one user message to the session's stage machine and lead profile."""
    result = await orchestrator.process_message(body.session_id, body.message)

    response.headers["Cache-Control"] = NO_STORE

    return MessageResponse(
        session_id=result.session_id,
        stage=result.stage,
        previous_stage=result.previous_stage,
        path=result.path,
        triggers=TriggersResponse(
            should_trigger_research=result.triggers.should_trigger_research,
            should_send_follow_up=result.triggers.should_send_follow_up,
        ),
        lead=result.lead,
    )


@router.get("/context/{session_id}", response_model=ContextResponse)
async def session_context(
    session_id: str,
    response: Response,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
):
    """Current stage, research snapshot, lead profile and capabilities for a session."""
    context = await orchestrator.get_context(session_id)
    if context is None:
        logger.debug(f"Context requested for unknown session {session_id}")
        return JSONResponse(status_code=404, content={"error": "Session not found"})

    response.headers["Cache-Control"] = NO_STORE

    return ContextResponse(
        session_id=context.session_id,
        stage=context.stage,
        message_count=context.message_count,
        snapshot=context.snapshot(),
        lead=context.lead_data,
        capabilities=context.capabilities_shown,
        capability_usage=[
            CapabilityUsageResponse(capability=usage.capability, metadata=usage.metadata, used_at=usage.used_at)
            for usage in context.capability_usage
        ],
    )


@router.post("/capabilities", response_model=CapabilityResponse)
async def record_capability(
    body: CapabilityRequest,
    tracker: CapabilityTracker = Depends(get_capability_tracker),
):
    """
    Record that a capability was shown to the session.
    Best-effort: failures are logged and reported as recorded=false.
    """
    recorded = await tracker.record(body.session_id, body.capability, body.metadata)
    capabilities = await tracker.get_capabilities(body.session_id)

    return CapabilityResponse(
        session_id=body.session_id,
        recorded=recorded,
        capabilities=capabilities,
    )
