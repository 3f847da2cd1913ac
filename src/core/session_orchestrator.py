"""
Session Orchestrator
The central hub that owns a session's lifecycle.

Architecture:
    session-init → Context Store (identity) → Coordinator → Enrichment Provider → Context Store (research)
    message      → Extraction → Stage Engine → Lead scoring → Context Store
"""
import asyncio
import secrets
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from loguru import logger

from src.config import get_settings
from src.core.inflight import CoordinatorClosedError, InFlightCoordinator
from src.core.session_locks import SessionLockRegistry
from src.errors import EnrichmentFailure, StoreError, ValidationError
from src.intelligence.scoring import apply_research, apply_signals, lead_score
from src.intelligence.stage_engine import StageTransitionEngine, StageTriggers
from src.models.context import ConversationContext, ResearchSnapshot, StageTransitionRecord
from src.models.enrichment import (
    EnrichmentFailed,
    EnrichmentOutcome,
    EnrichmentRequest,
    EnrichmentSuccess,
    research_patch,
)
from src.models.lead import LeadData, Stage
from src.repositories.context_store import ContextStore
from src.services.enrichment_provider import EnrichmentProvider
from src.services.role_detector import detect_role
from src.utils.metrics import metrics
from src.utils.observability import log_agent_execution, log_business_event

# Longest stored copy of the last user message
LAST_MESSAGE_MAX_CHARS = 2000

_UNSET: Any = object()


def generate_session_id() -> str:
    """session-<epoch ms>-<random hex>"""
    return f"session-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


def resolve_session_id(explicit: Optional[str], header: Optional[str]) -> str:
    """Explicit body value wins over the header; otherwise a fresh id."""
    for candidate in (explicit, header):
        if candidate and candidate.strip():
            return candidate.strip()
    return generate_session_id()


@dataclass
class SessionInitResult:
    session_id: str
    context_ready: bool
    snapshot: Optional[ResearchSnapshot] = None


@dataclass
class MessageResult:
    """Outcome of one inbound conversation message."""
    session_id: str
    stage: Stage
    previous_stage: Stage
    triggers: StageTriggers
    lead: LeadData
    path: List[Stage] = field(default_factory=list)


class SessionOrchestrator:
    """
    Orchestrates session initialization, enrichment and stage progression.

    Responsibilities:
    1. Resolve and persist session identity idempotently
    2. Run at most one enrichment per session at a time (via the Coordinator)
    3. Never let a later write clear researched fields
    4. Serialize stage transitions per session

    Usage:
        >>> orchestrator = SessionOrchestrator(store, DomainResearchProvider())
        >>> await orchestrator.start()
        >>> result = await orchestrator.init_session(email="jane@acme.io")
        >>> result.context_ready
        True
    """

    def __init__(
        self,
        store: ContextStore,
        provider: EnrichmentProvider,
        coordinator: InFlightCoordinator | None = None,
        engine: StageTransitionEngine | None = None,
        locks: SessionLockRegistry | None = None,
        enrichment_timeout: Optional[float] = _UNSET,
    ):
        """
        Args:
            store: Context persistence backend
            provider: Research provider called behind the Coordinator
            coordinator: Shared in-flight coordinator (creates new if None)
            engine: Stage transition engine (creates new if None)
            locks: Per-session lock registry (creates new if None)
            enrichment_timeout: Seconds a caller waits for research (None waits forever)
        """
        # Allow dependency injection for testing
        self.store = store
        self.provider = provider
        self.coordinator: InFlightCoordinator[EnrichmentOutcome] = coordinator or InFlightCoordinator(name="enrichment")
        self.engine = engine or StageTransitionEngine()
        self.locks = locks or SessionLockRegistry()
        self.enrichment_timeout = (
            get_settings().enrichment_timeout_seconds if enrichment_timeout is _UNSET else enrichment_timeout
        )
        self._background: Set[asyncio.Task] = set()

        logger.info(f"SessionOrchestrator initialized with {provider.name} research provider")

    async def start(self) -> None:
        await self.coordinator.start()

    async def shutdown(self) -> None:
        """Cancel pending enrichment and wait for background work to finish."""
        logger.info("Shutting down SessionOrchestrator")
        await self.coordinator.shutdown()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        self._background.clear()
        logger.info("✅ SessionOrchestrator shutdown complete")

    # ============================================
    # SESSION INIT
    # ============================================

    async def init_session(
        self,
        email: Optional[str],
        name: Optional[str] = None,
        company_url: Optional[str] = None,
        session_id: Optional[str] = None,
        header_session_id: Optional[str] = None,
    ) -> SessionInitResult:
        """
        Initialize (or re-initialize) a session and make sure research exists.

        Repeat calls for a session that already has research return the stored
        snapshot without calling the provider again. Concurrent first calls share
        one provider invocation.

        Raises:
            ValidationError: If email is missing
            StoreError: If the context cannot be read or written
        """
        if not email or not email.strip():
            raise ValidationError("Missing required field: email")

        start_time = time.time()
        sid = resolve_session_id(session_id, header_session_id)
        identity = {
            key: value
            for key, value in {"email": email.strip(), "name": name, "company_url": company_url}.items()
            if value is not None
        }

        # Best-effort: a failure here is recovered by the store() below
        try:
            await self.store.ensure(sid, identity)
        except StoreError as e:
            metrics.store_failures.inc(operation=e.operation)
            logger.warning(f"Identity upsert failed for {sid}, continuing: {e}")

        existing = await self.store.get(sid)

        if existing is None:
            await self.store.store(sid, identity)
        else:
            changed = {key: value for key, value in identity.items() if getattr(existing, key) != value}
            if changed:
                await self.store.update(sid, changed)
                logger.debug(f"Updated identifiers {sorted(changed)} for {sid}")

            if existing.has_research:
                metrics.sessions_initialized.inc(outcome="cached")
                log_agent_execution(
                    agent_name="SessionOrchestrator",
                    session_id=sid,
                    action="init_session",
                    duration_ms=(time.time() - start_time) * 1000,
                    context_ready=True,
                    cached=True,
                )
                return SessionInitResult(session_id=sid, context_ready=True, snapshot=existing.snapshot())

        request = EnrichmentRequest(
            session_id=sid,
            email=identity["email"],
            name=name if name is not None else (existing.name if existing else None),
            company_url=company_url if company_url is not None else (existing.company_url if existing else None),
        )
        outcome = await self._enrich(request)

        match outcome:
            case EnrichmentSuccess(snapshot=snapshot):
                result = SessionInitResult(session_id=sid, context_ready=True, snapshot=snapshot)
            case EnrichmentFailed(error=error):
                logger.warning(f"Enrichment unavailable for {sid}: {error}")
                result = SessionInitResult(session_id=sid, context_ready=False, snapshot=None)

        metrics.sessions_initialized.inc(outcome="ready" if result.context_ready else "degraded")
        log_agent_execution(
            agent_name="SessionOrchestrator",
            session_id=sid,
            action="init_session",
            duration_ms=(time.time() - start_time) * 1000,
            context_ready=result.context_ready,
            cached=False,
        )
        return result

    # ============================================
    # ENRICHMENT
    # ============================================

    async def _enrich(self, request: EnrichmentRequest) -> EnrichmentOutcome:
        """Run (or join) the session's enrichment and wait up to the configured timeout."""
        try:
            return await self.coordinator.submit(
                request.session_id,
                lambda: self._research_and_persist(request),
                timeout=self.enrichment_timeout,
            )
        except asyncio.TimeoutError:
            metrics.enrichment_failures.inc(reason="timeout")
            return EnrichmentFailed(error=f"Enrichment timed out after {self.enrichment_timeout}s")
        except CoordinatorClosedError as e:
            return EnrichmentFailed(error=str(e))

    async def _research_and_persist(self, request: EnrichmentRequest) -> EnrichmentOutcome:
        """
        The shared enrichment task: one per session at a time.
        Persists research before settling, so every joined caller and every
        later reader sees the same stored result.
        """
        # A caller that read the context before an earlier task persisted
        # research can still get here after that task settled
        current = await self.store.get(request.session_id)
        if current is not None and current.has_research:
            logger.debug(f"Research already stored for {request.session_id}, skipping provider")
            return EnrichmentSuccess(snapshot=current.snapshot())

        start_time = time.time()
        try:
            report = await self.provider.research(request)
        except EnrichmentFailure as e:
            metrics.enrichment_failures.inc(reason="provider")
            return EnrichmentFailed(error=str(e))
        except Exception as e:
            metrics.enrichment_failures.inc(reason="unexpected")
            logger.exception(f"Research provider crashed for {request.session_id}")
            return EnrichmentFailed(error=f"{type(e).__name__}: {e}")
        finally:
            metrics.enrichment_duration.observe(time.time() - start_time)

        detection = detect_role(report)
        snapshot = report.to_snapshot(role=detection.role, role_confidence=detection.confidence)

        try:
            await self.store.update(request.session_id, research_patch(snapshot))
        except StoreError as e:
            metrics.store_failures.inc(operation=e.operation)
            raise

        log_business_event(
            "enrichment_completed",
            request.session_id,
            provider=self.provider.name,
            role=detection.role,
            role_confidence=detection.confidence,
            duration_ms=round((time.time() - start_time) * 1000, 2),
        )
        return EnrichmentSuccess(snapshot=snapshot)

    def _start_background_enrichment(self, request: EnrichmentRequest) -> None:
        task = asyncio.create_task(self._enrich(request), name=f"background-enrichment:{request.session_id}")
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # ============================================
    # CONVERSATION
    # ============================================

    async def process_message(self, session_id: Optional[str], text: Optional[str]) -> MessageResult:
        """
        Apply one inbound message to a session.

        The stage read, transition and write happen under the session lock, so
        concurrent messages for the same session are applied one after another.

        Raises:
            ValidationError: If the session id or message is missing
            StoreError: If the context cannot be read or written
        """
        if not session_id or not session_id.strip():
            raise ValidationError("Missing required field: sessionId")
        if not text or not text.strip():
            raise ValidationError("Missing required field: message")

        start_time = time.time()

        async with self.locks.hold(session_id):
            context = await self.store.get(session_id)
            if context is None:
                await self.store.store(session_id, {"stage": Stage.GREETING})
                context = ConversationContext(session_id=session_id)

            result = self.engine.transition(context.stage, text)

            lead = apply_signals(context.lead_data, result.evaluated, result.signals)
            lead = apply_research(lead, context.snapshot())
            message_count = context.message_count + 1
            lead.lead_score = lead_score(lead, message_count)

            patch: Dict[str, Any] = {
                "stage": result.next_stage,
                "lead_data": lead,
                "message_count": message_count,
                "last_user_message": text[:LAST_MESSAGE_MAX_CHARS],
            }
            if lead.name and not context.name:
                patch["name"] = lead.name
            if lead.email and not context.email:
                patch["email"] = lead.email

            if result.changed:
                records = []
                from_stage = result.previous_stage
                for to_stage in result.path:
                    records.append(StageTransitionRecord(from_stage=from_stage, to_stage=to_stage, trigger=text[:100]))
                    from_stage = to_stage
                patch["stage_history"] = [*context.stage_history, *records]

            await self.store.update(session_id, patch)

        for record_from, record_to in zip([result.previous_stage, *result.path], result.path):
            metrics.stage_transitions.inc(from_stage=record_from.value, to_stage=record_to.value)
            log_business_event("stage_transition", session_id, from_stage=record_from, to_stage=record_to)

        if result.triggers.should_trigger_research and not context.has_research:
            email = lead.email or context.email
            if email:
                self._start_background_enrichment(EnrichmentRequest(
                    session_id=session_id,
                    email=email,
                    name=lead.name or context.name,
                    company_url=context.company_url,
                ))

        if result.triggers.should_send_follow_up:
            log_business_event("follow_up_requested", session_id, email=lead.email, lead_score=lead.lead_score)

        log_agent_execution(
            agent_name="SessionOrchestrator",
            session_id=session_id,
            action="process_message",
            duration_ms=(time.time() - start_time) * 1000,
            previous_stage=result.previous_stage,
            stage=result.next_stage,
        )

        return MessageResult(
            session_id=session_id,
            stage=result.next_stage,
            previous_stage=result.previous_stage,
            triggers=result.triggers,
            lead=lead,
            path=result.path,
        )

    # ============================================
    # READS
    # ============================================

    async def get_context(self, session_id: str) -> Optional[ConversationContext]:
        return await self.store.get(session_id)

    async def get_snapshot(self, session_id: str) -> Optional[ResearchSnapshot]:
        """Stored research for a session, or None when unknown or not yet researched."""
        context = await self.store.get(session_id)
        return context.snapshot() if context else None
