"""
Capability Tracking
Side-channel record of which AI capabilities a session has been shown.

Best-effort throughout: a failure here is logged and never reaches the
conversation path.
"""
from typing import Any, Dict, List, Optional

from loguru import logger

from src.core.session_locks import SessionLockRegistry
from src.errors import StoreError
from src.models.context import CapabilityUsage
from src.repositories.context_store import ContextStore
from src.utils.metrics import metrics
from src.utils.observability import log_business_event

# Newest entries kept in a session's usage log
MAX_USAGE_ENTRIES = 100


class CapabilityTracker:
    """
    Keeps two views of capability use per session:
    - capabilities_shown: distinct names, first use only
    - capability_usage: every use with its metadata, newest last
    """

    def __init__(self, store: ContextStore, locks: SessionLockRegistry):
        self.store = store
        self.locks = locks

    async def record(
        self,
        session_id: str,
        capability: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Log a use of a capability against the session.

        Returns:
            True if the capability was newly added to the session
        """
        usage = CapabilityUsage(capability=capability, metadata=metadata or {})
        try:
            async with self.locks.hold(session_id):
                context = await self.store.get(session_id)
                if context is None:
                    logger.debug(f"Capability {capability} ignored, no context for session {session_id}")
                    return False

                first_use = capability not in context.capabilities_shown
                patch: Dict[str, Any] = {
                    "capability_usage": [*context.capability_usage, usage][-MAX_USAGE_ENTRIES:],
                }
                if first_use:
                    patch["capabilities_shown"] = [*context.capabilities_shown, capability]

                await self.store.update(session_id, patch)
        except StoreError as e:
            metrics.store_failures.inc(operation=e.operation)
            logger.error(f"❌ Failed to record capability usage: {capability} ({session_id}): {e}")
            return False

        if first_use:
            metrics.capabilities_recorded.inc(capability=capability)
            log_business_event("capability_shown", session_id, capability=capability, metadata=usage.metadata)
        return first_use

    async def get_capabilities(self, session_id: str) -> List[str]:
        try:
            context = await self.store.get(session_id)
        except StoreError as e:
            logger.error(f"❌ Failed to get capabilities for session {session_id}: {e}")
            return []
        return context.capabilities_shown if context else []
