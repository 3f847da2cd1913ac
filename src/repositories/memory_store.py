"""
In-Memory Context Store

Dictionary-backed store for development, tests and single-instance runs.
Data is lost on restart.
"""
import asyncio
from typing import Dict, Optional

from src.models.base import utc_now
from src.models.context import ConversationContext
from src.repositories.context_store import ContextPatch, ContextStore, normalize_patch
from src.utils.observability import logger


class InMemoryContextStore(ContextStore):
    """
    asyncio.Lock-guarded dict of ConversationContext.
    Reads return deep copies so callers never mutate stored state.
    """

    def __init__(self):
        self._records: Dict[str, ConversationContext] = {}
        self._lock = asyncio.Lock()

    def _merge(self, existing: ConversationContext, patch: ContextPatch) -> ConversationContext:
        data = existing.model_dump()
        data.update(patch)
        data["updated_at"] = utc_now()
        return ConversationContext.model_validate(data)

    async def get(self, session_id: str) -> Optional[ConversationContext]:
        async with self._lock:
            record = self._records.get(session_id)
            return record.model_copy(deep=True) if record else None

    async def store(self, session_id: str, partial: ContextPatch) -> None:
        patch = normalize_patch(partial)
        async with self._lock:
            existing = self._records.get(session_id)
            if existing is None:
                existing = ConversationContext(session_id=session_id)
                logger.debug(f"Created context for session {session_id}")
            self._records[session_id] = self._merge(existing, patch)

    async def update(self, session_id: str, patch: ContextPatch) -> None:
        normalized = normalize_patch(patch)
        async with self._lock:
            existing = self._records.get(session_id)
            if existing is None:
                logger.debug(f"Update skipped, no context for session {session_id}")
                return
            self._records[session_id] = self._merge(existing, normalized)

    async def ensure(self, session_id: str, defaults: ContextPatch) -> bool:
        patch = normalize_patch(defaults)
        async with self._lock:
            if session_id in self._records:
                return False
            self._records[session_id] = self._merge(ConversationContext(session_id=session_id), patch)
            return True

    async def delete(self, session_id: str) -> bool:
        async with self._lock:
            return self._records.pop(session_id, None) is not None

    def __len__(self) -> int:
        return len(self._records)
