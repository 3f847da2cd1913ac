"""
Per-session critical sections.

Read-modify-write sequences on one session's context (stage transitions,
capability merges) run one at a time; different sessions never contend.
"""
import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict


@dataclass
class _LockEntry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    holders: int = 0


class SessionLockRegistry:
    """
    asyncio.Lock per session id, reference counted so idle sessions
    leave nothing behind.
    """

    def __init__(self):
        self._entries: Dict[str, _LockEntry] = {}

    @asynccontextmanager
    async def hold(self, session_id: str) -> AsyncIterator[None]:
        entry = self._entries.get(session_id)
        if entry is None:
            entry = self._entries[session_id] = _LockEntry()
        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0:
                del self._entries[session_id]

    def __len__(self) -> int:
        return len(self._entries)
