"""
In-Flight Request Coordinator

Deduplicates concurrent work by key: every caller that asks for the same
key while a task is pending awaits that one task instead of starting
another. Entries are removed as soon as the task settles, so the next
request after settlement starts fresh work.
"""
import asyncio
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar

from src.utils.metrics import metrics
from src.utils.observability import logger

T = TypeVar("T")


class CoordinatorClosedError(RuntimeError):
    """Raised when work is submitted after shutdown()."""
    pass


class InFlightCoordinator(Generic[T]):
    """
    Process-local map of key -> pending asyncio.Task.

    Invariants:
    - At most one live entry per key.
    - The factory runs once per entry, however many callers join it.
    - The entry is removed on success, failure or cancellation.
    - A caller's timeout abandons only that caller's wait.

    Usage:
        coordinator = InFlightCoordinator(name="enrichment")
        await coordinator.start()
        result = await coordinator.submit(session_id, lambda: enrich(session_id), timeout=30)
        await coordinator.shutdown()
    """

    def __init__(self, name: str = "enrichment"):
        self.name = name
        self._entries: Dict[str, asyncio.Task] = {}
        self._lock = asyncio.Lock()
        self._accepting = True
        self.invocations = 0
        self.joins = 0

    async def start(self) -> None:
        self._accepting = True
        logger.info(f"Coordinator '{self.name}' started")

    async def shutdown(self) -> None:
        """Stop accepting work, cancel pending tasks and clear the map."""
        async with self._lock:
            self._accepting = False
            tasks = list(self._entries.values())

        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._entries.clear()
        metrics.inflight_enrichments.set(0)
        logger.info(f"Coordinator '{self.name}' stopped ({len(tasks)} pending tasks cancelled)")

    def is_pending(self, key: str) -> bool:
        return key in self._entries

    @property
    def in_flight(self) -> int:
        return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "in_flight": self.in_flight,
            "invocations": self.invocations,
            "joins": self.joins,
            "accepting": self._accepting,
        }

    async def submit(
        self,
        key: str,
        factory: Callable[[], Awaitable[T]],
        timeout: Optional[float] = None,
    ) -> T:
        """
        Run factory() for key, or join the task already running for key.

        Args:
            key: Deduplication key (the session id)
            factory: Zero-arg coroutine function producing the work
            timeout: Seconds this caller is willing to wait (None waits forever)

        Returns:
            The task's result, shared by every joined caller

        Raises:
            asyncio.TimeoutError: This caller's wait expired (the task keeps running)
            CoordinatorClosedError: After shutdown()
            Exception: Whatever the factory raised, delivered to every joined caller
        """
        async with self._lock:
            if not self._accepting:
                raise CoordinatorClosedError(f"Coordinator '{self.name}' is shut down")

            # Check-then-insert with no suspension point in between
            task = self._entries.get(key)
            if task is None:
                task = asyncio.create_task(self._run(key, factory), name=f"{self.name}:{key}")
                task.add_done_callback(self._observe)
                self._entries[key] = task
                self.invocations += 1
                metrics.enrichment_invocations.inc()
                metrics.inflight_enrichments.set(len(self._entries))
                logger.debug(f"Coordinator '{self.name}' started task for {key}")
            else:
                self.joins += 1
                metrics.enrichment_joins.inc()
                logger.debug(f"Coordinator '{self.name}' joined pending task for {key}")

        if timeout is None:
            return await asyncio.shield(task)
        return await asyncio.wait_for(asyncio.shield(task), timeout)

    async def _run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        try:
            return await factory()
        finally:
            # Synchronous removal: nothing can observe the settled task under this key
            if self._entries.get(key) is asyncio.current_task():
                del self._entries[key]
            metrics.inflight_enrichments.set(len(self._entries))

    def _observe(self, task: asyncio.Task) -> None:
        """Retrieve the outcome so abandoned failures are logged instead of lost."""
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Coordinator '{self.name}' task {task.get_name()} failed: {error}")
