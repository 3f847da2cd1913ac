import pytest

from src.core.inflight import InFlightCoordinator
from src.core.session_locks import SessionLockRegistry
from src.core.session_orchestrator import SessionOrchestrator
from src.repositories.memory_store import InMemoryContextStore
from src.services.enrichment_provider import DomainResearchProvider
from src.utils.circuit_breaker import reset_circuits
from src.utils.metrics import metrics


@pytest.fixture(autouse=True)
def clean_global_state():
    """Metrics and circuits are process-wide singletons; isolate every test."""
    metrics.reset()
    reset_circuits()
    yield
    reset_circuits()


@pytest.fixture
def store():
    """A fresh in-memory context store."""
    return InMemoryContextStore()


@pytest.fixture
def locks():
    return SessionLockRegistry()


@pytest.fixture
async def orchestrator(store, locks):
    """Orchestrator wired to the in-memory store and the domain research provider."""
    orchestrator = SessionOrchestrator(
        store=store,
        provider=DomainResearchProvider(),
        coordinator=InFlightCoordinator(name="test-enrichment"),
        locks=locks,
        enrichment_timeout=5.0,
    )
    await orchestrator.start()
    yield orchestrator
    await orchestrator.shutdown()
