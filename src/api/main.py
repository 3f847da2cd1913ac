"""
FastAPI Application

Main entry point for the Lead Intelligence API.
Handles application lifecycle, error mapping and router mounting.
"""
import time
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from src.api.routes import chat_router, health_router, intelligence_router, metrics_router
from src.config import settings
from src.core.inflight import InFlightCoordinator
from src.core.session_locks import SessionLockRegistry
from src.core.session_orchestrator import SessionOrchestrator
from src.errors import StoreError, ValidationError
from src.repositories import ContextStore, InMemoryContextStore, MongoContextStore, db_manager
from src.services.capability_tracker import CapabilityTracker
from src.services.enrichment_provider import build_enrichment_provider
from src.streaming.providers import build_token_generator
from src.utils.metrics import metrics
from src.utils.observability import configure_logging


async def build_context_store() -> ContextStore:
    """Context store selected by the `context_store_backend` setting."""
    if settings.context_store_backend == "mongodb":
        await db_manager.connect()
        store: ContextStore = MongoContextStore(db_manager.database)
    else:
        store = InMemoryContextStore()

    await store.connect()
    return store


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle: startup and shutdown events.

    Startup:
    - Build the context store (connects to MongoDB when configured)
    - Create the in-flight coordinator and session orchestrator
    - Create the capability tracker and chat token generator

    Shutdown:
    - Cancel pending enrichment and wait for background work
    - Disconnect from MongoDB
    """
    configure_logging()
    logger.info("Starting Lead Intelligence API server...")

    store = await build_context_store()
    locks = SessionLockRegistry()
    coordinator = InFlightCoordinator(name="enrichment")

    orchestrator = SessionOrchestrator(
        store=store,
        provider=build_enrichment_provider(),
        coordinator=coordinator,
        locks=locks,
    )
    await orchestrator.start()

    # Store in app state for access in routes
    app.state.store = store
    app.state.coordinator = coordinator
    app.state.orchestrator = orchestrator
    app.state.capability_tracker = CapabilityTracker(store, locks)
    app.state.token_generator = build_token_generator()

    logger.info(
        f"API server ready (store={settings.context_store_backend}, "
        f"research={settings.research_provider}, chat={settings.chat_provider})"
    )

    yield

    # Shutdown
    logger.info("Shutting down API server...")
    await orchestrator.shutdown()
    await store.close()
    if settings.context_store_backend == "mongodb":
        await db_manager.disconnect()
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Lead Intelligence API",
    description="Session-scoped lead enrichment, conversation stages and streaming chat",
    version="0.4.0",
    lifespan=lifespan
)


@app.middleware("http")
async def record_request_metrics(request: Request, call_next):
    start_time = time.perf_counter()
    response = await call_next(request)

    # Route template, so /context/{session_id} is one series
    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)
    metrics.request_duration.observe(time.perf_counter() - start_time, endpoint=endpoint)
    metrics.requests_total.inc(endpoint=endpoint, status=str(response.status_code))
    return response


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {"loc": (), "msg": "Invalid request"}
    location = ".".join(str(part) for part in first["loc"] if part != "body")
    detail = f"Invalid field {location}: {first['msg']}" if location else first["msg"]
    return JSONResponse(status_code=400, content={"error": detail})


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    metrics.store_failures.inc(operation=exc.operation)
    logger.error(f"❌ Context store failure on {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# Mount routers
app.include_router(health_router)
app.include_router(intelligence_router)
app.include_router(chat_router)
app.include_router(metrics_router)
