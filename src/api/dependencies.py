"""
FastAPI Dependencies

Accessors for the application-scoped services created in the lifespan.
"""
from fastapi import Request

from src.core.inflight import InFlightCoordinator
from src.core.session_orchestrator import SessionOrchestrator
from src.services.capability_tracker import CapabilityTracker
from src.streaming.providers import TokenGenerator


def get_orchestrator(request: Request) -> SessionOrchestrator:
    return request.app.state.orchestrator


def get_coordinator(request: Request) -> InFlightCoordinator:
    return request.app.state.coordinator


def get_capability_tracker(request: Request) -> CapabilityTracker:
    return request.app.state.capability_tracker


def get_token_generator(request: Request) -> TokenGenerator:
    return request.app.state.token_generator
