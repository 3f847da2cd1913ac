"""
Metrics Endpoints

Prometheus-compatible metrics and coordinator statistics for observability.
"""
from fastapi import APIRouter, Depends
from fastapi.responses import Response

from src.api.dependencies import get_coordinator
from src.core.inflight import InFlightCoordinator
from src.utils.circuit_breaker import all_circuits
from src.utils.metrics import metrics

router = APIRouter(tags=["Metrics"])


@router.get("/metrics")
async def prometheus_metrics(coordinator: InFlightCoordinator = Depends(get_coordinator)):
    """
    Prometheus metrics endpoint.

    Includes:
    - Request counts and latencies
    - Session inits by outcome
    - Enrichment invocations, joins, failures and in-flight count
    - Stage transitions
    - Stream frames by type
    - Context store failures

    Content-Type: text/plain; version=0.0.4; charset=utf-8
    """
    metrics.inflight_enrichments.set(coordinator.in_flight)

    return Response(
        content=metrics.export(),
        media_type="text/plain; version=0.0.4; charset=utf-8"
    )


@router.get("/metrics/coordinator")
async def coordinator_metrics(coordinator: InFlightCoordinator = Depends(get_coordinator)):
    """
    In-flight coordinator statistics and model circuit states.

    Returns:
        {status, coordinator: {in_flight, invocations, joins, ...}, circuits: {...}}
    """
    return {
        "status": "ok",
        "coordinator": coordinator.stats(),
        "circuits": {name: circuit.get_status() for name, circuit in all_circuits().items()},
    }
