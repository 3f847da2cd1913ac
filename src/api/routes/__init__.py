"""
API Routes

Modular route definitions for the Lead Intelligence API.
"""
from src.api.routes.health import router as health_router
from src.api.routes.intelligence import router as intelligence_router
from src.api.routes.chat import router as chat_router
from src.api.routes.metrics import router as metrics_router

__all__ = [
    "health_router",
    "intelligence_router",
    "chat_router",
    "metrics_router",
]
