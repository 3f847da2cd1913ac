"""Services package."""
from src.services.capability_tracker import CapabilityTracker
from src.services.enrichment_provider import (
    EnrichmentProvider,
    DomainResearchProvider,
    AgentResearchProvider,
    build_enrichment_provider,
    domain_report,
)
from src.services.role_detector import RoleDetection, detect_role, normalize_role

__all__ = [
    "CapabilityTracker",
    "EnrichmentProvider",
    "DomainResearchProvider",
    "AgentResearchProvider",
    "build_enrichment_provider",
    "domain_report",
    "RoleDetection",
    "detect_role",
    "normalize_role",
]
