"""
Intelligence API Models

Request and response bodies for the session endpoints.
JSON uses camelCase; Python attributes stay snake_case.
"""
import datetime as dt
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.models.context import ResearchSnapshot
from src.models.lead import LeadData, Stage


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================
# REQUESTS
# ============================================

class SessionInitRequest(CamelModel):
    """Body of POST /api/intelligence/session-init. Every field is optional at parse time."""
    session_id: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    company_url: Optional[str] = None


class MessageRequest(CamelModel):
    session_id: Optional[str] = None
    message: Optional[str] = None


class CapabilityRequest(CamelModel):
    session_id: str = Field(..., min_length=1)
    capability: str = Field(..., min_length=1, max_length=100)
    metadata: Optional[Dict[str, Any]] = None


# ============================================
# RESPONSES
# ============================================

class SessionInitResponse(CamelModel):
    session_id: str
    context_ready: bool
    snapshot: Optional[ResearchSnapshot] = None


class TriggersResponse(CamelModel):
    should_trigger_research: bool = False
    should_send_follow_up: bool = False


class MessageResponse(CamelModel):
    session_id: str
    stage: Stage
    previous_stage: Stage
    path: List[Stage] = Field(default_factory=list)
    triggers: TriggersResponse
    lead: LeadData


class CapabilityUsageResponse(CamelModel):
    capability: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    used_at: dt.datetime


class ContextResponse(CamelModel):
    session_id: str
    stage: Stage
    message_count: int
    snapshot: Optional[ResearchSnapshot] = None
    lead: LeadData
    capabilities: List[str] = Field(default_factory=list)
    capability_usage: List[CapabilityUsageResponse] = Field(default_factory=list)


class CapabilityResponse(CamelModel):
    session_id: str
    recorded: bool
    capabilities: List[str] = Field(default_factory=list)
