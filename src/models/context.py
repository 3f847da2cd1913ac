import datetime as dt
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.models.base import MongoBaseModel, utc_now
from src.models.lead import LeadData, Stage

# Fields written by enrichment. Once non-null they are never nulled out again.
RESEARCH_FIELDS = ("company_context", "person_context", "role", "role_confidence")

# Fields the caller identifies itself with at session init.
IDENTITY_FIELDS = ("email", "name", "company_url")


class StageTransitionRecord(BaseModel):
    """One applied stage change, kept on the context for audit."""
    from_stage: Stage
    to_stage: Stage
    trigger: str = Field(..., max_length=100, description="Truncated message that caused the move.")
    timestamp: dt.datetime = Field(default_factory=utc_now)


class CapabilityUsage(BaseModel):
    """One recorded use of a capability, with whatever the caller attached."""
    capability: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    used_at: dt.datetime = Field(default_factory=utc_now)


class ResearchSnapshot(BaseModel):
    """The externally visible subset of a session's researched context."""
    model_config = ConfigDict(populate_by_name=True)

    company: Optional[Dict[str, Any]] = None
    person: Optional[Dict[str, Any]] = None
    role: Optional[str] = None
    role_confidence: Optional[float] = Field(None, alias="roleConfidence")


class ConversationContext(MongoBaseModel):
    """
    The per-session record. Single source of truth for identity,
    research, stage and lead data.
    """
    session_id: str = Field(..., min_length=1)

    # Identity
    email: Optional[str] = None
    name: Optional[str] = None
    company_url: Optional[str] = None

    # Research (opaque payloads from the enrichment provider)
    company_context: Optional[Dict[str, Any]] = None
    person_context: Optional[Dict[str, Any]] = None
    role: Optional[str] = None
    role_confidence: Optional[float] = Field(None, ge=0, le=1.0)

    # Conversation state
    last_user_message: Optional[str] = None
    capabilities_shown: List[str] = Field(default_factory=list)
    capability_usage: List[CapabilityUsage] = Field(default_factory=list)
    stage: Stage = Stage.GREETING
    lead_data: LeadData = Field(default_factory=LeadData)
    message_count: int = 0
    stage_history: List[StageTransitionRecord] = Field(default_factory=list)

    @field_validator("capabilities_shown")
    @classmethod
    def dedupe_capabilities(cls, value: List[str]) -> List[str]:
        # Stored as a list, behaves as a set
        return sorted(set(value))

    @property
    def has_research(self) -> bool:
        return any(getattr(self, name) is not None for name in RESEARCH_FIELDS)

    def snapshot(self) -> Optional[ResearchSnapshot]:
        """Research snapshot, or None while no research exists."""
        if not self.has_research:
            return None
        return ResearchSnapshot(
            company=self.company_context,
            person=self.person_context,
            role=self.role,
            role_confidence=self.role_confidence,
        )
