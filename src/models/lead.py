from enum import StrEnum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class Stage(StrEnum):
    """Conversation stages, in progression order. CALL_TO_ACTION is absorbing."""
    GREETING = "greeting"
    NAME_COLLECTION = "name_collection"
    EMAIL_CAPTURE = "email_capture"
    BACKGROUND_RESEARCH = "background_research"
    PROBLEM_DISCOVERY = "problem_discovery"
    SOLUTION_PRESENTATION = "solution_presentation"
    CALL_TO_ACTION = "call_to_action"


STAGE_ORDER: List[Stage] = list(Stage)


class CompanySize(StrEnum):
    STARTUP = "startup"
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    ENTERPRISE = "enterprise"


class LeadData(BaseModel):
    """
    The lead profile derived from the conversation.
    One-to-one with a ConversationContext via its session.
    """
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    email: Optional[str] = None
    company: Optional[str] = None
    email_domain: Optional[str] = Field(None, alias="emailDomain")
    company_size: Optional[CompanySize] = Field(None, alias="companySize")
    industry: Optional[str] = None

    # Canonical tags, deduplicated in first-seen order
    pain_points: List[str] = Field(default_factory=list, alias="painPoints")
    decision_maker: bool = Field(False, alias="decisionMaker")
    ai_readiness_score: int = Field(50, ge=0, le=100, alias="aiReadinessScore")
    lead_score: int = Field(0, ge=0, le=100, alias="leadScore")

    def add_pain_points(self, tags: List[str]) -> None:
        """Merge new pain-point tags, keeping existing order and dropping duplicates."""
        for tag in tags:
            if tag not in self.pain_points:
                self.pain_points.append(tag)
