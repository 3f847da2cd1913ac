from dataclasses import dataclass
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field

from src.models.context import ResearchSnapshot


class EnrichmentRequest(BaseModel):
    """What the research provider is asked to look up."""
    session_id: str
    email: str
    name: Optional[str] = None
    company_url: Optional[str] = None


class CompanyProfile(BaseModel):
    name: str
    domain: str
    website: Optional[str] = None
    summary: Optional[str] = None
    industry: Optional[str] = None
    size: Optional[str] = None


class PersonProfile(BaseModel):
    full_name: str = Field(..., alias="fullName")
    company: Optional[str] = None
    role: Optional[str] = None
    seniority: Optional[str] = None

    model_config = {"populate_by_name": True}


class ResearchReport(BaseModel):
    """The formal output contract for a research provider."""
    company: CompanyProfile
    person: PersonProfile
    role: Optional[str] = None
    confidence: float = Field(0.5, ge=0, le=1.0)

    def to_snapshot(self, role: Optional[str], role_confidence: Optional[float]) -> ResearchSnapshot:
        return ResearchSnapshot(
            company=self.company.model_dump(exclude_none=True),
            person=self.person.model_dump(by_alias=True, exclude_none=True),
            role=role,
            role_confidence=role_confidence,
        )


@dataclass(frozen=True)
class EnrichmentSuccess:
    snapshot: ResearchSnapshot


@dataclass(frozen=True)
class EnrichmentFailed:
    error: str


EnrichmentOutcome = EnrichmentSuccess | EnrichmentFailed


def research_patch(snapshot: ResearchSnapshot) -> Dict[str, Any]:
    """
    Context patch for a research snapshot.
    Null values are dropped so an update can never clear stored research.
    """
    patch = {
        "company_context": snapshot.company,
        "person_context": snapshot.person,
        "role": snapshot.role,
        "role_confidence": snapshot.role_confidence,
    }
    return {key: value for key, value in patch.items() if value is not None}
