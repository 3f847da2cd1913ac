"""
Enrichment Providers
Background research on a lead's company and person.

The orchestrator only sees the EnrichmentProvider interface: one awaitable
call that returns a ResearchReport or raises EnrichmentFailure.
"""
from abc import ABC, abstractmethod
from typing import Optional

from loguru import logger
from pydantic_ai import Agent

from src.config import get_settings
from src.errors import EnrichmentFailure
from src.intelligence.extraction import analyze_email_domain
from src.models.enrichment import CompanyProfile, EnrichmentRequest, PersonProfile, ResearchReport
from src.utils.llm_client import run_agent_with_circuit_breaker


class EnrichmentProvider(ABC):
    """Looks up company and person context for one lead."""

    name: str = "provider"

    @abstractmethod
    async def research(self, request: EnrichmentRequest) -> ResearchReport:
        """
        Research the lead behind a request.

        Raises:
            EnrichmentFailure: When no usable research could be produced
        """
        pass


def domain_report(request: EnrichmentRequest) -> ResearchReport:
    """
    Research derived from the email domain alone.

    Raises:
        EnrichmentFailure: If the email has no domain part
    """
    local_part, _, domain = request.email.strip().lower().partition("@")
    if not local_part or "." not in domain:
        raise EnrichmentFailure(f"Cannot research malformed email: {request.email!r}")

    analysis = analyze_email_domain(request.email)
    company_name = domain.split(".")[0].capitalize()

    company = CompanyProfile(
        name=company_name,
        domain=domain,
        website=request.company_url or f"https://{domain}",
        summary=f"Company associated with {domain}",
        industry="Technology",
        size=analysis.company_size.value,
    )
    person = PersonProfile(
        full_name=request.name or local_part,
        company=company_name,
    )
    return ResearchReport(company=company, person=person, confidence=0.5)


class DomainResearchProvider(EnrichmentProvider):
    """Deterministic provider for development and tests. Never calls out."""

    name = "domain"

    async def research(self, request: EnrichmentRequest) -> ResearchReport:
        return domain_report(request)


class AgentResearchProvider(EnrichmentProvider):
    """
    Model-backed research through a PydanticAI agent.
    Degrades to domain_report while the research circuit is open.
    """

    name = "agent"

    def __init__(self, model_override: str | None = None, agent: Optional[Agent] = None):
        model_name = model_override or get_settings().research_model

        self.agent: Agent[None, ResearchReport] = agent or Agent(
            model_name,
            output_type=ResearchReport,
            instructions=(
                "You research B2B sales leads. Given an email address, an optional name "
                "and an optional company website, describe the company (name, domain, "
                "website, one-sentence summary, industry, size) and the person (full name, "
                "company, role, seniority). Only state what the inputs support; leave "
                "fields empty rather than guessing. Set confidence between 0 and 1."
            )
        )
        logger.info(f"AgentResearchProvider initialized with model: {model_name}")

    async def research(self, request: EnrichmentRequest) -> ResearchReport:
        prompt = f"""
        EMAIL: {request.email}
        NAME: {request.name or "unknown"}
        COMPANY WEBSITE: {request.company_url or "unknown"}
        """

        # Model failures are absorbed by the circuit; a malformed email still raises EnrichmentFailure
        return await run_agent_with_circuit_breaker(
            self.agent,
            prompt,
            fallback_factory=lambda: domain_report(request),
            circuit_name="research",
        )


def build_enrichment_provider(kind: str | None = None) -> EnrichmentProvider:
    """Provider selected by the `research_provider` setting."""
    kind = kind or get_settings().research_provider
    if kind == "agent":
        return AgentResearchProvider()
    return DomainResearchProvider()
