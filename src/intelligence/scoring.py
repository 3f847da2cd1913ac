"""
Lead profile folding and scoring.
Pure functions: take a LeadData, return an updated copy.
"""
from typing import Iterable, Optional

from src.intelligence.extraction import (
    IndustrySignals,
    MessageSignals,
    ai_readiness_score,
    analyze_email_domain,
)
from src.models.context import ResearchSnapshot
from src.models.lead import CompanySize, LeadData, Stage


# Adoption indicators per coarse industry label
INDUSTRY_SIGNALS = {
    "technology": IndustrySignals(tech_adoption=0.9, digital_transformation=0.8, process_automation=0.7),
    "software": IndustrySignals(tech_adoption=0.9, digital_transformation=0.8, process_automation=0.7),
    "finance": IndustrySignals(tech_adoption=0.7, digital_transformation=0.7, process_automation=0.6),
    "enterprise": IndustrySignals(tech_adoption=0.6, digital_transformation=0.6, process_automation=0.5),
    "business": IndustrySignals(tech_adoption=0.5, digital_transformation=0.5, process_automation=0.4),
    "personal": IndustrySignals(tech_adoption=0.3, digital_transformation=0.2, process_automation=0.1),
}


def industry_signals(industry: Optional[str]) -> IndustrySignals:
    if not industry:
        return IndustrySignals()
    return INDUSTRY_SIGNALS.get(industry.strip().lower(), IndustrySignals())


def apply_signals(lead: LeadData, stages: Iterable[Stage], signals: MessageSignals) -> LeadData:
    """
    Fold one message's extraction results into the lead.

    Only the rules for the stages the message was evaluated in contribute:
    the name in NAME_COLLECTION, the email and its domain analysis in
    EMAIL_CAPTURE, pain points in PROBLEM_DISCOVERY.
    """
    updated = lead.model_copy(deep=True)
    evaluated = set(stages)

    if Stage.NAME_COLLECTION in evaluated and signals.name:
        updated.name = signals.name

    if Stage.EMAIL_CAPTURE in evaluated and signals.email:
        analysis = analyze_email_domain(signals.email)
        updated.email = signals.email
        updated.email_domain = analysis.domain
        updated.company_size = analysis.company_size
        updated.industry = updated.industry or analysis.industry
        updated.decision_maker = analysis.decision_maker
        updated.ai_readiness_score = analysis.ai_readiness
        if analysis.business_email and not updated.company:
            updated.company = analysis.company

    if Stage.PROBLEM_DISCOVERY in evaluated and signals.pain_points:
        updated.add_pain_points(signals.pain_points)

    return updated


def apply_research(lead: LeadData, snapshot: Optional[ResearchSnapshot]) -> LeadData:
    """Fill company and industry from researched context without overwriting conversation data."""
    if snapshot is None or not snapshot.company:
        return lead

    updated = lead.model_copy(deep=True)
    company = snapshot.company
    if company.get("name") and not updated.company:
        updated.company = company["name"]

    industry = company.get("industry")
    if industry and industry.lower() != (updated.industry or "").lower():
        updated.industry = industry
        updated.ai_readiness_score = ai_readiness_score(industry_signals(industry))

    return updated


def lead_score(lead: LeadData, message_count: int) -> int:
    """
    0..100 lead score:
    readiness + interaction frequency (capped at 25) + decision maker bonus
    + agility bonus for startups/small companies + 5 per pain point.
    """
    score = lead.ai_readiness_score
    score += min(message_count * 5, 25)
    if lead.decision_maker:
        score += 20
    if lead.company_size == CompanySize.STARTUP:
        score += 15
    elif lead.company_size == CompanySize.SMALL:
        score += 10
    score += len(lead.pain_points) * 5
    return max(0, min(100, score))
