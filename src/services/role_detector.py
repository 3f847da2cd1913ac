"""
Role Detection
Derives a normalized job role and a confidence from research results.
"""
import re
from dataclasses import dataclass
from typing import Optional

from src.models.enrichment import ResearchReport

_ROLE_PATTERN = re.compile(
    r"\b(ceo|cto|cfo|co-founder|founder|director|manager|lead|head|vp|vice president)\b",
    re.IGNORECASE,
)

_ROLE_NAMES = {
    "ceo": "CEO",
    "chief executive officer": "CEO",
    "cto": "CTO",
    "chief technology officer": "CTO",
    "cfo": "CFO",
    "chief financial officer": "CFO",
    "founder": "Founder",
    "co-founder": "Co-Founder",
    "director": "Director",
    "manager": "Manager",
    "lead": "Lead",
    "head": "Head",
    "vp": "VP",
    "vice president": "VP",
}


@dataclass(frozen=True)
class RoleDetection:
    role: str
    confidence: float


def normalize_role(raw: str) -> str:
    role = raw.strip()
    return _ROLE_NAMES.get(role.lower(), role[:1].upper() + role[1:])


def detect_role_from_text(text: str) -> RoleDetection:
    match = _ROLE_PATTERN.search(text)
    if match:
        return RoleDetection(role=normalize_role(match.group(1)), confidence=0.6)
    return RoleDetection(role="Unknown", confidence=0.2)


def detect_role(report: Optional[ResearchReport]) -> RoleDetection:
    """
    Pick the best role evidence in priority order:
    explicit role (0.9), person role (0.8), company summary text (0.6/0.2),
    otherwise a generic "Professional" (0.3).
    """
    if report is None:
        return RoleDetection(role="Professional", confidence=0.3)

    if report.role:
        return RoleDetection(role=normalize_role(report.role), confidence=0.9)

    if report.person.role:
        return RoleDetection(role=normalize_role(report.person.role), confidence=0.8)

    if report.company.summary:
        return detect_role_from_text(report.company.summary)

    return RoleDetection(role="Professional", confidence=0.3)
