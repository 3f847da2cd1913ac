"""
Extraction Engine
Stateless, deterministic signal extraction from raw message text.

Everything here is total: any string in, a well-formed value out.
The stage engine only talks to the ExtractionEngine protocol, so a
model-based recognizer can replace the regex one without touching it.
"""
import re
from dataclasses import dataclass, field
from typing import List, Optional, Protocol

from src.models.lead import CompanySize


# ============================================
# NAME
# ============================================

# First word in any case; later words must be capitalized, so the capture
# stops at "and", "from", punctuation and the rest of the sentence
_NAME_WORDS = r"([a-zA-Z][a-zA-Z'-]*(?: [A-Z][a-zA-Z'-]*){0,2})"
# Same, but the first word must be capitalized too
_CAPITALIZED_NAME_WORDS = r"([A-Z][a-zA-Z'-]*(?: [A-Z][a-zA-Z'-]*){0,2})"

_NAME_PATTERNS = [
    re.compile(rf"(?i:\bmy name is)\s+{_NAME_WORDS}\b"),
    re.compile(rf"(?i:\bcall me)\s+{_NAME_WORDS}\b"),
    re.compile(rf"(?i:\bname:)\s*{_NAME_WORDS}\b"),
    re.compile(rf"(?i:\bi'm)\s+{_CAPITALIZED_NAME_WORDS}\b"),
    re.compile(rf"(?i:\bi am)\s+{_CAPITALIZED_NAME_WORDS}\b"),
    re.compile(rf"(?i:\bthis is)\s+{_CAPITALIZED_NAME_WORDS}\b"),
    re.compile(r"\b([A-Z][a-z]+(?: [A-Z][a-z]+){1,2})\b"),
]

# A whole message of one or two words ("Sarah", "jane doe")
_BARE_NAME_PATTERN = re.compile(r"^([a-zA-Z][a-zA-Z'-]*(?: [a-zA-Z][a-zA-Z'-]*)?)[.!]?$")

_SPEAKING_PATTERN = re.compile(r"^([a-z]+(?:\.[a-z]+)?)\s+(?:here|speaking|talking)\b", re.IGNORECASE)

# Words that mean the match is not a name ("I'm looking for...", bare "Hello")
_NOT_A_NAME = {
    "hello", "hi", "hey", "yes", "no", "ok", "okay", "sure", "thanks", "thank",
    "looking", "interested", "not", "just", "here", "fine", "good", "great",
    "a", "an", "the", "from", "with", "in", "at", "trying", "working", "sounds",
    "and", "or", "but", "me", "you", "we", "it", "my", "more", "please", "nope",
    "maybe", "nothing", "tell", "show", "help", "later", "now", "there",
}

# A bare message opening with one of these is a question or request
_QUESTION_WORDS = {
    "what", "why", "how", "who", "where", "when", "which", "can", "could",
    "would", "should", "do", "does", "did", "is", "are", "will",
}


def _valid_name(candidate: str) -> bool:
    words = candidate.split()
    if not words or words[0].lower() in _NOT_A_NAME | _QUESTION_WORDS:
        return False
    return 2 <= len(candidate) <= 50 and not any(ch.isdigit() for ch in candidate)


def _valid_bare_name(candidate: str) -> bool:
    words = [word.lower() for word in candidate.split()]
    if any(word in _NOT_A_NAME for word in words):
        return False
    return _valid_name(candidate)


def extract_name(text: str) -> Optional[str]:
    """Return the first plausible personal name in the text, or None."""
    stripped = text.strip()
    for pattern in _NAME_PATTERNS:
        match = pattern.search(stripped)
        if match:
            name = match.group(1).strip()
            if _valid_name(name):
                return name

    match = _BARE_NAME_PATTERN.match(stripped)
    if match and _valid_bare_name(match.group(1)):
        return match.group(1)

    match = _SPEAKING_PATTERN.search(stripped)
    if match:
        return " ".join(part.capitalize() for part in match.group(1).split("."))

    return None


# ============================================
# EMAIL
# ============================================

_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

PERSONAL_EMAIL_DOMAINS = frozenset({
    "gmail.com", "yahoo.com", "hotmail.com", "outlook.com",
    "aol.com", "icloud.com", "mail.com", "protonmail.com",
})


def extract_email(text: str) -> Optional[str]:
    """First email address in the text, or None."""
    match = _EMAIL_PATTERN.search(text)
    return match.group(0) if match else None


def is_business_email(email: str) -> bool:
    _, _, domain = email.partition("@")
    return bool(domain) and domain.lower() not in PERSONAL_EMAIL_DOMAINS


# ============================================
# PAIN POINTS
# ============================================

# Canonical tag -> patterns. Order here is the order tags are reported in.
PAIN_POINT_LEXICON: dict[str, List[str]] = {
    "manual": [r"\bmanual(?:ly)?\b", r"\bby hand\b"],
    "time-consuming": [
        r"\btime[- ]consuming\b",
        r"\btakes? (?:too long|forever|too much time)\b",
        r"\b(?:too much|a lot of|excessive) time\b",
    ],
    "error-prone": [r"\berror[- ]prone\b", r"\berrors?\b", r"\bmistakes?\b"],
    "repetitive": [r"\brepetitive\b", r"\b(?:repeat|do) the same\b", r"\bredundant\b"],
    "slow": [r"\bslow\b"],
    "inefficient": [r"\binefficien(?:t|cy|cies)\b", r"\bnot (?:efficient|effective|productive)\b"],
    "resource-waste": [r"\bwast(?:e|ing) (?:of )?(?:time|resources|money)\b", r"\b(?:expensive|costly)\b"],
    "data-silos": [r"\b(?:data|information) (?:silos?|scattered|disconnected)\b", r"\bsilos?\b"],
    "customer-issues": [r"\b(?:customer|client) (?:complaints?|satisfaction|service|churn)\b"],
    "scalability": [r"\b(?:can't|cannot|unable to) (?:scale|grow|expand)\b", r"\bscalab(?:le|ility)\b"],
    "compliance": [r"\b(?:compliance|regulatory)\b"],
    "lack-of-insights": [r"\black(?:ing)? (?:of |in )?(?:visibility|insights?|analytics)\b"],
    "bottleneck": [r"\b(?:bottlenecks?|backlogs?|delays?)\b"],
    "legacy": [r"\b(?:legacy|outdated)\b"],
    "complexity": [r"\b(?:complex|complicated|confusing)\b"],
    "struggle": [r"\bstruggl(?:e|es|ing)\b"],
}

_COMPILED_LEXICON = {
    tag: [re.compile(pattern, re.IGNORECASE) for pattern in patterns]
    for tag, patterns in PAIN_POINT_LEXICON.items()
}


def extract_pain_points(text: str) -> List[str]:
    """Canonical pain-point tags mentioned in the text, one entry per tag."""
    return [
        tag for tag, patterns in _COMPILED_LEXICON.items()
        if any(pattern.search(text) for pattern in patterns)
    ]


# ============================================
# INTEREST
# ============================================

_INTEREST_PATTERN = re.compile(r"\b(?:interesting|more|yes|sounds good)\b", re.IGNORECASE)


def expresses_interest(text: str) -> bool:
    return _INTEREST_PATTERN.search(text) is not None


# ============================================
# DECISION MAKER
# ============================================

EXECUTIVE_TITLES = frozenset({"ceo", "cto", "cfo", "coo", "cmo", "president", "founder", "cofounder", "owner"})
SENIOR_TITLES = frozenset({"vp", "director", "head", "partner", "principal"})
MANAGER_TITLES = frozenset({"manager", "lead"})

# Smaller companies let more titles make buying decisions
_QUALIFYING_TITLES = {
    CompanySize.ENTERPRISE: EXECUTIVE_TITLES,
    CompanySize.LARGE: EXECUTIVE_TITLES | SENIOR_TITLES,
    CompanySize.MEDIUM: EXECUTIVE_TITLES | SENIOR_TITLES,
    CompanySize.SMALL: EXECUTIVE_TITLES | SENIOR_TITLES | MANAGER_TITLES,
    CompanySize.STARTUP: EXECUTIVE_TITLES | SENIOR_TITLES | MANAGER_TITLES,
}

_LOCAL_PART_SPLIT = re.compile(r"[._+\-\d]+")


def decision_maker_signal(email: str, company_size_hint: Optional[CompanySize] = None) -> bool:
    """
    True when the email local part carries a title that can buy at this company size.
    An unknown size is treated as SMALL.
    """
    local_part = email.partition("@")[0].lower()
    tokens = {token for token in _LOCAL_PART_SPLIT.split(local_part) if token}
    qualifying = _QUALIFYING_TITLES[company_size_hint or CompanySize.SMALL]
    return bool(tokens & qualifying)


# ============================================
# AI READINESS
# ============================================

@dataclass
class IndustrySignals:
    """Industry adoption indicators, each in 0..1."""
    tech_adoption: float = 0.0
    digital_transformation: float = 0.0
    process_automation: float = 0.0


def _clamp(value: float, low: int = 0, high: int = 100) -> int:
    return int(max(low, min(high, round(value))))


def ai_readiness_score(industry_signals: IndustrySignals) -> int:
    score = (
        50
        + industry_signals.tech_adoption * 20
        + industry_signals.digital_transformation * 15
        + industry_signals.process_automation * 10
    )
    return _clamp(score)


# ============================================
# DOMAIN ANALYSIS
# ============================================

_SIZE_READINESS_ADJUSTMENT = {
    CompanySize.STARTUP: 20,
    CompanySize.SMALL: 10,
    CompanySize.MEDIUM: 5,
    CompanySize.LARGE: -5,
    CompanySize.ENTERPRISE: -10,
}


@dataclass
class DomainAnalysis:
    domain: str
    company_size: CompanySize
    industry: str
    decision_maker: bool
    ai_readiness: int
    company: Optional[str] = None
    business_email: bool = True


def analyze_email_domain(email: str) -> DomainAnalysis:
    """Company-size and readiness hints from the email domain alone."""
    domain = email.partition("@")[2].lower()

    if not is_business_email(email):
        size, industry = CompanySize.STARTUP, "personal"
    elif any(marker in domain for marker in ("corp", "inc", "llc")):
        size, industry = CompanySize.MEDIUM, "business"
    elif any(marker in domain for marker in ("enterprise", "global")):
        size, industry = CompanySize.ENTERPRISE, "enterprise"
    else:
        size, industry = CompanySize.SMALL, "technology"

    readiness = 50 + _SIZE_READINESS_ADJUSTMENT[size]
    if industry == "technology":
        readiness += 15

    company = domain.split(".")[0].replace("-", " ").replace("_", " ").title() if domain else None

    return DomainAnalysis(
        domain=domain,
        company_size=size,
        industry=industry,
        decision_maker=decision_maker_signal(email, size),
        ai_readiness=_clamp(readiness),
        company=company,
        business_email=is_business_email(email),
    )


# ============================================
# ENGINE
# ============================================

@dataclass
class MessageSignals:
    """Everything the stage engine needs to know about one message."""
    name: Optional[str] = None
    email: Optional[str] = None
    pain_points: List[str] = field(default_factory=list)
    interested: bool = False


class ExtractionEngine(Protocol):
    def extract_name(self, text: str) -> Optional[str]: ...

    def extract_email(self, text: str) -> Optional[str]: ...

    def extract_pain_points(self, text: str) -> List[str]: ...

    def expresses_interest(self, text: str) -> bool: ...

    def extract_signals(self, text: str) -> MessageSignals: ...


class RegexExtractionEngine:
    """Pattern-based ExtractionEngine. Holds no state."""

    def extract_name(self, text: str) -> Optional[str]:
        return extract_name(text)

    def extract_email(self, text: str) -> Optional[str]:
        return extract_email(text)

    def extract_pain_points(self, text: str) -> List[str]:
        return extract_pain_points(text)

    def expresses_interest(self, text: str) -> bool:
        return expresses_interest(text)

    def extract_signals(self, text: str) -> MessageSignals:
        return MessageSignals(
            name=self.extract_name(text),
            email=self.extract_email(text),
            pain_points=self.extract_pain_points(text),
            interested=self.expresses_interest(text),
        )
