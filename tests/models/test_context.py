import pytest
from pydantic import ValidationError

from src.models.context import ConversationContext, ResearchSnapshot
from src.models.enrichment import (
    CompanyProfile,
    PersonProfile,
    ResearchReport,
    research_patch,
)
from src.models.lead import Stage

# --- CONVERSATION CONTEXT ---

def test_context_defaults():
    context = ConversationContext(session_id="s-1")
    assert context.stage == Stage.GREETING
    assert context.message_count == 0
    assert context.has_research is False
    assert context.snapshot() is None


def test_session_id_required():
    with pytest.raises(ValidationError):
        ConversationContext(session_id="")


def test_capabilities_behave_as_set():
    context = ConversationContext(session_id="s-1", capabilities_shown=["b", "a", "b"])
    assert context.capabilities_shown == ["a", "b"]


def test_role_confidence_bounded():
    with pytest.raises(ValidationError):
        ConversationContext(session_id="s-1", role_confidence=1.5)


def test_snapshot_from_research_fields():
    context = ConversationContext(
        session_id="s-1",
        company_context={"name": "Acme"},
        role="CTO",
        role_confidence=0.9,
    )

    snapshot = context.snapshot()

    assert context.has_research is True
    assert snapshot.company == {"name": "Acme"}
    assert snapshot.person is None
    assert snapshot.role == "CTO"
    assert snapshot.model_dump(by_alias=True)["roleConfidence"] == 0.9


def test_unknown_fields_rejected():
    with pytest.raises(ValidationError):
        ConversationContext(session_id="s-1", favourite_colour="blue")

# --- RESEARCH ---

def test_report_to_snapshot():
    report = ResearchReport(
        company=CompanyProfile(name="Acme", domain="acme.io"),
        person=PersonProfile(full_name="Jane Doe"),
    )

    snapshot = report.to_snapshot(role="Founder", role_confidence=0.6)

    assert snapshot.company == {"name": "Acme", "domain": "acme.io"}
    assert snapshot.person == {"fullName": "Jane Doe"}
    assert snapshot.role == "Founder"


def test_research_patch_drops_nulls():
    """A snapshot with gaps never produces a patch that clears stored research."""
    patch = research_patch(ResearchSnapshot(company={"name": "Acme"}, role=None))
    assert patch == {"company_context": {"name": "Acme"}}
