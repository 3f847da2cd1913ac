"""
Tests for lead folding and scoring.
"""
from src.intelligence.extraction import MessageSignals
from src.intelligence.scoring import apply_research, apply_signals, industry_signals, lead_score
from src.models.context import ResearchSnapshot
from src.models.lead import CompanySize, LeadData, Stage


class TestApplySignals:
    """Test folding message signals into the lead."""

    def test_name_only_in_name_collection(self):
        """Test names are ignored outside the name collection stage"""
        signals = MessageSignals(name="John Smith")

        assert apply_signals(LeadData(), [Stage.NAME_COLLECTION], signals).name == "John Smith"
        assert apply_signals(LeadData(), [Stage.PROBLEM_DISCOVERY], signals).name is None

    def test_email_runs_domain_analysis(self):
        lead = apply_signals(LeadData(), [Stage.EMAIL_CAPTURE], MessageSignals(email="ceo@acme.io"))

        assert lead.email == "ceo@acme.io"
        assert lead.email_domain == "acme.io"
        assert lead.company == "Acme"
        assert lead.company_size == CompanySize.SMALL
        assert lead.decision_maker is True
        assert lead.ai_readiness_score == 75

    def test_personal_email_sets_no_company(self):
        lead = apply_signals(LeadData(), [Stage.EMAIL_CAPTURE], MessageSignals(email="john@gmail.com"))
        assert lead.company is None

    def test_pain_points_merge_without_duplicates(self):
        lead = LeadData(pain_points=["manual"])
        updated = apply_signals(
            lead,
            [Stage.PROBLEM_DISCOVERY],
            MessageSignals(pain_points=["slow", "manual"]),
        )

        assert updated.pain_points == ["manual", "slow"]
        assert lead.pain_points == ["manual"]


class TestApplyResearch:
    """Test folding research into the lead."""

    def test_no_snapshot(self):
        lead = LeadData(company="Acme")
        assert apply_research(lead, None) is lead

    def test_fills_company_and_industry(self):
        snapshot = ResearchSnapshot(company={"name": "Acme Inc", "industry": "Technology"})
        lead = apply_research(LeadData(), snapshot)

        assert lead.company == "Acme Inc"
        assert lead.industry == "Technology"
        assert lead.ai_readiness_score == 87

    def test_does_not_overwrite_conversation_company(self):
        snapshot = ResearchSnapshot(company={"name": "Acme Inc"})
        lead = apply_research(LeadData(company="Acme"), snapshot)
        assert lead.company == "Acme"

    def test_unknown_industry_uses_baseline(self):
        assert industry_signals("underwater basket weaving").tech_adoption == 0.0
        assert industry_signals(None).tech_adoption == 0.0


class TestLeadScore:
    """Test the lead score formula."""

    def test_baseline(self):
        assert lead_score(LeadData(), message_count=0) == 50

    def test_interaction_capped(self):
        assert lead_score(LeadData(), message_count=100) == 75

    def test_bonuses(self):
        lead = LeadData(
            ai_readiness_score=40,
            decision_maker=True,
            company_size=CompanySize.STARTUP,
            pain_points=["manual", "slow"],
        )
        # 40 + 10 + 20 + 15 + 10
        assert lead_score(lead, message_count=2) == 95

    def test_clamped(self):
        lead = LeadData(
            ai_readiness_score=100,
            decision_maker=True,
            company_size=CompanySize.SMALL,
            pain_points=["manual", "slow", "legacy"],
        )
        assert lead_score(lead, message_count=10) == 100
