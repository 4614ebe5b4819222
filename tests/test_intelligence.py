from datetime import datetime, timezone

import psycopg2

from leadintel.core import intelligence
from leadintel.models import ActionType, IntelligenceLogEntry


def log_calls(repo, industry, *outcomes):
    for outcome in outcomes:
        intelligence.log_action(repo, ActionType.CALL_OUTCOME, industry=industry, outcome=outcome)


def test_log_action_normalises_entry(repo):
    intelligence.log_action(
        repo,
        ActionType.EMAIL_GENERATED,
        industry="  Dentists ",
        lead_id="lead-1",
        metadata={"tone": "friendly"},
    )

    assert repo.logs == [
        {
            "action_type": "email_generated",
            "industry": "dentists",
            "lead_id": "lead-1",
            "metadata": {"tone": "friendly"},
            "outcome": None,
        }
    ]


def test_log_action_swallows_store_errors(repo, caplog):
    def broken(entry):
        raise RuntimeError("store offline")

    repo.append_log = broken

    intelligence.log_action(repo, ActionType.LEAD_SCRAPED, industry="gyms")

    assert "Failed to log lead_scraped action" in " ".join(caplog.messages)


def test_insights_none_without_data(repo):
    assert intelligence.get_industry_insights(repo, "dentists") is None
    assert intelligence.get_industry_insights(repo, "   ") is None
    assert intelligence.get_industry_insights(repo, None) is None


def test_insights_for_responsive_industry(repo):
    log_calls(repo, "Dentists", "interested", "interested", "interested", "no_answer", "not_interested")

    insight = intelligence.get_industry_insights(repo, "dentists")

    assert insight.total_calls == 5
    assert insight.interest_rate == 60
    assert insight.outcomes == {"interested": 3, "no_answer": 1, "not_interested": 1}
    assert insight.text.startswith("\n[INTELLIGENCE DATA - DENTISTS]\n")
    assert insight.text.endswith("[END INTELLIGENCE DATA]\n")
    assert "Total interactions logged: 5" in insight.text
    assert "Interest rate: 60%" in insight.text
    assert "responds WELL" in insight.text


def test_insights_for_tough_industry(repo):
    log_calls(repo, "roofing contractors", "not_interested", "no_answer", "no_answer", "wrong_number", "interested")
    log_calls(repo, "roofing contractors", "not_interested", "not_interested")

    insight = intelligence.get_industry_insights(repo, "Roofing")

    assert insight.interest_rate == 14
    assert "TOUGH" in insight.text
    assert "WELL" not in insight.text


def test_low_rate_with_few_calls_is_not_tough(repo):
    log_calls(repo, "gyms", "not_interested", "no_answer")

    insight = intelligence.get_industry_insights(repo, "gyms")

    assert insight.interest_rate == 0
    assert "TOUGH" not in insight.text


def test_interest_rate_rounds_half_up(repo):
    log_calls(repo, "florists", "interested", "no_answer", "no_answer", "no_answer", "no_answer", "no_answer", "no_answer", "no_answer")

    insight = intelligence.get_industry_insights(repo, "florists")

    assert insight.interest_rate == 13


def test_insights_report_top_email_tone(repo):
    for tone in ("casual", "formal", "casual", None):
        metadata = {"tone": tone} if tone else {}
        intelligence.log_action(repo, ActionType.EMAIL_GENERATED, industry="bakeries", metadata=metadata)

    insight = intelligence.get_industry_insights(repo, "bakeries")

    assert insight.total_calls == 0
    assert insight.total_emails == 4
    assert insight.top_tone == "casual"
    assert 'Most used email tone: "casual" (2 times)' in insight.text
    assert "Interest rate" not in insight.text
    assert insight.stats["total_emails"] == 4


def test_insights_store_error_returns_none(repo, caplog):
    def broken(action_type, industry, limit=50):
        raise psycopg2.OperationalError("server closed the connection unexpectedly")

    repo.recent_log_entries = broken

    assert intelligence.get_industry_insights(repo, "dentists") is None
    assert "Failed to read intelligence log for dentists" in " ".join(caplog.messages)


def test_log_entry_from_store_row():
    row = {
        "action_type": "call_outcome",
        "industry": "dentists",
        "lead_id": 42,
        "metadata": None,
        "outcome": "interested",
        "created_at": datetime(2024, 5, 10, 15, 30, tzinfo=timezone.utc),
    }

    entry = IntelligenceLogEntry.from_row(row)

    assert entry.action_type is ActionType.CALL_OUTCOME
    assert entry.lead_id == "42"
    assert entry.metadata == {}
    assert entry.created_at == "2024-05-10T15:30:00+00:00"
    assert "created_at" not in entry.to_row()
