"""Per-industry insight mined from the append-only intelligence log.

Every outreach action is logged with the lead's industry. Before generating
new outreach for an industry, recent call outcomes and generated emails are
summarised into a short text block that is handed to the text-generation
service as additional prompt context.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from leadintel.core.repository import LeadRepository
from leadintel.models import ActionType, IntelligenceLogEntry

logger = logging.getLogger(__name__)

RECENT_ENTRY_LIMIT = 50
WELL_RESPONDING_RATE = 50
TOUGH_RATE = 20
TOUGH_MIN_CALLS = 5


@dataclass
class IndustryInsight:
    text: str
    total_calls: int = 0
    total_emails: int = 0
    interest_rate: int = 0
    outcomes: Dict[str, int] = field(default_factory=dict)
    top_tone: Optional[str] = None

    @property
    def stats(self) -> Dict[str, Any]:
        return {
            "total_calls": self.total_calls,
            "total_emails": self.total_emails,
            "interest_rate": self.interest_rate,
            "outcomes": dict(self.outcomes),
        }


def normalize_industry(industry: Optional[str]) -> Optional[str]:
    if not industry:
        return None
    cleaned = industry.strip().lower()
    return cleaned or None


def log_action(
    repository: LeadRepository,
    action_type: ActionType,
    *,
    industry: Optional[str] = None,
    lead_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    outcome: Optional[str] = None,
) -> None:
    """Append an event; a store failure is logged and never breaks the caller."""
    entry = IntelligenceLogEntry(
        action_type=ActionType(action_type),
        industry=normalize_industry(industry),
        lead_id=lead_id or None,
        metadata=metadata or {},
        outcome=getattr(outcome, "value", outcome) or None,
    )
    try:
        repository.append_log(entry.to_row())
    except Exception as exc:  # noqa: BLE001
        logger.error("Failed to log %s action: %s", entry.action_type.value, exc)


def _interest_rate(outcomes: Counter, total_calls: int) -> int:
    if total_calls == 0:
        return 0
    return int(outcomes.get("interested", 0) * 100 / total_calls + 0.5)


def _recent_entries(repository: LeadRepository, action_type: ActionType, label: str) -> List[IntelligenceLogEntry]:
    rows = repository.recent_log_entries(action_type.value, label, RECENT_ENTRY_LIMIT)
    return [IntelligenceLogEntry.from_row(row) for row in rows]


def get_industry_insights(repository: LeadRepository, industry: Optional[str]) -> Optional[IndustryInsight]:
    """Summarise recent outcomes for ``industry``.

    ``None`` when nothing was logged yet, and also when the log cannot be read:
    insight is optional prompt context and must never block generation.
    """
    label = normalize_industry(industry)
    if not label:
        return None

    try:
        calls = _recent_entries(repository, ActionType.CALL_OUTCOME, label)
        emails = _recent_entries(repository, ActionType.EMAIL_GENERATED, label)
    except Exception as exc:  # noqa: BLE001
        logger.error("Failed to read intelligence log for %s: %s", label, exc)
        return None
    if not calls and not emails:
        return None

    outcomes: Counter = Counter(entry.outcome for entry in calls if entry.outcome)
    total_calls = sum(outcomes.values())
    interest_rate = _interest_rate(outcomes, total_calls)

    lines = [
        f"[INTELLIGENCE DATA - {label.upper()}]",
        f"Total interactions logged: {total_calls + len(emails)}",
    ]
    if total_calls > 0:
        histogram = ", ".join(f"{name}={count}" for name, count in outcomes.items())
        lines.append(f"Call outcomes: {histogram}")
        lines.append(f"Interest rate: {interest_rate}%")
        if interest_rate > WELL_RESPONDING_RATE:
            lines.append("This industry responds WELL to outreach. Be confident.")
        elif interest_rate < TOUGH_RATE and total_calls >= TOUGH_MIN_CALLS:
            lines.append("This industry is TOUGH. Lead with stronger value props and offer something free.")

    tones: Counter = Counter(entry.metadata.get("tone") for entry in emails if entry.metadata.get("tone"))
    top_tone = None
    if tones:
        top_tone, tone_count = tones.most_common(1)[0]
        lines.append(f'Most used email tone: "{top_tone}" ({tone_count} times)')

    lines.append("[END INTELLIGENCE DATA]")

    return IndustryInsight(
        text="\n" + "\n".join(lines) + "\n",
        total_calls=total_calls,
        total_emails=len(emails),
        interest_rate=interest_rate,
        outcomes=dict(outcomes),
        top_tone=top_tone,
    )
