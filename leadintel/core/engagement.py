"""Apply engagement events to stored leads.

Each event is a read-modify-write of the lead's score and status. Writes carry
the version that was read; when another writer got there first the event is
re-applied on the fresh row, up to ``MAX_WRITE_ATTEMPTS`` times.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from leadintel.core.intelligence import log_action
from leadintel.core.repository import LeadRepository
from leadintel.core.scoring import rescore_lead
from leadintel.models import ActionType, CallOutcome, Lead, LeadStatus

logger = logging.getLogger(__name__)

MAX_WRITE_ATTEMPTS = 3
FOLLOW_UP_DAYS = 3
DEFAULT_EMAIL_BASE_SCORE = 50
EMAIL_ACTIONS = ("email_sent", "email_opened", "responded")


class LeadNotFoundError(LookupError):
    pass


class ConcurrentUpdateError(RuntimeError):
    """The lead kept changing underneath us; the event was not applied."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _apply(
    repository: LeadRepository,
    lead_id: str,
    build_changes: Callable[[Lead], Dict[str, Any]],
) -> Lead:
    for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
        row = repository.get_lead(lead_id)
        if row is None:
            raise LeadNotFoundError(lead_id)
        lead = Lead.from_row(row)
        updated = repository.update_lead(lead_id, build_changes(lead), expected_version=lead.version)
        if updated is not None:
            return Lead.from_row(updated)
        logger.info("Version conflict on lead %s (attempt %s/%s)", lead_id, attempt, MAX_WRITE_ATTEMPTS)
    raise ConcurrentUpdateError(f"lead {lead_id} changed {MAX_WRITE_ATTEMPTS} times during update")


def record_call_outcome(
    repository: LeadRepository,
    lead_id: str,
    outcome: CallOutcome,
    *,
    callback_date: Optional[date] = None,
    metadata: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> Lead:
    outcome = CallOutcome(outcome)
    now = now or _now()
    if outcome is CallOutcome.CALL_BACK and callback_date is None:
        callback_date = (now + timedelta(days=1)).date()

    def build_changes(lead: Lead) -> Dict[str, Any]:
        changes = {
            "call_outcome": outcome.value,
            "lead_score": rescore_lead(lead.lead_score, outcome, lead.call_outcome),
            "last_called_at": now.isoformat(),
            "status": LeadStatus.CONTACTED.value,
        }
        if callback_date is not None:
            changes["callback_date"] = callback_date.isoformat()
        return changes

    lead = _apply(repository, lead_id, build_changes)

    log_metadata = {"business_name": lead.business_name, "city": lead.city, "has_website": lead.has_website}
    if lead.google_rating is not None:
        log_metadata["google_rating"] = lead.google_rating
    if callback_date is not None:
        log_metadata["callback_date"] = callback_date.isoformat()
    log_metadata.update(metadata or {})
    log_action(
        repository,
        ActionType.CALL_OUTCOME,
        industry=lead.category,
        lead_id=lead_id,
        metadata=log_metadata,
        outcome=outcome.value,
    )
    logger.info("Lead %s outcome=%s score=%s", lead_id, outcome.value, lead.lead_score)
    return lead


def clear_call_outcome(repository: LeadRepository, lead_id: str) -> Lead:
    """Remove the recorded call outcome and reverse its score delta."""

    def build_changes(lead: Lead) -> Dict[str, Any]:
        return {
            "call_outcome": None,
            "lead_score": rescore_lead(lead.lead_score, None, lead.call_outcome),
        }

    return _apply(repository, lead_id, build_changes)


def record_email_event(
    repository: LeadRepository,
    lead_id: str,
    action: str,
    *,
    now: Optional[datetime] = None,
) -> Lead:
    if action not in EMAIL_ACTIONS:
        raise ValueError(f"unsupported email action: {action}")
    now = now or _now()

    def build_changes(lead: Lead) -> Dict[str, Any]:
        changes: Dict[str, Any] = {"lead_score": rescore_lead(lead.lead_score, action)}
        if action == "email_sent":
            base = lead.lead_score or DEFAULT_EMAIL_BASE_SCORE
            changes["lead_score"] = rescore_lead(base, action)
            changes["status"] = LeadStatus.CONTACTED.value
            changes["callback_date"] = (now + timedelta(days=FOLLOW_UP_DAYS)).date().isoformat()
        elif action == "responded":
            changes["status"] = LeadStatus.RESPONDED.value
        return changes

    lead = _apply(repository, lead_id, build_changes)
    if action == "email_sent":
        log_action(
            repository,
            ActionType.EMAIL_SENT,
            industry=lead.category,
            lead_id=lead_id,
            metadata={"business_name": lead.business_name, "city": lead.city},
        )
    return lead


def claim_lead(repository: LeadRepository, lead_id: str, member: Optional[str]) -> Lead:
    """Assign the lead to ``member``; a blank member releases the claim."""
    claimed_by = (member or "").strip() or None
    lead = _apply(repository, lead_id, lambda lead: {"claimed_by": claimed_by})
    logger.info("Lead %s claimed_by=%s", lead_id, claimed_by)
    return lead
