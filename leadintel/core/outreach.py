"""Glue between leads, industry insight and the text-generation service.

The generated text is opaque here. Emails are parsed only far enough to split
a subject from a body and are stored as ``initial`` drafts; call scripts are
stored on the lead as returned.
"""

import json
import logging
import re
import time
from typing import Any, Callable, Dict, Optional, Sequence

from leadintel.core.engagement import LeadNotFoundError
from leadintel.core.errors import BatchReport, ErrorKind, ItemResult, RateLimitError
from leadintel.core.intelligence import get_industry_insights, log_action
from leadintel.core.repository import LeadRepository
from leadintel.core.retry import DeadlineExceeded, RetryPolicy
from leadintel.models import ActionType, AuditResult, Lead

logger = logging.getLogger(__name__)

DRAFT_EMAIL_TYPE = "initial"
DRAFT_STATUS = "draft"

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def describe_lead(lead: Lead) -> str:
    location = lead.city or "their area"
    if lead.state:
        location = f"{location}, {lead.state}"
    rating = f"{lead.google_rating} stars ({lead.review_count} reviews)" if lead.google_rating else "N/A"
    return "\n".join(
        [
            "BUSINESS DETAILS:",
            f"- Name: {lead.business_name}",
            f"- Category: {lead.category or 'Local Business'}",
            f"- Location: {location}",
            f"- Has Website: {'Yes' if lead.has_website else 'No'}",
            f"- Google Rating: {rating}",
        ]
    )


def build_email_prompt(lead: Lead, insight_text: str = "") -> str:
    return "\n\n".join(
        part
        for part in (
            "Write a short cold outreach email offering a website build to this local business.",
            insight_text.strip(),
            describe_lead(lead),
            'Return ONLY a JSON object: {"subject": "...", "body": "...", "tone": "..."}',
        )
        if part
    )


def parse_email_response(text: str, lead: Lead) -> Dict[str, Any]:
    """Pull subject/body out of a JSON reply, falling back to the raw text as body."""
    match = _JSON_OBJECT.search(text)
    try:
        data = json.loads(match.group(0) if match else text)
    except ValueError:
        data = None
    if not isinstance(data, dict) or not data.get("body"):
        return {"subject": f"Quick thought about {lead.business_name}", "body": text, "tone": None}
    return {
        "subject": data.get("subject") or f"Quick thought about {lead.business_name}",
        "body": data["body"],
        "tone": data.get("tone"),
    }


def generate_outreach_emails(
    repository: LeadRepository,
    lead_ids: Sequence[str],
    complete: Callable[[str], str],
    *,
    retry_policy: Optional[RetryPolicy] = None,
    delay_seconds: float = 3.0,
    deadline: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> BatchReport:
    """Generate and store one email draft per lead, sequentially with a delay between leads.

    ``deadline`` is an absolute ``retry_policy.clock()`` value. Leads reached
    after it, and rate-limit retries that would run past it, are reported as
    ``deadline_exceeded`` instead of being generated.
    """
    policy = retry_policy or RetryPolicy()
    report = BatchReport()

    for index, lead_id in enumerate(lead_ids):
        try:
            row = repository.get_lead(lead_id)
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to load lead %s: %s", lead_id, exc)
            report.add(ItemResult.failure(lead_id, ErrorKind.STORE_ERROR, str(exc)))
            continue
        if row is None:
            report.add(ItemResult.failure(lead_id, ErrorKind.NOT_FOUND, "lead not found"))
            continue
        lead = Lead.from_row(row)

        if index > 0:
            sleep(delay_seconds)
        if deadline is not None and policy.clock() >= deadline:
            report.add(ItemResult.failure(lead_id, ErrorKind.DEADLINE_EXCEEDED, "generation deadline passed"))
            continue

        insight = get_industry_insights(repository, lead.category)
        prompt = build_email_prompt(lead, insight.text if insight else "")

        try:
            text = policy.run(complete, prompt, deadline=deadline)
        except DeadlineExceeded as exc:
            logger.error("Generation for %s abandoned: %s", lead.business_name, exc)
            report.add(ItemResult.failure(lead_id, ErrorKind.DEADLINE_EXCEEDED, str(exc)))
            continue
        except RateLimitError as exc:
            logger.error("Generation rate limited for %s: %s", lead.business_name, exc)
            report.add(ItemResult.failure(lead_id, ErrorKind.UPSTREAM_RATE_LIMIT, str(exc)))
            continue
        except Exception as exc:  # noqa: BLE001
            logger.error("Generation failed for %s: %s", lead.business_name, exc)
            report.add(ItemResult.failure(lead_id, ErrorKind.UPSTREAM_ERROR, str(exc)))
            continue

        email = parse_email_response(text, lead)
        try:
            draft = repository.insert_outreach(
                {
                    "lead_id": lead_id,
                    "email_subject": email["subject"],
                    "email_body": email["body"],
                    "email_type": DRAFT_EMAIL_TYPE,
                    "status": DRAFT_STATUS,
                }
            )
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to store email draft for %s: %s", lead.business_name, exc)
            report.add(ItemResult.failure(lead_id, ErrorKind.STORE_ERROR, str(exc)))
            continue

        metadata = {"business_name": lead.business_name, "city": lead.city, "has_website": lead.has_website}
        if email["tone"]:
            metadata["tone"] = email["tone"]
        log_action(repository, ActionType.EMAIL_GENERATED, industry=lead.category, lead_id=lead_id, metadata=metadata)

        report.add(
            ItemResult.success(
                lead_id,
                {
                    **draft,
                    "lead_id": lead_id,
                    "business_name": lead.business_name,
                    "category": lead.category,
                    "city": lead.city,
                    "has_website": lead.has_website,
                    "lead_score": lead.lead_score,
                },
            )
        )

    logger.info("Email generation finished: %s", report.summary())
    return report


def build_call_script_prompt(lead: Lead, insight_text: str = "") -> str:
    city = lead.city or "their area"
    if lead.has_website:
        opener = "I was checking out your site and noticed a few things keeping you from getting more local traffic."
    else:
        opener = "I was looking for you online and realised you don't have a website."
    return "\n\n".join(
        part
        for part in (
            "Write a cold call script for a web design agency calling this local business.",
            insight_text.strip(),
            describe_lead(lead),
            "\n".join(
                [
                    "SCRIPT SECTIONS (bold headers, a blank line between every block):",
                    "**1. The Hook**: short intro, ask for a moment, mention their Google reviews.",
                    f"**2. Discovery**: one or two casual questions about business in {city}.",
                    f'**3. The Pitch**: open with "{opener}"',
                    "**4. Objection Handling**: two common pushbacks with a rebuttal for each.",
                    "**5. Call to Action**: offer a free custom mockup of their new site.",
                    "Keep it conversational and long enough for a 2-3 minute call.",
                ]
            ),
            "Return ONLY the markdown script, no JSON.",
        )
        if part
    )


def generate_call_script(
    repository: LeadRepository,
    lead_id: str,
    complete: Callable[[str], str],
    *,
    retry_policy: Optional[RetryPolicy] = None,
) -> str:
    """Generate a phone script for one lead, store it on the lead and log it.

    Raises ``LeadNotFoundError`` for an unknown lead; generation and store
    errors propagate to the caller.
    """
    row = repository.get_lead(lead_id)
    if row is None:
        raise LeadNotFoundError(lead_id)
    lead = Lead.from_row(row)

    insight = get_industry_insights(repository, lead.category)
    prompt = build_call_script_prompt(lead, insight.text if insight else "")
    script = (retry_policy or RetryPolicy()).run(complete, prompt).strip()

    if repository.update_lead(lead_id, {"phone_script": script}) is None:
        raise LeadNotFoundError(lead_id)

    log_action(
        repository,
        ActionType.SCRIPT_GENERATED,
        industry=lead.category,
        lead_id=lead_id,
        metadata={"business_name": lead.business_name, "city": lead.city, "has_website": lead.has_website},
    )
    logger.info("Stored call script for %s", lead.business_name)
    return script


def build_pitch_prompt(audit: AuditResult, business_name: str, category: Optional[str]) -> str:
    return "\n".join(
        [
            f"Business: {business_name} ({category or 'local business'})",
            f"Website: {audit.url}",
            f"Load time: {audit.load_time_ms / 1000:.1f}s",
            f"Server response: {audit.ttfb_ms}ms",
            f"Page size: {audit.page_size_kb}KB",
            f"Overall score: {audit.overall_score}/100",
            f"Issues found: {'; '.join(audit.issues)}",
            f"Positives: {'; '.join(audit.positives)}",
            "",
            "Write a 2-3 sentence sales pitch for a new website that references these numbers.",
        ]
    )


def generate_audit_pitch(
    complete: Callable[..., str],
    audit: AuditResult,
    business_name: str,
    category: Optional[str] = None,
) -> Optional[str]:
    """Ask for a short pitch; any failure leaves the audit without one."""
    try:
        return complete(build_pitch_prompt(audit, business_name, category), max_tokens=200, temperature=0.8)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Pitch generation failed for %s: %s", audit.url, exc)
        return None
