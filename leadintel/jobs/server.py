"""HTTP entrypoint exposing the lead pipeline (Cloud Run friendly)."""

from __future__ import annotations

import logging
import os
from concurrent.futures import Executor, ThreadPoolExecutor
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from flask import Flask, jsonify, request

from leadintel.core.auditor import audit_website
from leadintel.core.config import Settings, get_settings
from leadintel.core.db import PostgresRepository, create_pool
from leadintel.core.engagement import (
    EMAIL_ACTIONS,
    ConcurrentUpdateError,
    LeadNotFoundError,
    claim_lead,
    clear_call_outcome,
    record_call_outcome,
    record_email_event,
)
from leadintel.core.intelligence import get_industry_insights
from leadintel.core.outreach import generate_audit_pitch, generate_call_script, generate_outreach_emails
from leadintel.core.repository import LeadRepository
from leadintel.core.retry import RetryPolicy, linear_backoff
from leadintel.core.scoring import score_label
from leadintel.jobs.discover import (
    CATEGORIES,
    CITIES,
    SearchFn,
    make_places_search,
    pick_random,
    run_discovery,
    save_leads,
    scan,
)
from leadintel.models import CallOutcome
from leadintel.vendors.text_generation import TextGenerationClient

logger = logging.getLogger(__name__)


def create_app(
    repository: LeadRepository,
    *,
    search: Optional[SearchFn] = None,
    generator: Optional[TextGenerationClient] = None,
    settings: Optional[Settings] = None,
    executor: Optional[Executor] = None,
) -> Flask:
    settings = settings or get_settings()
    search = search or make_places_search(settings)
    generator = generator or TextGenerationClient(settings)
    executor = executor or ThreadPoolExecutor(max_workers=2)
    generation_policy = RetryPolicy(
        max_attempts=settings.generation_max_attempts,
        backoff=linear_backoff(settings.generation_backoff_seconds),
    )

    app = Flask(__name__)

    def _payload() -> Dict[str, Any]:
        return request.get_json(silent=True) or {}

    def _error(message: str, status: int):
        return jsonify({"error": message}), status

    def _string_list(value: Any) -> Optional[List[str]]:
        if not isinstance(value, list) or not value:
            return None
        if not all(isinstance(item, str) and item.strip() for item in value):
            return None
        return [item.strip() for item in value]

    # ---------- Routes ----------

    @app.get("/")
    def root() -> Any:
        return "ok", 200

    @app.get("/healthz")
    def healthcheck() -> Any:
        return (
            jsonify(
                {
                    "status": "ok",
                    "worker_port_config": settings.worker_port,
                    "revision": os.getenv("K_REVISION", "unknown"),
                }
            ),
            200,
        )

    @app.post("/scrape")
    def scrape() -> Any:
        payload = _payload()
        location = str(payload.get("location") or "").strip()
        category = str(payload.get("category") or "").strip()
        if not location or not category:
            return _error("location and category are required", 400)

        try:
            result = scan(search, repository, location, category, default_region=settings.default_phone_region)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Scan failed for %s in %s: %s", category, location, exc)
            return _error(str(exc) or "scraping failed", 502)

        results = []
        for lead in result.leads:
            item = lead.to_payload()
            item["score_label"] = score_label(lead.lead_score)
            results.append(item)
        return jsonify({"message": result.message, "results": results, "stats": result.stats}), 200

    @app.post("/discover")
    def discover() -> Any:
        if settings.cron_secret and request.headers.get("Authorization") != f"Bearer {settings.cron_secret}":
            return _error("Unauthorized", 401)

        payload = _payload()
        job_args: Dict[str, List[str]] = {}
        for name, catalogue, count in (("cities", CITIES, 3), ("categories", CATEGORIES, 2)):
            if payload.get(name) is None:
                job_args[name] = pick_random(catalogue, count)
                continue
            values = _string_list(payload[name])
            if values is None:
                return _error(f"{name} must be a non-empty list of non-empty strings", 400)
            job_args[name] = values

        logger.info("Queueing discovery job: %s", job_args)
        executor.submit(_run_discovery_safe, job_args)
        return jsonify({"data": {"status": "queued", **job_args}}), 202

    def _run_discovery_safe(job_args: Dict[str, Any]) -> None:
        try:
            run_discovery(
                search,
                repository,
                job_args["cities"],
                job_args["categories"],
                pick_limit=settings.daily_pick_limit,
                default_region=settings.default_phone_region,
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("Discovery job failed: %s", exc)

    @app.post("/leads")
    def save() -> Any:
        leads = _payload().get("leads")
        if not isinstance(leads, list) or not leads:
            return _error("No leads provided", 400)
        if not all(isinstance(lead, dict) and lead.get("business_name") for lead in leads):
            return _error("every lead needs a business_name", 400)

        report = save_leads(repository, leads, settings.team_members)
        return (
            jsonify(
                {
                    "message": report.message("leads"),
                    "saved": report.values,
                    "skipped": [item.key for item in report.skipped],
                    "failed": [item.to_dict() for item in report.failed],
                    "stats": report.summary(),
                }
            ),
            200,
        )

    @app.post("/leads/<lead_id>/outcome")
    def log_outcome(lead_id: str) -> Any:
        payload = _payload()
        try:
            outcome = CallOutcome(payload.get("outcome"))
        except ValueError:
            return _error("outcome must be one of: " + ", ".join(o.value for o in CallOutcome), 400)

        callback_date = None
        if payload.get("callback_date"):
            try:
                callback_date = date.fromisoformat(str(payload["callback_date"]))
            except ValueError:
                return _error("callback_date must be YYYY-MM-DD", 400)

        try:
            lead = record_call_outcome(repository, lead_id, outcome, callback_date=callback_date)
        except LeadNotFoundError:
            return _error("Lead not found", 404)
        except ConcurrentUpdateError as exc:
            return _error(str(exc), 409)
        return jsonify({"lead": lead.to_payload()}), 200

    @app.delete("/leads/<lead_id>/outcome")
    def clear_outcome(lead_id: str) -> Any:
        try:
            lead = clear_call_outcome(repository, lead_id)
        except LeadNotFoundError:
            return _error("Lead not found", 404)
        except ConcurrentUpdateError as exc:
            return _error(str(exc), 409)
        return jsonify({"lead": lead.to_payload()}), 200

    @app.post("/leads/<lead_id>/email-event")
    def email_event(lead_id: str) -> Any:
        action = _payload().get("action")
        if action not in EMAIL_ACTIONS:
            return _error("action must be one of: " + ", ".join(EMAIL_ACTIONS), 400)
        try:
            lead = record_email_event(repository, lead_id, action)
        except LeadNotFoundError:
            return _error("Lead not found", 404)
        except ConcurrentUpdateError as exc:
            return _error(str(exc), 409)
        return jsonify({"lead": lead.to_payload()}), 200

    @app.post("/leads/<lead_id>/claim")
    def claim(lead_id: str) -> Any:
        member = _payload().get("email")
        if member is not None and not isinstance(member, str):
            return _error("email must be a string", 400)
        try:
            lead = claim_lead(repository, lead_id, member)
        except LeadNotFoundError:
            return _error("Lead not found", 404)
        except ConcurrentUpdateError as exc:
            return _error(str(exc), 409)
        return jsonify({"lead": lead.to_payload()}), 200

    @app.post("/leads/<lead_id>/script")
    def call_script(lead_id: str) -> Any:
        try:
            script = generate_call_script(repository, lead_id, generator.complete, retry_policy=generation_policy)
        except LeadNotFoundError:
            return _error("Lead not found", 404)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Call script generation failed for lead %s: %s", lead_id, exc)
            return _error(str(exc) or "Failed to generate call script", 502)
        return jsonify({"phone_script": script}), 200

    @app.post("/audit")
    def audit() -> Any:
        payload = _payload()
        url = str(payload.get("url") or "").strip()
        if not url:
            return _error("URL is required", 400)

        result = audit_website(url, timeout=settings.audit_timeout_seconds)
        result.ai_pitch = generate_audit_pitch(
            generator.complete,
            result,
            payload.get("business_name") or "this business",
            payload.get("category"),
        )

        lead_id = payload.get("lead_id")
        if lead_id:
            try:
                repository.update_lead(
                    lead_id,
                    {"audit_data": result.to_dict(), "audit_date": datetime.now(timezone.utc).isoformat()},
                )
            except Exception as exc:  # noqa: BLE001
                logger.error("Failed to store audit for lead %s: %s", lead_id, exc)

        return jsonify(result.to_dict()), 200

    @app.get("/insights")
    def insights() -> Any:
        industry = request.args.get("industry", "")
        if not industry.strip():
            return _error("industry is required", 400)
        insight = get_industry_insights(repository, industry)
        if insight is None:
            return jsonify({"insight": None}), 200
        return jsonify({"insight": {"text": insight.text, "stats": insight.stats}}), 200

    @app.post("/emails")
    def emails() -> Any:
        lead_ids = _payload().get("lead_ids")
        if not isinstance(lead_ids, list) or not lead_ids:
            return _error("No lead IDs provided", 400)

        report = generate_outreach_emails(
            repository,
            [str(lead_id) for lead_id in lead_ids],
            generator.complete,
            retry_policy=generation_policy,
            delay_seconds=settings.generation_delay_seconds,
            deadline=generation_policy.clock() + settings.generation_deadline_seconds,
        )
        return (
            jsonify(
                {
                    "message": report.message("emails"),
                    "emails": report.values,
                    "errors": [item.to_dict() for item in report.failed],
                }
            ),
            200,
        )

    return app


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    settings = get_settings()
    repository = PostgresRepository(create_pool(settings))
    app = create_app(repository, settings=settings)

    port = int(os.getenv("PORT") or settings.worker_port)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
