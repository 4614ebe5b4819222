"""Search, reconcile and persist leads.

``scan`` serves a single interactive search, ``run_discovery`` the daily
multi-city sweep that refreshes the daily picks, and ``save_leads`` persists
chosen scan results without ever duplicating a (name, city) pair.
"""

from __future__ import annotations

import functools
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import requests

from leadintel.core.config import Settings, get_settings
from leadintel.core.errors import BatchReport, ErrorKind, ItemResult, RateLimitError
from leadintel.core.intelligence import log_action
from leadintel.core.repository import LeadRepository
from leadintel.core.retry import RetryPolicy, linear_backoff
from leadintel.etl.normalize import dedup_key
from leadintel.etl.reconcile import ReconcileResult, reconcile
from leadintel.etl.transform import to_business, to_lead
from leadintel.models import ActionType, Lead, LeadStatus
from leadintel.vendors import google_places

logger = logging.getLogger(__name__)

SearchFn = Callable[[str, str], List[Dict[str, Any]]]

CITIES = (
    "Miami, FL", "Houston, TX", "Atlanta, GA", "Phoenix, AZ", "Dallas, TX",
    "Los Angeles, CA", "Chicago, IL", "Tampa, FL", "Denver, CO", "Las Vegas, NV",
    "San Antonio, TX", "Charlotte, NC", "Austin, TX", "Nashville, TN", "San Diego, CA",
    "Orlando, FL", "Seattle, WA", "Portland, OR", "Minneapolis, MN", "Raleigh, NC",
    "Jacksonville, FL", "Columbus, OH", "Indianapolis, IN", "Fort Worth, TX", "San Jose, CA",
    "Salt Lake City, UT", "Kansas City, MO", "Sacramento, CA", "New Orleans, LA", "Tucson, AZ",
    "Albuquerque, NM", "Omaha, NE", "Louisville, KY", "Richmond, VA", "Memphis, TN",
    "Oklahoma City, OK", "Milwaukee, WI", "Detroit, MI", "Bakersfield, CA", "Mesa, AZ",
    "Birmingham, AL", "Boise, ID", "Fresno, CA", "Honolulu, HI", "Tulsa, OK",
    "El Paso, TX", "Knoxville, TN", "Chattanooga, TN", "Savannah, GA", "Charleston, SC",
)
CATEGORIES = (
    "restaurants", "hair salons", "auto repair", "dentists", "gyms",
    "landscaping", "plumbers", "electricians", "chiropractors", "bakeries",
    "pet grooming", "car wash", "nail salons", "yoga studios", "tattoo shops",
    "florists", "daycares", "veterinarians", "moving companies", "roofing contractors",
)
HIGH_VALUE_SCORE = 50


@dataclass
class DiscoveryReport:
    searches: List[Dict[str, Any]] = field(default_factory=list)
    picks: List[Lead] = field(default_factory=list)
    total_found: int = 0
    batch: BatchReport = field(default_factory=BatchReport)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "searches": self.searches,
            "leads_found": self.total_found,
            "leads_stored": len(self.picks),
            "failures": [failure.to_dict() for failure in self.batch.failed],
        }


def make_places_search(settings: Optional[Settings] = None) -> SearchFn:
    """Bind Places search to configured credentials, paging and rate-limit policy."""
    settings = settings or get_settings()
    policy = RetryPolicy(max_attempts=3, backoff=linear_backoff(2.0))
    return functools.partial(
        google_places.search_businesses,
        api_key=settings.google_api_key,
        max_pages=settings.max_pages,
        page_delay=settings.search_page_delay,
        retry_policy=policy,
    )


def pick_random(items: Sequence[str], count: int, rng: Optional[random.Random] = None) -> List[str]:
    rng = rng or random.Random()
    return rng.sample(list(items), min(count, len(items)))


def _to_leads(places: Sequence[Dict[str, Any]], location: str, category: str, region: Optional[str]) -> List[Lead]:
    return [to_lead(to_business(place, category), location, category, region) for place in places]


def _classify_search_error(exc: Exception) -> ErrorKind:
    if isinstance(exc, RateLimitError):
        return ErrorKind.UPSTREAM_RATE_LIMIT
    if isinstance(exc, requests.Timeout):
        return ErrorKind.NETWORK_TIMEOUT
    if isinstance(exc, requests.RequestException):
        return ErrorKind.NETWORK_FAILURE
    return ErrorKind.UPSTREAM_ERROR


def scan(
    search: SearchFn,
    repository: LeadRepository,
    location: str,
    category: str,
    *,
    default_region: Optional[str] = "US",
) -> ReconcileResult:
    """One search, ranked and cross-referenced against saved leads."""
    places = search(location, category)
    leads = _to_leads(places, location, category, default_region)
    return reconcile([leads], repository.saved_index())


def run_discovery(
    search: SearchFn,
    repository: LeadRepository,
    cities: Sequence[str],
    categories: Sequence[str],
    *,
    pick_limit: int = 15,
    min_score: int = HIGH_VALUE_SCORE,
    default_region: Optional[str] = "US",
) -> DiscoveryReport:
    """Search every (city, category) pair in turn and replace the daily picks.

    A failing pair is recorded and skipped; the sweep continues.
    """
    report = DiscoveryReport()
    batches: List[List[Lead]] = []

    for city in cities:
        for category in categories:
            key = f"{category} in {city}"
            try:
                places = search(city, category)
            except Exception as exc:  # noqa: BLE001
                kind = _classify_search_error(exc)
                logger.error("Discovery failed for %s: %s", key, exc)
                report.searches.append({"city": city, "category": category, "error": str(exc)})
                report.batch.add(ItemResult.failure(key, kind, str(exc)))
                continue

            leads = _to_leads(places, city, category, default_region)
            batches.append([lead for lead in leads if lead.lead_score >= min_score or not lead.has_website])
            report.searches.append({"city": city, "category": category, "found": len(places)})
            report.batch.add(ItemResult.success(key, len(places)))

    reconciled = reconcile(batches)
    report.total_found = len(reconciled.leads)
    report.picks = reconciled.leads[:pick_limit]
    repository.replace_daily_picks([lead.to_row() for lead in report.picks])

    logger.info(
        "Daily discovery complete: %d high-value leads, %d stored, %s",
        report.total_found,
        len(report.picks),
        report.batch.summary(),
    )
    return report


def _assignment_order(repository: LeadRepository, team: Sequence[str]) -> List[str]:
    if not team:
        return []
    counts = repository.claim_counts(team)
    return sorted(team, key=lambda member: counts.get(member, 0))


def save_leads(
    repository: LeadRepository,
    leads: Sequence[Union[Lead, Dict[str, Any]]],
    team: Sequence[str] = (),
) -> BatchReport:
    """Persist leads as ``saved``, skipping any (name, city) already stored.

    New leads are claimed round-robin, starting with the team member holding
    the fewest leads.
    """
    report = BatchReport()
    order = _assignment_order(repository, team)
    assign_index = 0

    for item in leads:
        lead = item if isinstance(item, Lead) else Lead.from_row(item)
        key = dedup_key(lead.business_name, lead.city)

        if repository.find_by_key(lead.business_name, lead.city or ""):
            logger.info("Skipping duplicate: %s in %s", lead.business_name, lead.city)
            report.add(ItemResult.failure(key, ErrorKind.DUPLICATE_KEY, "already saved"))
            continue

        row = lead.to_row()
        row.pop("id", None)
        row.pop("version", None)
        row["city"] = lead.city or ""
        row["status"] = LeadStatus.SAVED.value
        if order:
            row["claimed_by"] = order[assign_index % len(order)]

        try:
            stored = repository.insert_lead(row)
        except Exception as exc:  # noqa: BLE001
            logger.error("Error saving %s: %s", lead.business_name, exc)
            report.add(ItemResult.failure(key, ErrorKind.STORE_ERROR, str(exc)))
            continue

        if stored is None:
            report.add(ItemResult.failure(key, ErrorKind.DUPLICATE_KEY, "already saved"))
            continue

        assign_index += 1
        log_action(
            repository,
            ActionType.LEAD_SCRAPED,
            industry=lead.category,
            lead_id=str(stored.get("id")) if stored.get("id") else None,
            metadata={"business_name": lead.business_name, "city": lead.city, "lead_score": lead.lead_score},
        )
        report.add(ItemResult.success(key, stored))

    logger.info("Saved leads: %s", report.summary())
    return report
