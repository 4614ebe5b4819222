"""Utilities for transforming Places API responses into leads."""

import logging
from typing import Any, Dict, Optional

import phonenumbers

from leadintel.core.scoring import score_lead
from leadintel.etl.normalize import parse_city_state
from leadintel.etl.website_quality import classify_website
from leadintel.models import Lead

logger = logging.getLogger(__name__)


def normalize_phone(raw: Optional[str], default_region: Optional[str] = "US") -> Optional[str]:
    """Return an E.164 number when parseable, otherwise the trimmed raw value."""
    if not raw or not raw.strip():
        return None
    value = raw.strip()
    try:
        parsed = phonenumbers.parse(value, default_region)
    except phonenumbers.NumberParseException:
        return value
    if not phonenumbers.is_possible_number(parsed):
        return value
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def to_business(place: Dict[str, Any], fallback_category: str) -> Dict[str, Any]:
    """Flatten a Places API (New) ``place`` object into a business dict."""
    display_name = place.get("displayName") or {}
    primary_type = place.get("primaryTypeDisplayName") or {}
    website = place.get("websiteUri") or None

    return {
        "google_place_id": place.get("id"),
        "business_name": display_name.get("text") or "Unknown",
        "category": primary_type.get("text") or fallback_category,
        "address": place.get("formattedAddress") or "",
        "phone": place.get("nationalPhoneNumber") or None,
        "google_rating": place.get("rating") or None,
        "review_count": place.get("userRatingCount") or 0,
        "has_website": bool(website),
        "website_url": website,
        "google_maps_url": place.get("googleMapsUri") or None,
        "business_status": place.get("businessStatus") or "OPERATIONAL",
    }


def to_lead(
    business: Dict[str, Any],
    location: str,
    category: str,
    default_region: Optional[str] = "US",
) -> Lead:
    """Build a classified and scored lead from a business dict."""
    city, state = parse_city_state(business.get("address"), location)
    website_url = business.get("website_url")

    lead = Lead(
        business_name=business.get("business_name") or "Unknown",
        category=business.get("category") or category,
        address=business.get("address") or "",
        city=city,
        state=state,
        phone=normalize_phone(business.get("phone"), default_region),
        email=business.get("email"),
        google_rating=business.get("google_rating"),
        review_count=int(business.get("review_count") or 0),
        has_website=bool(business.get("has_website", bool(website_url))),
        website_url=website_url,
        website_quality=classify_website(website_url),
        google_place_id=business.get("google_place_id"),
        google_maps_url=business.get("google_maps_url"),
    )
    lead.lead_score = score_lead(lead)
    return lead
