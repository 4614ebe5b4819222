"""Address and business-name normalisation used for dedup and geography."""

import logging
import re
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

_TRAILING_ZIP = re.compile(r"\s+\d{4,5}(?:-\d{4})?$")


def _strip_zip(segment: str) -> str:
    return _TRAILING_ZIP.sub("", segment).strip()


def parse_city_state(address: Optional[str], fallback_city: str) -> Tuple[str, str]:
    """Best-effort split of a Google formatted address into (city, state).

    "123 Main St, Miami, FL 33132, USA" -> ("Miami", "FL")
    "Miami, FL 33132, USA"              -> ("Miami", "FL")
    "Miami, USA"                        -> ("Miami", "")
    Anything shorter falls back to the caller's hint with an empty state.
    """
    parts = [part.strip() for part in (address or "").split(",")]

    if len(parts) >= 4:
        return parts[-3], _strip_zip(parts[-2])
    if len(parts) == 3:
        return parts[0], _strip_zip(parts[1])
    if len(parts) == 2:
        return parts[0], ""

    logger.debug("Address %r has too few segments; using fallback city %r", address, fallback_city)
    return fallback_city, ""


def name_key(business_name: Optional[str]) -> str:
    return (business_name or "").strip().lower()


def dedup_key(business_name: Optional[str], city: Optional[str]) -> str:
    """Canonical identity of a lead: lowercased, trimmed name and city."""
    return f"{name_key(business_name)}::{(city or '').strip().lower()}"
