"""Superficial website quality classification."""

from typing import Optional

from leadintel.models import WebsiteQuality

# Hosts that mean "no real website": social profiles, directory listings and
# default builder subdomains.
POOR_INDICATORS = (
    "facebook.com",
    "instagram.com",
    "yelp.com",
    "yellowpages.com",
    "wix.com/site",
    "squarespace.com",
)


def classify_website(website_url: Optional[str]) -> WebsiteQuality:
    if not website_url or not website_url.strip():
        return WebsiteQuality.NONE

    lowered = website_url.lower()
    if any(indicator in lowered for indicator in POOR_INDICATORS):
        return WebsiteQuality.POOR
    return WebsiteQuality.DECENT
