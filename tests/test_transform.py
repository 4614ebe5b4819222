from leadintel.etl import transform
from leadintel.models import WebsiteQuality


PLACE = {
    "id": "ChIJ123",
    "displayName": {"text": "Joe's Pizza", "languageCode": "en"},
    "formattedAddress": "123 Main St, Miami, FL 33132, USA",
    "nationalPhoneNumber": "(305) 555-0100",
    "rating": 4.8,
    "userRatingCount": 250,
    "primaryTypeDisplayName": {"text": "Pizza restaurant"},
    "googleMapsUri": "https://maps.google.com/?cid=1",
    "businessStatus": "OPERATIONAL",
}


def test_normalize_phone_formats_e164():
    assert transform.normalize_phone("(305) 555-0100") == "+13055550100"
    assert transform.normalize_phone("+44 20 7946 0958", "US") == "+442079460958"


def test_normalize_phone_keeps_unparseable_values():
    assert transform.normalize_phone("call us") == "call us"
    assert transform.normalize_phone("  ") is None
    assert transform.normalize_phone(None) is None


def test_to_business_maps_places_fields():
    business = transform.to_business(PLACE, "restaurants")

    assert business["google_place_id"] == "ChIJ123"
    assert business["business_name"] == "Joe's Pizza"
    assert business["category"] == "Pizza restaurant"
    assert business["review_count"] == 250
    assert business["has_website"] is False
    assert business["website_url"] is None
    assert business["google_maps_url"] == "https://maps.google.com/?cid=1"


def test_to_business_defaults_for_sparse_place():
    business = transform.to_business({"websiteUri": "https://facebook.com/x"}, "plumbers")

    assert business["business_name"] == "Unknown"
    assert business["category"] == "plumbers"
    assert business["review_count"] == 0
    assert business["google_rating"] is None
    assert business["has_website"] is True
    assert business["business_status"] == "OPERATIONAL"


def test_to_lead_parses_location_and_scores():
    lead = transform.to_lead(transform.to_business(PLACE, "restaurants"), "Miami, FL", "restaurants")

    assert lead.city == "Miami"
    assert lead.state == "FL"
    assert lead.phone == "+13055550100"
    assert lead.website_quality is WebsiteQuality.NONE
    assert lead.lead_score == 85
    assert lead.google_place_id == "ChIJ123"


def test_to_lead_classifies_social_profile_as_poor():
    place = dict(PLACE, websiteUri="https://www.facebook.com/joespizza", formattedAddress="Downtown")
    lead = transform.to_lead(transform.to_business(place, "restaurants"), "Miami, FL", "restaurants")

    assert lead.has_website is True
    assert lead.website_quality is WebsiteQuality.POOR
    assert lead.city == "Miami, FL"
    assert lead.lead_score == 25 + 20 + 15 + 10
