import pytest

from leadintel.etl.normalize import dedup_key, name_key, parse_city_state


@pytest.mark.parametrize(
    "address, expected",
    [
        ("123 Main St, Miami, FL 33132, USA", ("Miami", "FL")),
        ("Suite 4, 123 Main St, Austin, TX 78701-1234, USA", ("Austin", "TX")),
        ("Miami, FL 33132, USA", ("Miami", "FL")),
        ("Honolulu, HI, USA", ("Honolulu", "HI")),
        ("Miami, USA", ("Miami", "")),
    ],
)
def test_parse_city_state_by_segment_count(address, expected):
    assert parse_city_state(address, "Fallback, ZZ") == expected


def test_parse_city_state_falls_back_for_short_addresses():
    assert parse_city_state("Downtown", "Miami, FL") == ("Miami, FL", "")
    assert parse_city_state("", "Miami, FL") == ("Miami, FL", "")
    assert parse_city_state(None, "Miami, FL") == ("Miami, FL", "")


def test_dedup_key_ignores_case_and_surrounding_whitespace():
    assert dedup_key("  Joe's Pizza ", "MIAMI ") == "joe's pizza::miami"
    assert dedup_key("Joe's Pizza", "Miami") == dedup_key("joe's pizza", " miami")
    assert dedup_key("Joe's Pizza", None) == "joe's pizza::"


def test_name_key_handles_missing_name():
    assert name_key(None) == ""
    assert name_key(" Acme Plumbing ") == "acme plumbing"
