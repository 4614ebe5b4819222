import copy
import itertools
import sys
from pathlib import Path

import pytest

# Ensure the `leadintel` package is importable when running pytest from the repo root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from leadintel.etl.normalize import dedup_key  # noqa: E402


class FakeRepository:
    """In-memory stand-in for PostgresRepository."""

    def __init__(self):
        self.leads = {}
        self.logs = []
        self.daily_picks = []
        self.outreach = []
        self.update_calls = []
        self._ids = itertools.count(1)

    def add_lead(self, **fields):
        row = {
            "business_name": "Unknown",
            "category": None,
            "city": "",
            "state": "",
            "lead_score": 0,
            "status": "saved",
            "call_outcome": None,
            "tags": [],
        }
        row.update(fields)
        return self.insert_lead(row)["id"]

    def find_by_key(self, business_name, city):
        key = dedup_key(business_name, city)
        for row in self.leads.values():
            if dedup_key(row["business_name"], row.get("city")) == key:
                return copy.deepcopy(row)
        return None

    def saved_index(self):
        return {dedup_key(row["business_name"], row.get("city")): lead_id for lead_id, row in self.leads.items()}

    def get_lead(self, lead_id):
        row = self.leads.get(lead_id)
        return copy.deepcopy(row) if row else None

    def insert_lead(self, row):
        if self.find_by_key(row["business_name"], row.get("city", "")):
            return None
        lead_id = f"lead-{next(self._ids)}"
        stored = dict(row, id=lead_id, version=1)
        self.leads[lead_id] = stored
        return copy.deepcopy(stored)

    def update_lead(self, lead_id, changes, expected_version=None):
        self.update_calls.append((lead_id, dict(changes), expected_version))
        row = self.leads.get(lead_id)
        if row is None:
            return None
        if expected_version is not None and row["version"] != expected_version:
            return None
        row.update(changes)
        row["version"] += 1
        return copy.deepcopy(row)

    def claim_counts(self, members):
        counts = {member: 0 for member in members}
        for row in self.leads.values():
            if row.get("claimed_by") in counts:
                counts[row["claimed_by"]] += 1
        return counts

    def insert_outreach(self, row):
        stored = dict(row, id=f"draft-{len(self.outreach) + 1}")
        self.outreach.append(stored)
        return dict(stored)

    def append_log(self, entry):
        self.logs.append(dict(entry))

    def recent_log_entries(self, action_type, industry, limit=50):
        matches = [
            entry
            for entry in self.logs
            if entry["action_type"] == action_type and industry.lower() in (entry.get("industry") or "")
        ]
        return list(reversed(matches))[:limit]

    def replace_daily_picks(self, rows):
        self.daily_picks = [dict(row) for row in rows]


@pytest.fixture
def repo():
    return FakeRepository()
