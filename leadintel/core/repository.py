"""Storage capabilities the pipeline depends on.

Components receive a repository explicitly; ``PostgresRepository`` in
``leadintel.core.db`` is the production implementation.
"""

from typing import Any, Dict, List, Optional, Protocol, Sequence


class LeadRepository(Protocol):
    def find_by_key(self, business_name: str, city: str) -> Optional[Dict[str, Any]]:
        """Return the lead whose (name, city) matches case- and whitespace-insensitively."""

    def saved_index(self) -> Dict[str, str]:
        """Map every persisted dedup key to its lead id."""

    def get_lead(self, lead_id: str) -> Optional[Dict[str, Any]]:
        ...

    def insert_lead(self, row: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Insert and return the stored row, or ``None`` when the dedup key already exists."""

    def update_lead(
        self, lead_id: str, changes: Dict[str, Any], expected_version: Optional[int] = None
    ) -> Optional[Dict[str, Any]]:
        """Apply ``changes``; ``None`` when ``expected_version`` no longer matches."""

    def claim_counts(self, members: Sequence[str]) -> Dict[str, int]:
        ...

    def insert_outreach(self, row: Dict[str, Any]) -> Dict[str, Any]:
        """Store an email draft for a lead and return the stored row."""

    def append_log(self, entry: Dict[str, Any]) -> None:
        ...

    def recent_log_entries(self, action_type: str, industry: str, limit: int = 50) -> List[Dict[str, Any]]:
        """Newest first; ``industry`` matches as a substring of the stored label."""

    def replace_daily_picks(self, rows: Sequence[Dict[str, Any]]) -> None:
        ...
