"""Core data models shared by the lead intelligence pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set


class WebsiteQuality(str, Enum):
    """Coarse suitability of a business's web presence."""

    NONE = "none"
    POOR = "poor"
    DECENT = "decent"


class LeadStatus(str, Enum):
    NEW = "new"
    SAVED = "saved"
    CONTACTED = "contacted"
    RESPONDED = "responded"
    MEETING = "meeting"
    CLOSED = "closed"
    DEAD = "dead"


class CallOutcome(str, Enum):
    INTERESTED = "interested"
    CALL_BACK = "call_back"
    VOICEMAIL = "voicemail"
    NOT_INTERESTED = "not_interested"
    NO_ANSWER = "no_answer"
    WRONG_NUMBER = "wrong_number"


class ActionType(str, Enum):
    """Event kinds recorded in the intelligence log."""

    EMAIL_GENERATED = "email_generated"
    EMAIL_SENT = "email_sent"
    SCRIPT_GENERATED = "script_generated"
    CALL_OUTCOME = "call_outcome"
    CASE_STUDY_GENERATED = "case_study_generated"
    CASE_STUDY_SAVED = "case_study_saved"
    LEAD_SCRAPED = "lead_scraped"


# Attributes that only exist on scan results and must never reach the store.
_SCAN_ONLY_FIELDS = ("already_saved", "saved_id")


@dataclass
class Lead:
    """A business prospect, either fresh from a search or loaded from the store."""

    business_name: str
    category: Optional[str] = None
    address: str = ""
    city: str = ""
    state: str = ""
    phone: Optional[str] = None
    email: Optional[str] = None
    google_rating: Optional[float] = None
    review_count: int = 0
    has_website: bool = False
    website_url: Optional[str] = None
    website_quality: WebsiteQuality = WebsiteQuality.NONE
    lead_score: int = 0
    status: LeadStatus = LeadStatus.NEW
    call_outcome: Optional[CallOutcome] = None
    callback_date: Optional[str] = None
    last_called_at: Optional[str] = None
    tags: Set[str] = field(default_factory=set)
    claimed_by: Optional[str] = None
    google_place_id: Optional[str] = None
    google_maps_url: Optional[str] = None
    phone_script: Optional[str] = None
    id: Optional[str] = None
    version: int = 1
    already_saved: bool = False
    saved_id: Optional[str] = None

    def to_row(self) -> Dict[str, Any]:
        """Flatten into a store row, dropping scan-only attributes."""
        row = asdict(self)
        for name in _SCAN_ONLY_FIELDS:
            row.pop(name, None)
        row["website_quality"] = self.website_quality.value
        row["status"] = self.status.value
        row["call_outcome"] = self.call_outcome.value if self.call_outcome else None
        row["tags"] = sorted(self.tags)
        return row

    def to_payload(self) -> Dict[str, Any]:
        """JSON-friendly view including scan-only attributes."""
        payload = self.to_row()
        payload["already_saved"] = self.already_saved
        payload["saved_id"] = self.saved_id
        return payload

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Lead":
        known = {name for name in cls.__dataclass_fields__}
        values = {key: value for key, value in row.items() if key in known}
        if values.get("website_quality"):
            values["website_quality"] = WebsiteQuality(values["website_quality"])
        if values.get("status"):
            values["status"] = LeadStatus(values["status"])
        if values.get("call_outcome"):
            values["call_outcome"] = CallOutcome(values["call_outcome"])
        values["tags"] = set(values.get("tags") or [])
        if values.get("review_count") is None:
            values["review_count"] = 0
        if values.get("lead_score") is None:
            values["lead_score"] = 0
        if values.get("id") is not None:
            values["id"] = str(values["id"])
        for name in ("callback_date", "last_called_at"):
            value = values.get(name)
            if value is not None and hasattr(value, "isoformat"):
                values[name] = value.isoformat()
        return cls(**values)


@dataclass
class IntelligenceLogEntry:
    """Append-only event used to derive per-industry insight."""

    action_type: ActionType
    industry: Optional[str] = None
    lead_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    outcome: Optional[str] = None
    created_at: Optional[str] = None

    def to_row(self) -> Dict[str, Any]:
        """Insert payload; ``created_at`` is assigned by the store."""
        return {
            "action_type": self.action_type.value,
            "industry": self.industry,
            "lead_id": self.lead_id,
            "metadata": dict(self.metadata),
            "outcome": self.outcome,
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "IntelligenceLogEntry":
        created_at = row.get("created_at")
        if created_at is not None and hasattr(created_at, "isoformat"):
            created_at = created_at.isoformat()
        return cls(
            action_type=ActionType(row["action_type"]),
            industry=row.get("industry"),
            lead_id=str(row["lead_id"]) if row.get("lead_id") is not None else None,
            metadata=dict(row.get("metadata") or {}),
            outcome=row.get("outcome"),
            created_at=created_at,
        )


@dataclass
class AuditResult:
    """Structural and performance assessment of a live page."""

    url: str
    load_time_ms: int = 0
    ttfb_ms: int = 0
    page_size_kb: int = 0
    status_code: int = 0
    https: bool = False
    has_viewport: bool = False
    has_responsive_meta: bool = False
    has_title: bool = False
    title: str = ""
    has_description: bool = False
    description: str = ""
    has_h1: bool = False
    h1_count: int = 0
    image_count: int = 0
    script_count: int = 0
    stylesheet_count: int = 0
    inline_style_count: int = 0
    security_headers: Dict[str, bool] = field(default_factory=dict)
    issues: List[str] = field(default_factory=list)
    positives: List[str] = field(default_factory=list)
    overall_score: int = 0
    ai_pitch: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
