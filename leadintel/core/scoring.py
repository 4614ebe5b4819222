"""Lead scoring engine.

``score_lead`` maps a lead's attributes to a 0-100 integer; higher means a
better prospect for a website build. ``rescore_lead`` moves that score as
engagement outcomes arrive, reversing the previous outcome's delta first so
re-logging or changing an outcome never double counts.
"""

import logging
from typing import Optional

from leadintel.models import Lead, WebsiteQuality

logger = logging.getLogger(__name__)

MIN_SCORE = 0
MAX_SCORE = 100

WEBSITE_POINTS = {
    WebsiteQuality.NONE: 40,
    WebsiteQuality.POOR: 25,
    WebsiteQuality.DECENT: 5,
}
# (threshold, points), highest tier first; first match wins.
REVIEW_TIERS = ((200, 20), (100, 16), (50, 12), (20, 8), (5, 4))
RATING_TIERS = ((4.5, 15), (4.0, 12), (3.5, 8), (3.0, 4))
PHONE_POINTS = 10
EMAIL_POINTS = 15

SCORE_ADJUSTMENTS = {
    "interested": 20,
    "call_back": 10,
    "no_answer": 0,
    "not_interested": -15,
    "wrong_number": -10,
    "email_sent": 5,
    "email_opened": 10,
    "responded": 25,
}


def _clamp(score: int) -> int:
    return max(MIN_SCORE, min(MAX_SCORE, score))


def _tier_points(value: float, tiers) -> int:
    for threshold, points in tiers:
        if value >= threshold:
            return points
    return 0


def score_lead(lead: Lead) -> int:
    if not lead.has_website:
        quality = WebsiteQuality.NONE
    else:
        quality = WebsiteQuality(lead.website_quality)

    score = WEBSITE_POINTS[quality]
    score += _tier_points(lead.review_count or 0, REVIEW_TIERS)
    score += _tier_points(lead.google_rating or 0.0, RATING_TIERS)
    if lead.phone:
        score += PHONE_POINTS
    if lead.email:
        score += EMAIL_POINTS
    return _clamp(score)


def _action_name(action) -> Optional[str]:
    if action is None:
        return None
    return getattr(action, "value", action)


def score_adjustment(action) -> int:
    """Signed delta for an engagement action; unknown actions count as 0."""
    return SCORE_ADJUSTMENTS.get(_action_name(action), 0)


def rescore_lead(current_score: int, action, previous_outcome=None) -> int:
    """Apply ``action`` on top of ``current_score``.

    Re-logging the same outcome is a no-op. When ``previous_outcome`` is set
    its delta is reversed before the new one is applied. ``action=None``
    clears the previous outcome and only reverses its delta.
    """
    action_name = _action_name(action)
    previous_name = _action_name(previous_outcome)

    if previous_name and previous_name == action_name:
        return current_score

    score = current_score
    if previous_name:
        score -= score_adjustment(previous_name)
    if action_name:
        score += score_adjustment(action_name)
    return _clamp(score)


def score_label(score: int) -> str:
    if score >= 80:
        return "HOT"
    if score >= 60:
        return "WARM"
    if score >= 40:
        return "COOL"
    return "COLD"
