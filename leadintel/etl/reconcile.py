"""Merge, deduplicate and rank search batches into a prospect list."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from leadintel.etl.normalize import dedup_key, name_key
from leadintel.models import Lead

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    leads: List[Lead] = field(default_factory=list)
    duplicates: int = 0

    @property
    def stats(self) -> Dict[str, int]:
        no_website = sum(1 for lead in self.leads if not lead.has_website)
        return {
            "total": len(self.leads),
            "no_website": no_website,
            "has_website": len(self.leads) - no_website,
            "already_saved": sum(1 for lead in self.leads if lead.already_saved),
            "duplicates": self.duplicates,
        }

    @property
    def message(self) -> str:
        stats = self.stats
        text = f"Found {stats['total']} businesses ({stats['no_website']} without websites"
        if stats["already_saved"]:
            text += f", {stats['already_saved']} already saved"
        return text + ")"


def dedupe_batch(leads: Iterable[Lead]) -> Tuple[List[Lead], int]:
    """Keep the first lead per business name within one batch."""
    seen = set()
    kept: List[Lead] = []
    skipped = 0
    for lead in leads:
        key = name_key(lead.business_name)
        if key in seen:
            skipped += 1
            continue
        seen.add(key)
        kept.append(lead)
    return kept, skipped


def merge_batches(batches: Iterable[Sequence[Lead]]) -> Tuple[List[Lead], int]:
    """Concatenate batches in order, dropping names already seen in an earlier batch.

    Each batch is deduplicated internally first; across batches only the
    business name is compared, so the same chain seen in two searches is kept
    once.
    """
    merged: List[Lead] = []
    prior_names = set()
    skipped = 0
    for batch in batches:
        kept, batch_skipped = dedupe_batch(batch)
        skipped += batch_skipped
        for lead in kept:
            key = name_key(lead.business_name)
            if key in prior_names:
                skipped += 1
                continue
            prior_names.add(key)
            merged.append(lead)
    return merged, skipped


def rank_leads(leads: Iterable[Lead]) -> List[Lead]:
    """No-website leads first, then by score descending; ties keep input order."""
    return sorted(leads, key=lambda lead: (lead.has_website, -lead.lead_score))


def mark_saved(leads: Iterable[Lead], saved_index: Dict[str, str]) -> int:
    """Flag leads whose (name, city) key is already persisted; returns the count."""
    count = 0
    for lead in leads:
        saved_id = saved_index.get(dedup_key(lead.business_name, lead.city))
        if saved_id is not None:
            lead.already_saved = True
            lead.saved_id = saved_id
            count += 1
        else:
            lead.already_saved = False
            lead.saved_id = None
    return count


def reconcile(
    batches: Iterable[Sequence[Lead]],
    saved_index: Optional[Dict[str, str]] = None,
) -> ReconcileResult:
    merged, duplicates = merge_batches(batches)
    ranked = rank_leads(merged)
    if saved_index:
        mark_saved(ranked, saved_index)
    logger.info("Reconciled %d leads (%d duplicates dropped)", len(ranked), duplicates)
    return ReconcileResult(leads=ranked, duplicates=duplicates)
