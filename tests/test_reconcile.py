from leadintel.etl import reconcile
from leadintel.models import Lead


def lead(name, city="Miami", score=50, has_website=False):
    return Lead(business_name=name, city=city, lead_score=score, has_website=has_website)


def names(leads):
    return [item.business_name for item in leads]


def test_duplicate_across_batches_is_dropped_during_merge():
    first = [lead("Joe's Pizza", score=40), lead("Acme Plumbing", score=60)]
    second = [lead("joe's pizza ", score=90), lead("Bright Smiles", score=70)]

    result = reconcile.reconcile([first, second])

    assert names(result.leads).count("Joe's Pizza") == 1
    assert "joe's pizza " not in names(result.leads)
    assert result.duplicates == 1
    assert result.stats["total"] == 3


def test_duplicate_within_batch_keeps_first():
    kept, skipped = reconcile.dedupe_batch([lead("Acme", score=10), lead("ACME", score=99)])

    assert names(kept) == ["Acme"]
    assert kept[0].lead_score == 10
    assert skipped == 1


def test_merge_compares_names_only_across_batches():
    merged, skipped = reconcile.merge_batches([[lead("Starbucks", city="Miami")], [lead("Starbucks", city="Tampa")]])

    assert len(merged) == 1
    assert merged[0].city == "Miami"
    assert skipped == 1


def test_rank_puts_no_website_first_then_score():
    leads = [
        lead("Site High", score=90, has_website=True),
        lead("None Low", score=40),
        lead("None High", score=80),
        lead("Site Low", score=10, has_website=True),
    ]

    assert names(reconcile.rank_leads(leads)) == ["None High", "None Low", "Site High", "Site Low"]


def test_rank_is_stable_for_ties():
    leads = [lead("B", score=50), lead("A", score=50), lead("C", score=50)]

    assert names(reconcile.rank_leads(leads)) == ["B", "A", "C"]


def test_mark_saved_uses_name_and_city():
    leads = [lead("Joe's Pizza", city="Miami"), lead("Joe's Pizza", city="Tampa")]

    count = reconcile.mark_saved(leads, {"joe's pizza::miami": "lead-7"})

    assert count == 1
    assert leads[0].already_saved is True
    assert leads[0].saved_id == "lead-7"
    assert leads[1].already_saved is False
    assert leads[1].saved_id is None


def test_reconcile_stats_and_message():
    batches = [[lead("A"), lead("B", has_website=True)]]

    result = reconcile.reconcile(batches, {"a::miami": "lead-1"})

    assert result.stats == {
        "total": 2,
        "no_website": 1,
        "has_website": 1,
        "already_saved": 1,
        "duplicates": 0,
    }
    assert result.message == "Found 2 businesses (1 without websites, 1 already saved)"


def test_reconcile_empty_input():
    result = reconcile.reconcile([])

    assert result.leads == []
    assert result.message == "Found 0 businesses (0 without websites)"
