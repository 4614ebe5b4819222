from leadintel.core.errors import BatchReport, ErrorKind, ItemResult


def test_batch_report_routes_results():
    report = BatchReport()
    report.add(ItemResult.success("a", {"id": 1}))
    report.add(ItemResult.failure("b", ErrorKind.DUPLICATE_KEY, "already saved"))
    report.add(ItemResult.failure("c", ErrorKind.UPSTREAM_RATE_LIMIT, "429"))

    assert report.values == [{"id": 1}]
    assert [item.key for item in report.skipped] == ["b"]
    assert [item.key for item in report.failed] == ["c"]
    assert report.summary() == {"processed": 1, "skipped": 1, "failed": 1}
    assert report.message("leads") == "1 leads processed, 1 skipped, 1 failed"


def test_item_result_to_dict():
    assert ItemResult.failure("x", ErrorKind.NOT_FOUND, "lead not found").to_dict() == {
        "key": "x",
        "kind": "not_found",
        "message": "lead not found",
    }
    assert ItemResult.success("y").ok is True
