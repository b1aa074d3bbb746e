from __future__ import annotations

from navigate.search import search


def test_results_in_collection_order(store):
    results = search(store, "zero")
    assert [r.id for r in results] == [
        "org-zeroavia-001",
        "org-airbus-001",
        "org-british-airways-001",
        "fund-001",
        "proj-zeroavia-h2-flight-001",
    ]
    assert [r.type for r in results] == ["stakeholder", "stakeholder", "stakeholder", "funding", "project"]


def test_limit_truncates_in_order(store):
    results = search(store, "hydrogen", limit=3)
    assert len(results) == 3
    assert all(r.type == "stakeholder" for r in results)
    assert len(search(store, "hydrogen")) == 10


def test_blank_query_returns_nothing(store):
    assert search(store, "") == []
    assert search(store, "   ") == []
    assert search(store, None) == []


def test_non_positive_limit_returns_nothing(store):
    assert search(store, "hydrogen", limit=0) == []
    assert search(store, "hydrogen", limit=-1) == []
    assert len(search(store, "hydrogen", limit=1)) == 1


def test_case_insensitive(store):
    assert [r.id for r in search(store, "ZEROAVIA")][0] == "org-zeroavia-001"


def test_stakeholder_sector_is_searchable(store):
    ids = [r.id for r in search(store, "Energy", limit=50)]
    assert "org-manchester-001" in ids
    assert "tech-h2-electrolysis-001" in ids


def test_funding_result_uses_program_and_impact(store):
    results = search(store, "Future Flight Challenge")
    assert len(results) == 1
    hit = results[0]
    assert hit.id == "fund-004"
    assert hit.name == "Future Flight Challenge"
    assert hit.description == "Research into fuel cell optimization for aviation"


def test_works_on_raw_dataset():
    from navigate.sample_data import build_sample_dataset

    assert search(build_sample_dataset(), "Linde")[0].id == "org-linde-001"
