import json

from models import INDEX_KEYS, PaperRecord
from store import PaperStore, RelevanceCache


def _record(identifier: str = "2503.01078", **overrides) -> PaperRecord:
    fields = {
        "identifier": identifier,
        "source_url": f"https://arxiv.org/abs/{identifier}",
        "title": "Dexterous Grasping",
        "authors": "Jane Doe",
        "publication_date": "2025-03-03",
        "category": "Manipulation",
        "short_summary": "短摘要",
        "long_summary": "## 研究背景与动机\n长摘要",
        "image_urls": ["https://arxiv.org/html/2503.01078v1/x1.png"],
        "tags": ["Manipulation"],
        "last_updated": "2025-03-04T00:00:00+00:00",
    }
    fields.update(overrides)
    return PaperRecord(**fields)


def _store(tmp_path) -> PaperStore:
    return PaperStore.load(tmp_path / "papers.json", tmp_path / "papers-index.json", "https://example.org/")


def test_missing_files_yield_empty_store(tmp_path) -> None:
    store = _store(tmp_path)
    assert len(store) == 0
    assert store.records() == []


def test_corrupt_file_yields_empty_store(tmp_path) -> None:
    (tmp_path / "papers.json").write_text("{not json", encoding="utf-8")
    assert len(_store(tmp_path)) == 0


def test_save_writes_full_document_and_index(tmp_path) -> None:
    store = _store(tmp_path)
    store.upsert(_record())
    store.save()

    full = json.loads((tmp_path / "papers.json").read_text(encoding="utf-8"))
    index = json.loads((tmp_path / "papers-index.json").read_text(encoding="utf-8"))

    assert full["source"] == "https://example.org/"
    assert full["generatedAt"] == index["generatedAt"]
    item = full["items"][0]
    assert item["id"] == item["url"] == "https://arxiv.org/abs/2503.01078"
    assert item["arxivId"] == "2503.01078"
    assert item["detailedSummary"].startswith("## 研究背景与动机")
    assert set(index["items"][0]) == set(INDEX_KEYS)
    assert "detailedSummary" not in index["items"][0]
    assert "短摘要" in (tmp_path / "papers.json").read_text(encoding="utf-8")


def test_round_trip_through_disk(tmp_path) -> None:
    store = _store(tmp_path)
    store.upsert(_record())
    store.save()

    reloaded = _store(tmp_path)
    assert reloaded.get("2503.01078") == _record()
    assert "2503.01078" in reloaded


def test_load_drops_unrecognized_records(tmp_path) -> None:
    payload = {
        "generatedAt": "2025-03-04T00:00:00+00:00",
        "items": [
            {"url": "https://example.org/not-arxiv", "title": "junk"},
            "not a dict",
            {"id": "https://arxiv.org/abs/2503.01078v2", "title": "kept"},
        ],
    }
    (tmp_path / "papers.json").write_text(json.dumps(payload), encoding="utf-8")

    store = _store(tmp_path)
    assert [r.identifier for r in store.records()] == ["2503.01078"]
    assert store.get("2503.01078").title == "kept"


def test_generated_at_unchanged_when_items_unchanged(tmp_path) -> None:
    store = _store(tmp_path)
    store.upsert(_record())
    store.save()
    first = (tmp_path / "papers.json").read_bytes()
    first_index = (tmp_path / "papers-index.json").read_bytes()

    reloaded = _store(tmp_path)
    reloaded.save()

    assert (tmp_path / "papers.json").read_bytes() == first
    assert (tmp_path / "papers-index.json").read_bytes() == first_index


def test_generated_at_moves_when_items_change(tmp_path) -> None:
    store = _store(tmp_path)
    store.upsert(_record())
    store.save()
    store._generated_at = "2000-01-01T00:00:00+00:00"

    store.upsert(_record("2503.09999"))
    store.save()

    full = json.loads((tmp_path / "papers.json").read_text(encoding="utf-8"))
    assert full["generatedAt"] != "2000-01-01T00:00:00+00:00"


def test_reorder_moves_leading_ids_first(tmp_path) -> None:
    store = _store(tmp_path)
    for identifier in ("2503.00001", "2503.00002", "2503.00003"):
        store.upsert(_record(identifier))

    store.reorder(["2503.00003", "2503.00001", "2503.77777"])

    assert [r.identifier for r in store.records()] == ["2503.00003", "2503.00001", "2503.00002"]


def test_relevance_cache_first_decision_wins(tmp_path) -> None:
    cache = RelevanceCache(tmp_path / "filter_cache.json")
    cache.record("https://arxiv.org/abs/2503.01078", True)
    cache.record("https://arxiv.org/abs/2503.01078v3", False)

    assert cache.decision_for("https://arxiv.org/pdf/2503.01078.pdf") is True
    assert cache.rejected == []
    assert cache.decision_for("https://arxiv.org/abs/2503.00001") is None


def test_relevance_cache_round_trip(tmp_path) -> None:
    path = tmp_path / "filter_cache.json"
    cache = RelevanceCache(path, kept=["https://arxiv.org/abs/2503.00001"], rejected=["https://arxiv.org/abs/2503.00002"])
    cache.save()

    reloaded = RelevanceCache.load(path)
    assert reloaded.kept == ["https://arxiv.org/abs/2503.00001"]
    assert reloaded.decision_for("https://arxiv.org/abs/2503.00002") is False


def test_relevance_cache_tolerates_corrupt_file(tmp_path) -> None:
    path = tmp_path / "filter_cache.json"
    path.write_text("[1, 2", encoding="utf-8")
    cache = RelevanceCache.load(path)
    assert cache.kept == [] and cache.rejected == []
