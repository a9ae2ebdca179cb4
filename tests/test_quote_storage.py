"""Local save/restore of the last quote and its history."""
import json

import pytest

from devispro.schemas import Quote
from devispro.services.quote_service import add_line_item
from devispro.services.quote_storage import (
    QuoteStorage, JsonFileStore, LAST_QUOTE_KEY, HISTORY_KEY, HISTORY_LIMIT,
)


def _quote(n: int) -> Quote:
    q = Quote(id=f"DEV-{n}")
    q.details.number = f"DEV-{n}"
    q.client.name = f"Client {n}"
    add_line_item(q, description="Prestation", quantity=n, price=10, tvaRate=20)
    return q


def test_save_then_load_round_trip():
    storage = QuoteStorage({})
    q = _quote(2)
    add_line_item(q, quantity=1, price=10, tvaRate=0)
    assert storage.save(q) is True

    loaded = storage.load()
    assert loaded is not None
    assert loaded.services == q.services
    assert loaded.totals == q.totals
    assert loaded.client.name == "Client 2"


def test_history_keeps_twenty_most_recent_first():
    storage = QuoteStorage({})
    for n in range(1, 26):
        storage.save(_quote(n))

    history = storage.history()
    assert len(history) == HISTORY_LIMIT
    assert [h["number"] for h in history] == [f"DEV-{n}" for n in range(25, 5, -1)]
    assert history[0]["clientName"] == "Client 25"
    assert history[0]["totalTTC"] == pytest.approx(300)


def test_load_returns_none_when_absent_or_corrupt():
    store = {}
    storage = QuoteStorage(store)
    assert storage.load() is None

    store[LAST_QUOTE_KEY] = "{pas du json"
    assert storage.load() is None

    store[LAST_QUOTE_KEY] = json.dumps(["liste"])
    assert storage.load() is None

    store[LAST_QUOTE_KEY] = json.dumps({"id": "X", "services": [{"id": 1, "tvaRate": 42}]})
    assert storage.load() is None

    store[HISTORY_KEY] = "corrompu"
    assert storage.history() == []


def test_stale_totals_are_recomputed_on_load():
    store = {}
    storage = QuoteStorage(store)
    storage.save(_quote(1))
    record = json.loads(store[LAST_QUOTE_KEY])
    record["totals"] = {"ht": 999, "tva": 999, "ttc": 999}
    store[LAST_QUOTE_KEY] = json.dumps(record)

    assert storage.load().totals.ttc == 12


def test_json_file_store_persists_between_instances(tmp_path):
    path = tmp_path / "local" / "storage.json"
    QuoteStorage(JsonFileStore(path)).save(_quote(3))

    reopened = QuoteStorage(JsonFileStore(path))
    assert reopened.load().details.number == "DEV-3"
    assert len(reopened.history()) == 1


def test_json_file_store_survives_corrupt_file(tmp_path):
    path = tmp_path / "storage.json"
    path.write_text("not json", encoding="utf-8")
    storage = QuoteStorage(JsonFileStore(path))
    assert storage.load() is None
    assert storage.save(_quote(1)) is True
    assert storage.load() is not None


def test_loaded_lines_get_unique_ids():
    record = {"id": "X", "services": [{"id": 1, "price": 10}, {"id": 1, "price": 20}, {"id": 2, "price": 30}]}
    loaded = QuoteStorage({LAST_QUOTE_KEY: json.dumps(record)}).load()
    assert [s.id for s in loaded.services] == [1, 3, 2]


def test_history_of_wrong_type_is_reset_and_saving_recovers():
    store = {HISTORY_KEY: 5}
    storage = QuoteStorage(store)
    assert storage.history() == []

    assert storage.save(_quote(1)) is True
    assert [h["number"] for h in storage.history()] == ["DEV-1"]
