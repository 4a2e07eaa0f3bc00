"""Elasticsearch store against a mocked client."""

from pathlib import Path
from unittest.mock import MagicMock

from elasticsearch import ConnectionError as ESConnectionError

from unit_decoder import es_store
from unit_decoder.es_store import ElasticsearchUnitStore
from unit_decoder.models import UnitStatus
from unit_decoder.search import SearchService

ALIAS_HIT = {
    "_source": {
        "unit_id": "3",
        "unit_name": "Tola",
        "alias": "Tola",
        "normalized_alias": "tola",
        "phonetic_key": "TL",
        "status": "verified",
        "category": "Mass",
    }
}
UNIT_SOURCE = {
    "id": 3,
    "name": "Tola",
    "name_normalized": "tola",
    "category": "Mass",
    "base_unit": "kilogram",
    "conversion_factor": 0.0116638038,
    "description": "Traditional unit of mass",
    "description_normalized": "traditional unit of mass",
    "status": "verified",
    "aliases": ["Tola"],
}


def make_store(client, mappings_dir="mappings"):
    return ElasticsearchUnitStore(client, units_index="units", aliases_index="aliases", mappings_dir=mappings_dir)


def test_exact_lookup_filters_verified_and_category():
    client = MagicMock()
    client.search.return_value = {"hits": {"hits": [ALIAS_HIT]}}

    matches = make_store(client).find_by_exact_normalized("tola", category="Mass")

    assert matches[0][0] == "3"
    assert matches[0][1].phonetic_key == "TL"
    query = client.search.call_args.kwargs["query"]
    assert query["bool"]["must"] == [{"term": {"normalized_alias": "tola"}}]
    assert {"term": {"status": "verified"}} in query["bool"]["filter"]
    assert {"term": {"category": "Mass"}} in query["bool"]["filter"]


def test_substring_lookup_escapes_wildcards():
    client = MagicMock()
    client.search.return_value = {"hits": {"hits": []}}

    make_store(client).find_by_normalized_substring("a*b?")

    clause = client.search.call_args.kwargs["query"]["bool"]["must"][0]
    assert clause["wildcard"]["normalized_alias"]["value"] == "*a\\*b\\?*"
    assert clause["wildcard"]["normalized_alias"]["case_insensitive"] is True


def test_transport_errors_read_as_empty_index():
    client = MagicMock()
    client.search.side_effect = ESConnectionError("down")
    client.count.side_effect = ESConnectionError("down")
    store = make_store(client)

    assert store.find_by_phonetic_key("TL") == []
    assert store.has_aliases() is False


def test_get_units_keeps_requested_ids():
    client = MagicMock()
    client.mget.return_value = {
        "docs": [
            {"_id": "3", "found": True, "_source": UNIT_SOURCE},
            {"_id": "4", "found": False},
        ]
    }

    units = make_store(client).get_units(["3", "4"])

    assert list(units) == ["3"]
    assert units["3"].name == "Tola"
    assert units["3"].status == UnitStatus.VERIFIED


def test_add_units_bulk_indexes_units_and_aliases(monkeypatch, unit_factory):
    captured = []
    monkeypatch.setattr(es_store.helpers, "bulk", lambda client, actions, **kwargs: captured.extend(actions))
    store = make_store(MagicMock())

    assert store.add_units([(unit_factory(3, "Tola"), ["tolah"])]) == 1

    indices = [action["_index"] for action in captured]
    assert indices == ["units", "aliases", "aliases"]
    assert captured[0]["_source"]["name_normalized"] == "tola"
    assert captured[2]["_source"]["phonetic_key"] == "TL"
    assert captured[2]["_source"]["status"] == "verified"


def test_ensure_indices_creates_missing_indices():
    client = MagicMock()
    client.indices.exists.side_effect = [False, True]

    make_store(client, mappings_dir=Path(__file__).resolve().parent.parent / "mappings").ensure_indices()

    client.indices.create.assert_called_once()
    kwargs = client.indices.create.call_args.kwargs
    assert kwargs["index"] == "units"
    assert kwargs["mappings"]["properties"]["status"] == {"type": "keyword"}


def test_service_over_elasticsearch_store():
    client = MagicMock()
    client.count.return_value = {"count": 1}

    def search(index, query, size):
        clause = query["bool"]["must"][0]
        if clause.get("term", {}).get("phonetic_key") == "TL":
            return {"hits": {"hits": [ALIAS_HIT]}}
        return {"hits": {"hits": []}}

    client.search.side_effect = search
    client.mget.return_value = {"docs": [{"_id": "3", "found": True, "_source": UNIT_SOURCE}]}

    results = SearchService(make_store(client)).search("toolah")

    assert [unit.name for unit in results] == ["Tola"]


def test_add_units_clears_previous_aliases_before_indexing(monkeypatch, unit_factory):
    calls = []
    client = MagicMock()
    client.delete_by_query.side_effect = lambda **kwargs: calls.append(("delete", kwargs))
    monkeypatch.setattr(
        es_store.helpers, "bulk", lambda client, actions, **kwargs: calls.append(("bulk", list(actions)))
    )
    store = make_store(client)

    store.add_units([(unit_factory(3, "Tola"), ["tolah", "bhori"])])
    store.add_units([(unit_factory(3, "Tola"), [])])

    assert [name for name, _payload in calls] == ["delete", "bulk", "delete", "bulk"]
    assert calls[2][1]["index"] == "aliases"
    assert calls[2][1]["query"] == {"terms": {"unit_id": ["3"]}}
    alias_ids = [action["_id"] for action in calls[3][1] if action["_index"] == "aliases"]
    assert alias_ids == ["3:0"]


def test_replace_aliases_reindexes_through_add_units(monkeypatch):
    client = MagicMock()
    client.mget.return_value = {"docs": [{"_id": "3", "found": True, "_source": UNIT_SOURCE}]}
    captured = []
    monkeypatch.setattr(es_store.helpers, "bulk", lambda client, actions, **kwargs: captured.extend(actions))
    store = make_store(client)

    store.replace_aliases(3, ["bhori"])

    client.delete_by_query.assert_called_once()
    aliases = [action["_source"]["alias"] for action in captured if action["_index"] == "aliases"]
    assert aliases == ["Tola", "bhori"]
