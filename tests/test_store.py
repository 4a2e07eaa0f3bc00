"""In-memory store: alias indexing, visibility and concurrent access."""

import threading

import pytest

from unit_decoder.errors import UnitNotFoundError
from unit_decoder.models import UnitStatus
from unit_decoder.store import InMemoryUnitStore, build_alias_rows


def test_build_alias_rows_always_includes_name(unit_factory):
    rows = build_alias_rows(unit_factory(1, "Tōlā"), ["tola", "Tolah", " "])

    assert [row.alias for row in rows] == ["Tōlā", "Tolah"]
    assert rows[0].normalized_alias == "tola"
    assert rows[0].phonetic_key == "TL"


def test_lookups_only_return_verified_units(unit_factory):
    store = InMemoryUnitStore()
    store.add_units(
        [
            (unit_factory(1, "Tola"), []),
            (unit_factory(2, "Tolah", status=UnitStatus.PENDING), []),
        ]
    )

    assert [unit_id for unit_id, _ in store.find_by_normalized_substring("tol")] == [1]
    assert store.find_by_exact_normalized("tolah") == []


def test_lookup_by_category(seeded_store):
    matches = seeded_store.find_by_phonetic_key("FT", category="Mass")

    assert matches == []
    assert {unit_id for unit_id, _ in seeded_store.find_by_phonetic_key("FT", category="Length")} == {4}


def test_has_aliases(unit_factory):
    store = InMemoryUnitStore()
    assert not store.has_aliases()

    store.add_unit(unit_factory(1, "Tola", status=UnitStatus.PENDING))
    assert not store.has_aliases()

    store.set_status(1, UnitStatus.VERIFIED)
    assert store.has_aliases()


def test_replace_aliases_swaps_the_whole_set(seeded_store):
    seeded_store.replace_aliases(3, ["bhari"])

    assert seeded_store.get_unit(3).aliases == ["Tola", "bhari"]
    assert seeded_store.find_by_exact_normalized("bhori") == []
    assert seeded_store.find_by_exact_normalized("bhari")[0][0] == 3


def test_writes_to_unknown_unit_raise():
    store = InMemoryUnitStore()

    with pytest.raises(UnitNotFoundError):
        store.set_status(42, UnitStatus.VERIFIED)
    with pytest.raises(UnitNotFoundError):
        store.replace_aliases(42, ["x"])


def test_scan_units_orders_by_name_length(seeded_store):
    names = [unit.name for unit in seeded_store.scan_units("gram")]

    assert names == ["Gram", "Kilogram"]


def test_concurrent_reads_during_writes(unit_factory):
    store = InMemoryUnitStore()
    store.add_unit(unit_factory(0, "Tola"))
    errors = []
    stop = threading.Event()

    def reader():
        while not stop.is_set():
            try:
                matches = store.find_by_exact_normalized("tola")
                assert [unit_id for unit_id, _ in matches] == [0]
            except Exception as exc:  # collected and asserted below
                errors.append(exc)

    readers = [threading.Thread(target=reader) for _ in range(4)]
    for thread in readers:
        thread.start()
    for batch in range(20):
        store.add_units([(unit_factory(f"{batch}-{idx}", f"Unit {batch} {idx}"), []) for idx in range(10)])
    stop.set()
    for thread in readers:
        thread.join()

    assert errors == []
    assert store.count_units() == 201
