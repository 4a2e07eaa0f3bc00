"""Seed loading and validation."""

import json

import pytest
from pydantic import ValidationError

from unit_decoder.importer import import_if_empty, import_units, load_seed_units, prepare_unit
from unit_decoder.models import Unit, UnitStatus
from unit_decoder.store import InMemoryUnitStore
from unit_decoder.validation import validate_unit_data

VALID = {
    "name": "Tola",
    "category": "Mass",
    "base_unit": "kilogram",
    "conversion_factor": "0.0116638038",
    "description": "Traditional South Asian unit of mass",
    "source_url": "https://en.wikipedia.org/wiki/Tola_(unit)",
    "aliases": "tolah, bhori",
}


def test_validate_unit_data_accepts_complete_record():
    assert validate_unit_data(VALID).is_valid


def test_validate_unit_data_reports_every_problem():
    result = validate_unit_data(
        {"name": " ", "category": "Weight", "conversion_factor": -1, "source_url": "nope", "description": "short"}
    )

    assert len(result.errors) == 6
    assert not result.is_valid


def test_validate_unit_data_names_failing_fields():
    result = validate_unit_data({**VALID, "conversion_factor": "abc", "category": "Weight"})

    assert len(result.errors) == 2
    assert any(error.startswith("conversion_factor:") for error in result.errors)
    assert any("Valid category is required" in error for error in result.errors)


@pytest.mark.parametrize("factor", [0, -2, True, float("inf"), float("nan")])
def test_validate_unit_data_rejects_bad_factors(factor):
    result = validate_unit_data({**VALID, "conversion_factor": factor})

    assert len(result.errors) == 1


def test_validate_unit_data_uses_given_categories():
    assert validate_unit_data({**VALID, "category": "Weight"}, categories=["Weight"]).is_valid
    assert not validate_unit_data(VALID, categories=["Weight"]).is_valid


@pytest.mark.parametrize("field, value", [("name", "   "), ("conversion_factor", float("inf"))])
def test_unit_model_shares_field_rules(unit_factory, field, value):
    assert not validate_unit_data({**VALID, field: value}).is_valid
    with pytest.raises(ValidationError):
        Unit(**{**unit_factory(3, "Tola").model_dump(), field: value})


def test_prepare_unit_parses_delimited_aliases():
    unit, aliases = prepare_unit(VALID, fallback_id=7)

    assert unit.id == 7
    assert unit.status == UnitStatus.VERIFIED
    assert unit.conversion_factor == 0.0116638038
    assert aliases == ["tolah", "bhori"]


def test_import_skips_invalid_records():
    store = InMemoryUnitStore()

    count = import_units(store, [VALID, {**VALID, "name": "", "id": 2}])

    assert count == 1
    assert store.get_unit(1).aliases == ["Tola", "tolah", "bhori"]


def test_import_if_empty_only_seeds_once(tmp_path):
    seed = tmp_path / "units.json"
    seed.write_text(json.dumps({"units": [VALID]}), encoding="utf-8")
    store = InMemoryUnitStore()

    assert import_if_empty(store, seed) == 1
    assert import_if_empty(store, seed) == 0


def test_missing_seed_file(tmp_path):
    assert load_seed_units(tmp_path / "missing.json") == []


def test_bundled_seed_file_is_valid(seeded_store):
    assert seeded_store.count_units() == 14
    assert seeded_store.has_aliases()
