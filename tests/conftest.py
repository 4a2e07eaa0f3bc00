"""Shared fixtures for the unit search tests."""
from __future__ import annotations

from pathlib import Path

import pytest

from unit_decoder.importer import import_units, load_seed_units
from unit_decoder.models import Unit, UnitStatus
from unit_decoder.search import SearchService
from unit_decoder.store import InMemoryUnitStore

ROOT = Path(__file__).resolve().parent.parent
SEED_PATH = ROOT / "data" / "units.json"
MAPPINGS_DIR = ROOT / "mappings"


def make_unit(unit_id, name, category="Mass", base_unit="kilogram", factor=1.0, **extra) -> Unit:
    fields = {
        "description": f"{name} used in tests",
        "status": UnitStatus.VERIFIED,
    }
    fields.update(extra)
    return Unit(
        id=unit_id,
        name=name,
        category=category,
        base_unit=base_unit,
        conversion_factor=factor,
        **fields,
    )


@pytest.fixture
def scenario_store() -> InMemoryUnitStore:
    """Kilogram, Tola and Meter, each with only its self-alias."""

    store = InMemoryUnitStore()
    store.add_units(
        [
            (make_unit(1, "Kilogram"), []),
            (make_unit(2, "Tola", factor=0.0116638038, description="Traditional unit of mass used in South Asia"), []),
            (make_unit(3, "Meter", category="Length", base_unit="meter"), []),
        ]
    )
    return store


@pytest.fixture
def seeded_store() -> InMemoryUnitStore:
    store = InMemoryUnitStore()
    import_units(store, load_seed_units(SEED_PATH))
    return store


@pytest.fixture
def service(seeded_store) -> SearchService:
    return SearchService(seeded_store)


@pytest.fixture
def scenario_service(scenario_store) -> SearchService:
    return SearchService(scenario_store)


@pytest.fixture
def unit_factory():
    return make_unit
