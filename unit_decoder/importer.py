"""Seed loader that fills a unit store from a JSON file."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Sequence

from pydantic import ValidationError

from .config import settings
from .models import Unit, UnitStatus
from .normalize import parse_aliases, sanitize_string
from .store import UnitStore
from .validation import validate_unit_data

logger = logging.getLogger(__name__)


def load_seed_units(path: Path) -> list[dict]:
    if not path.exists():
        logger.warning("Seed file %s is missing", path)
        return []
    with path.open("r", encoding="utf-8") as fh:
        payload = json.load(fh)
    if isinstance(payload, dict):
        payload = payload.get("units", [])
    return list(payload)


def _record_aliases(raw: dict) -> list[str]:
    aliases = raw.get("aliases") or []
    if isinstance(aliases, str):
        return parse_aliases(aliases)
    return [alias for alias in aliases if isinstance(alias, str)]


def prepare_unit(raw: dict, fallback_id: int) -> tuple[Unit, list[str]] | None:
    """Build a verified unit and its aliases from a seed record.

    Records failing validation are logged and skipped.
    """

    check = validate_unit_data(raw)
    if not check.is_valid:
        logger.warning("Skipping seed record %r: %s", raw.get("name"), "; ".join(check.errors))
        return None
    try:
        unit = Unit(
            id=raw.get("id", fallback_id),
            name=sanitize_string(raw["name"]),
            category=raw["category"],
            base_unit=sanitize_string(raw["base_unit"]),
            conversion_factor=float(raw["conversion_factor"]),
            description=sanitize_string(raw.get("description")),
            region=raw.get("region"),
            era=raw.get("era"),
            source_url=raw.get("source_url"),
            status=UnitStatus.VERIFIED,
        )
    except (ValidationError, ValueError) as exc:
        logger.warning("Skipping seed record %r: %s", raw.get("name"), exc)
        return None
    return unit, _record_aliases(raw)


def import_units(store: UnitStore, records: Iterable[dict]) -> int:
    entries: list[tuple[Unit, Sequence[str]]] = []
    for position, raw in enumerate(records, start=1):
        prepared = prepare_unit(raw, fallback_id=position)
        if prepared is not None:
            entries.append(prepared)
    if not entries:
        return 0
    return store.add_units(entries)


def import_if_empty(store: UnitStore, path: Path | None = None) -> int:
    if store.count_units() > 0:
        return 0
    return import_units(store, load_seed_units(path or Path(settings.seed_path)))
