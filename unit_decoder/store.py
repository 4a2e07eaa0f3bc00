"""Unit and alias storage behind a small lookup protocol.

The search engine never talks to a database directly. It receives any object
implementing :class:`UnitStore`; :class:`InMemoryUnitStore` is the default
backend and :mod:`unit_decoder.es_store` provides an Elasticsearch one.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional, Protocol, Sequence

from .errors import UnitNotFoundError
from .models import AliasRow, Unit, UnitId, UnitStatus
from .normalize import normalize, phonetic_key

logger = logging.getLogger(__name__)

AliasMatch = tuple[UnitId, AliasRow]


class UnitStore(Protocol):
    def find_by_exact_normalized(self, normalized: str, category: str | None = None) -> list[AliasMatch]: ...

    def find_by_phonetic_key(self, key: str, category: str | None = None) -> list[AliasMatch]: ...

    def find_by_normalized_substring(self, fragment: str, category: str | None = None) -> list[AliasMatch]: ...

    def has_aliases(self) -> bool: ...

    def get_unit(self, unit_id: UnitId) -> Optional[Unit]: ...

    def get_units(self, unit_ids: Iterable[UnitId]) -> dict[UnitId, Unit]: ...

    def scan_units(self, fragment: str, category: str | None = None, limit: int = 20) -> list[Unit]: ...

    def units_by_category(self, category: str) -> list[Unit]: ...

    def verified_units(self) -> list[Unit]: ...

    def count_units(self) -> int: ...

    def add_units(self, entries: Iterable[tuple[Unit, Sequence[str]]]) -> int: ...


def build_alias_rows(unit: Unit, aliases: Iterable[str] = ()) -> list[AliasRow]:
    """Pre-compute alias rows for ``unit``.

    The unit name is always the first alias. Aliases that normalize to a value
    already present are dropped, keeping the first spelling.
    """

    rows: list[AliasRow] = []
    seen: set[str] = set()
    for raw in (unit.name, *aliases):
        if not isinstance(raw, str):
            continue
        text = raw.strip()
        normalized = normalize(text)
        if not normalized or normalized in seen:
            continue
        seen.add(normalized)
        rows.append(
            AliasRow(
                unit_id=unit.id,
                unit_name=unit.name,
                alias=text,
                normalized_alias=normalized,
                phonetic_key=phonetic_key(text),
            )
        )
    return rows


def _sort_by_name_length(units: Iterable[Unit]) -> list[Unit]:
    return sorted(units, key=lambda unit: (len(unit.name), unit.name.lower(), str(unit.id)))


@dataclass(frozen=True)
class _Snapshot:
    units: Mapping[UnitId, Unit] = field(default_factory=dict)
    aliases: Mapping[UnitId, tuple[AliasRow, ...]] = field(default_factory=dict)
    by_normalized: Mapping[str, tuple[AliasRow, ...]] = field(default_factory=dict)
    by_phonetic: Mapping[str, tuple[AliasRow, ...]] = field(default_factory=dict)
    searchable: tuple[AliasRow, ...] = ()


def _build_snapshot(units: dict[UnitId, Unit], aliases: dict[UnitId, tuple[AliasRow, ...]]) -> _Snapshot:
    by_normalized: dict[str, list[AliasRow]] = {}
    by_phonetic: dict[str, list[AliasRow]] = {}
    searchable: list[AliasRow] = []
    for unit_id, rows in aliases.items():
        unit = units.get(unit_id)
        if unit is None or not unit.is_verified:
            continue
        for row in rows:
            searchable.append(row)
            if row.normalized_alias:
                by_normalized.setdefault(row.normalized_alias, []).append(row)
            if row.phonetic_key:
                by_phonetic.setdefault(row.phonetic_key, []).append(row)
    return _Snapshot(
        units=units,
        aliases=aliases,
        by_normalized={key: tuple(rows) for key, rows in by_normalized.items()},
        by_phonetic={key: tuple(rows) for key, rows in by_phonetic.items()},
        searchable=tuple(searchable),
    )


class InMemoryUnitStore:
    """Copy-on-write store.

    Readers grab the current snapshot reference and never lock. Writers are
    serialized and publish a freshly built snapshot with a single assignment,
    so a query sees either the state before or after a batch, never a mix.
    """

    def __init__(self) -> None:
        self._snapshot = _Snapshot()
        self._write_lock = threading.Lock()

    # -- reads -----------------------------------------------------------

    @staticmethod
    def _matches(snapshot: _Snapshot, rows: Iterable[AliasRow], category: str | None) -> list[AliasMatch]:
        matches: list[AliasMatch] = []
        for row in rows:
            if category is not None:
                unit = snapshot.units.get(row.unit_id)
                if unit is None or unit.category != category:
                    continue
            matches.append((row.unit_id, row))
        return matches

    def find_by_exact_normalized(self, normalized: str, category: str | None = None) -> list[AliasMatch]:
        snapshot = self._snapshot
        return self._matches(snapshot, snapshot.by_normalized.get(normalized, ()), category)

    def find_by_phonetic_key(self, key: str, category: str | None = None) -> list[AliasMatch]:
        snapshot = self._snapshot
        return self._matches(snapshot, snapshot.by_phonetic.get(key, ()), category)

    def find_by_normalized_substring(self, fragment: str, category: str | None = None) -> list[AliasMatch]:
        snapshot = self._snapshot
        needle = fragment.lower()
        rows = (row for row in snapshot.searchable if row.normalized_alias and needle in row.normalized_alias)
        return self._matches(snapshot, rows, category)

    def has_aliases(self) -> bool:
        return bool(self._snapshot.searchable)

    def get_unit(self, unit_id: UnitId) -> Optional[Unit]:
        return self._snapshot.units.get(unit_id)

    def get_units(self, unit_ids: Iterable[UnitId]) -> dict[UnitId, Unit]:
        units = self._snapshot.units
        return {unit_id: units[unit_id] for unit_id in unit_ids if unit_id in units}

    def get_aliases(self, unit_id: UnitId) -> list[AliasRow]:
        return list(self._snapshot.aliases.get(unit_id, ()))

    def scan_units(self, fragment: str, category: str | None = None, limit: int = 20) -> list[Unit]:
        needle = normalize(fragment)
        if not needle:
            return []
        hits = [
            unit
            for unit in self.verified_units()
            if (category is None or unit.category == category)
            and (needle in normalize(unit.name) or needle in normalize(unit.description))
        ]
        return _sort_by_name_length(hits)[:limit]

    def units_by_category(self, category: str) -> list[Unit]:
        return [unit for unit in self.verified_units() if unit.category == category]

    def verified_units(self) -> list[Unit]:
        return [unit for unit in self._snapshot.units.values() if unit.is_verified]

    def count_units(self) -> int:
        return len(self._snapshot.units)

    def __len__(self) -> int:
        return self.count_units()

    # -- writes ----------------------------------------------------------

    def add_unit(self, unit: Unit, aliases: Sequence[str] = ()) -> Unit:
        self.add_units([(unit, aliases)])
        return self._snapshot.units[unit.id]

    def add_units(self, entries: Iterable[tuple[Unit, Sequence[str]]]) -> int:
        with self._write_lock:
            units = dict(self._snapshot.units)
            aliases = dict(self._snapshot.aliases)
            count = 0
            for unit, unit_aliases in entries:
                rows = build_alias_rows(unit, unit_aliases)
                units[unit.id] = unit.model_copy(update={"aliases": [row.alias for row in rows]})
                aliases[unit.id] = tuple(rows)
                count += 1
            self._snapshot = _build_snapshot(units, aliases)
        logger.info("Stored %s units (%s total)", count, len(units))
        return count

    def replace_aliases(self, unit_id: UnitId, new_aliases: Sequence[str]) -> None:
        with self._write_lock:
            unit = self._snapshot.units.get(unit_id)
            if unit is None:
                raise UnitNotFoundError(unit_id)
            rows = build_alias_rows(unit, new_aliases)
            units = dict(self._snapshot.units)
            aliases = dict(self._snapshot.aliases)
            units[unit_id] = unit.model_copy(update={"aliases": [row.alias for row in rows]})
            aliases[unit_id] = tuple(rows)
            self._snapshot = _build_snapshot(units, aliases)

    def set_status(self, unit_id: UnitId, status: UnitStatus) -> Unit:
        with self._write_lock:
            unit = self._snapshot.units.get(unit_id)
            if unit is None:
                raise UnitNotFoundError(unit_id)
            updated = unit.model_copy(update={"status": UnitStatus(status)})
            units = dict(self._snapshot.units)
            units[unit_id] = updated
            self._snapshot = _build_snapshot(units, dict(self._snapshot.aliases))
        logger.info("Unit %s status -> %s", unit_id, updated.status.value)
        return updated
