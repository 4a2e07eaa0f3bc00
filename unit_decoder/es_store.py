"""Elasticsearch implementation of the unit store.

Units and aliases live in two indices. Alias documents carry the owning unit's
name, status and category so every lookup is a single filtered query:
``term`` on ``normalized_alias`` or ``phonetic_key`` for the exact and phonetic
layers, ``wildcard`` on ``normalized_alias`` for substring matches.

Transport and API errors are logged and reported as "no rows", which the
search service treats as an unavailable index.
"""
from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional, Sequence

from elasticsearch import Elasticsearch, helpers
from elasticsearch.exceptions import ApiError, BadRequestError, NotFoundError, TransportError

from .config import settings
from .errors import UnitNotFoundError
from .models import AliasRow, Unit, UnitId, UnitStatus
from .normalize import normalize
from .store import AliasMatch, build_alias_rows

logger = logging.getLogger(__name__)

MAX_ALIAS_HITS = 500
MAX_UNIT_HITS = 10_000
SCAN_WINDOW = 200
_WILDCARD_SPECIALS = ("\\", "*", "?")


@lru_cache(maxsize=1)
def get_client() -> Elasticsearch:
    logger.info("Connecting to Elasticsearch at %s", settings.es_host)
    return Elasticsearch(settings.es_host)


def _load_mapping(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def _escape_wildcard(fragment: str) -> str:
    for char in _WILDCARD_SPECIALS:
        fragment = fragment.replace(char, "\\" + char)
    return fragment


def _alias_document(row: AliasRow, unit: Unit) -> dict[str, Any]:
    return {
        "unit_id": str(unit.id),
        "unit_name": unit.name,
        "alias": row.alias,
        "normalized_alias": row.normalized_alias,
        "phonetic_key": row.phonetic_key,
        "status": unit.status.value,
        "category": unit.category,
    }


def _unit_document(unit: Unit) -> dict[str, Any]:
    document = unit.to_document()
    document["name_normalized"] = normalize(unit.name)
    document["description_normalized"] = normalize(unit.description)
    return document


def _unit_from_source(source: dict[str, Any]) -> Unit:
    fields = {key: value for key, value in source.items() if key in Unit.model_fields}
    return Unit.model_validate(fields)


class ElasticsearchUnitStore:
    def __init__(
        self,
        client: Elasticsearch,
        units_index: str = settings.es_units_index,
        aliases_index: str = settings.es_aliases_index,
        mappings_dir: str | Path = settings.mappings_dir,
    ) -> None:
        self.client = client
        self.units_index = units_index
        self.aliases_index = aliases_index
        self.mappings_dir = Path(mappings_dir)

    # -- index maintenance -----------------------------------------------

    def ensure_indices(self) -> None:
        """Create the unit and alias indices from their mappings if missing."""

        for index, mapping_file in ((self.units_index, "units.json"), (self.aliases_index, "aliases.json")):
            if self.client.indices.exists(index=index):
                continue
            body = _load_mapping(self.mappings_dir / mapping_file)
            logger.info("Creating index %s using %s", index, mapping_file)
            try:
                self.client.indices.create(index=index, mappings=body.get("mappings"), settings=body.get("settings"))
            except BadRequestError as exc:
                if getattr(exc, "error", "") == "resource_already_exists_exception":
                    logger.info("Index %s already exists", index)
                    continue
                logger.exception("Failed to create index %s: %s", index, exc)
                raise

    def drop_indices(self) -> None:
        for index in (self.units_index, self.aliases_index):
            try:
                self.client.indices.delete(index=index)
            except NotFoundError:
                continue

    # -- reads -----------------------------------------------------------

    def _alias_query(self, clause: dict[str, Any], category: str | None) -> dict[str, Any]:
        filters: list[dict[str, Any]] = [{"term": {"status": UnitStatus.VERIFIED.value}}]
        if category is not None:
            filters.append({"term": {"category": category}})
        return {"bool": {"must": [clause], "filter": filters}}

    def _search_aliases(self, clause: dict[str, Any], category: str | None) -> list[AliasMatch]:
        try:
            response = self.client.search(
                index=self.aliases_index,
                query=self._alias_query(clause, category),
                size=MAX_ALIAS_HITS,
            )
        except (ApiError, TransportError) as exc:
            logger.warning("Alias lookup failed on %s: %s", self.aliases_index, exc)
            return []
        matches: list[AliasMatch] = []
        for hit in response["hits"]["hits"]:
            source = hit.get("_source", {})
            row = AliasRow(
                unit_id=source.get("unit_id"),
                unit_name=source.get("unit_name"),
                alias=source.get("alias", ""),
                normalized_alias=source.get("normalized_alias"),
                phonetic_key=source.get("phonetic_key"),
            )
            matches.append((row.unit_id, row))
        return matches

    def find_by_exact_normalized(self, normalized: str, category: str | None = None) -> list[AliasMatch]:
        return self._search_aliases({"term": {"normalized_alias": normalized}}, category)

    def find_by_phonetic_key(self, key: str, category: str | None = None) -> list[AliasMatch]:
        return self._search_aliases({"term": {"phonetic_key": key}}, category)

    def find_by_normalized_substring(self, fragment: str, category: str | None = None) -> list[AliasMatch]:
        clause = {
            "wildcard": {
                "normalized_alias": {
                    "value": f"*{_escape_wildcard(fragment)}*",
                    "case_insensitive": True,
                }
            }
        }
        return self._search_aliases(clause, category)

    def has_aliases(self) -> bool:
        try:
            response = self.client.count(
                index=self.aliases_index,
                query={"term": {"status": UnitStatus.VERIFIED.value}},
            )
        except (ApiError, TransportError) as exc:
            logger.warning("Alias index %s unavailable: %s", self.aliases_index, exc)
            return False
        return response["count"] > 0

    def count_units(self) -> int:
        try:
            return self.client.count(index=self.units_index)["count"]
        except NotFoundError:
            return 0

    def get_unit(self, unit_id: UnitId) -> Optional[Unit]:
        return self.get_units([unit_id]).get(unit_id)

    def get_units(self, unit_ids: Iterable[UnitId]) -> dict[UnitId, Unit]:
        requested = list(dict.fromkeys(unit_ids))
        if not requested:
            return {}
        try:
            response = self.client.mget(index=self.units_index, ids=[str(unit_id) for unit_id in requested])
        except (ApiError, TransportError) as exc:
            logger.warning("Unit fetch failed on %s: %s", self.units_index, exc)
            return {}
        by_doc_id = {doc["_id"]: doc for doc in response["docs"] if doc.get("found")}
        units: dict[UnitId, Unit] = {}
        for unit_id in requested:
            doc = by_doc_id.get(str(unit_id))
            if doc is not None:
                units[unit_id] = _unit_from_source(doc["_source"])
        return units

    def _search_units(self, query: dict[str, Any], size: int) -> list[Unit]:
        response = self.client.search(index=self.units_index, query=query, size=size)
        return [_unit_from_source(hit["_source"]) for hit in response["hits"]["hits"]]

    def scan_units(self, fragment: str, category: str | None = None, limit: int = 20) -> list[Unit]:
        needle = normalize(fragment)
        if not needle:
            return []
        pattern = f"*{_escape_wildcard(needle)}*"
        filters: list[dict[str, Any]] = [{"term": {"status": UnitStatus.VERIFIED.value}}]
        if category is not None:
            filters.append({"term": {"category": category}})
        query = {
            "bool": {
                "should": [
                    {"wildcard": {"name_normalized": {"value": pattern}}},
                    {"wildcard": {"description_normalized": {"value": pattern}}},
                ],
                "minimum_should_match": 1,
                "filter": filters,
            }
        }
        units = self._search_units(query, SCAN_WINDOW)
        units.sort(key=lambda unit: (len(unit.name), unit.name.lower(), str(unit.id)))
        return units[:limit]

    def units_by_category(self, category: str) -> list[Unit]:
        query = {
            "bool": {
                "filter": [
                    {"term": {"status": UnitStatus.VERIFIED.value}},
                    {"term": {"category": category}},
                ]
            }
        }
        return self._search_units(query, MAX_UNIT_HITS)

    def verified_units(self) -> list[Unit]:
        return self._search_units({"term": {"status": UnitStatus.VERIFIED.value}}, MAX_UNIT_HITS)

    # -- writes ----------------------------------------------------------

    def _iter_actions(self, entries: Iterable[tuple[Unit, Sequence[str]]]) -> Iterator[dict[str, Any]]:
        for unit, aliases in entries:
            rows = build_alias_rows(unit, aliases)
            stored = unit.model_copy(update={"aliases": [row.alias for row in rows]})
            yield {"_index": self.units_index, "_id": str(unit.id), "_source": _unit_document(stored)}
            for position, row in enumerate(rows):
                yield {
                    "_index": self.aliases_index,
                    "_id": f"{unit.id}:{position}",
                    "_source": _alias_document(row, stored),
                }

    def add_units(self, entries: Iterable[tuple[Unit, Sequence[str]]]) -> int:
        entries = list(entries)
        if not entries:
            return 0
        # Alias docs are keyed by position, so a shorter alias list would leave the tail behind.
        self.client.delete_by_query(
            index=self.aliases_index,
            query={"terms": {"unit_id": [str(unit.id) for unit, _aliases in entries]}},
            refresh=True,
            ignore_unavailable=True,
        )
        helpers.bulk(self.client, self._iter_actions(entries), refresh="wait_for")
        logger.info("Indexed %s units into %s", len(entries), self.units_index)
        return len(entries)

    def add_unit(self, unit: Unit, aliases: Sequence[str] = ()) -> Unit:
        self.add_units([(unit, aliases)])
        return unit.model_copy(update={"aliases": [row.alias for row in build_alias_rows(unit, aliases)]})

    def replace_aliases(self, unit_id: UnitId, new_aliases: Sequence[str]) -> None:
        unit = self.get_unit(unit_id)
        if unit is None:
            raise UnitNotFoundError(unit_id)
        self.add_units([(unit, new_aliases)])

    def set_status(self, unit_id: UnitId, status: UnitStatus) -> Unit:
        unit = self.get_unit(unit_id)
        if unit is None:
            raise UnitNotFoundError(unit_id)
        status = UnitStatus(status)
        self.client.update(index=self.units_index, id=str(unit_id), doc={"status": status.value}, refresh="wait_for")
        self.client.update_by_query(
            index=self.aliases_index,
            query={"term": {"unit_id": str(unit_id)}},
            script={"source": "ctx._source.status = params.status", "params": {"status": status.value}},
            refresh=True,
        )
        logger.info("Unit %s status -> %s", unit_id, status.value)
        return unit.model_copy(update={"status": status})
