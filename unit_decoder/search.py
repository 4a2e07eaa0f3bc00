"""Unit search service consumed by the HTTP layer and the CLI."""
from __future__ import annotations

import logging
from functools import lru_cache
from time import perf_counter
from typing import Any, Iterable, Optional

from .cache import CacheBackend, cache_key, get_cache
from .config import settings
from .constants import (
    BATCH_RESULTS_PER_QUERY,
    SEARCH_RESULT_LIMIT,
    SUGGESTION_LIMIT,
    SUGGESTION_MIN_LENGTH,
)
from .convert import convert_units
from .models import ConversionResult, SearchResult, Unit, UnitId
from .normalize import normalize
from .ranking import QueryKeys, prepare_query, rank_keys
from .store import UnitStore

logger = logging.getLogger(__name__)


def assemble(store: UnitStore, ranked: Iterable[SearchResult], category: str | None = None) -> list[Unit]:
    """Resolve ranked ids to full units, keeping order and verified units only."""

    ranked = list(ranked)
    units = store.get_units([result.unit_id for result in ranked])
    assembled: list[Unit] = []
    for result in ranked:
        unit = units.get(result.unit_id)
        if unit is None or not unit.is_verified:
            continue
        if category is not None and unit.category != category:
            continue
        assembled.append(unit)
    return assembled


class SearchService:
    """Search, browse and convert over a :class:`UnitStore`.

    ``search`` and ``search_by_category`` never raise: search is advisory, so
    any internal failure is logged and answered with an empty list.
    """

    def __init__(
        self,
        store: UnitStore,
        cache: CacheBackend | None = None,
        cache_ttl: int = settings.cache_ttl_seconds,
        limit: int = SEARCH_RESULT_LIMIT,
    ) -> None:
        self.store = store
        self.cache = cache
        self.cache_ttl = cache_ttl
        self.limit = limit

    def search(self, query: Any) -> list[Unit]:
        return self._guarded_search(query, None)

    def search_by_category(self, query: Any, category: str) -> list[Unit]:
        return self._guarded_search(query, category)

    def _guarded_search(self, query: Any, category: str | None) -> list[Unit]:
        try:
            return self._search(query, category)
        except Exception:
            logger.exception("search failed q=%r category=%r", query, category)
            return []

    def _search(self, query: Any, category: str | None) -> list[Unit]:
        keys = prepare_query(query)
        if keys is None:
            return []

        key = cache_key(keys.normalized, category) if self.cache is not None else None
        if key is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.info("cache_hit q=%r category=%r", keys.raw, category)
                return [Unit.model_validate(item) for item in cached.get("results", [])]

        t0 = perf_counter()
        if self.store.has_aliases():
            strategy = "ranked"
            units = self._ranked_search(keys, category)
        else:
            strategy = "scan"
            units = self._fallback_scan(keys, category)
        took_ms = (perf_counter() - t0) * 1000
        logger.info(
            "search q=%r normalized=%r phonetic=%r category=%r strategy=%s hits=%s took=%.2fms",
            keys.raw,
            keys.normalized,
            keys.phonetic,
            category,
            strategy,
            len(units),
            took_ms,
        )

        if key is not None:
            self.cache.set(key, {"results": [unit.to_document() for unit in units]}, self.cache_ttl)
        return units

    def _ranked_search(self, keys: QueryKeys, category: str | None) -> list[Unit]:
        ranked = rank_keys(self.store, keys, category=category, limit=self.limit)
        return assemble(self.store, ranked, category)

    def _fallback_scan(self, keys: QueryKeys, category: str | None) -> list[Unit]:
        logger.warning("Alias index is empty; falling back to name/description scan")
        try:
            units = self.store.scan_units(keys.normalized, category=category, limit=self.limit)
        except Exception:
            logger.exception("fallback scan failed q=%r", keys.raw)
            return []
        return [unit for unit in units if unit.is_verified][: self.limit]

    # -- browsing ----------------------------------------------------------

    def suggest(self, query: Any, limit: int = SUGGESTION_LIMIT) -> list[dict[str, str]]:
        """Autocomplete entries ``{"alias", "name", "category"}`` for ``query``."""

        if not isinstance(query, str) or len(query.strip()) < SUGGESTION_MIN_LENGTH:
            return []
        normalized = normalize(query)
        rows = [row for _unit_id, row in self.store.find_by_normalized_substring(normalized)]
        rows = [row for row in rows if isinstance(row.normalized_alias, str)]
        rows.sort(key=lambda row: (row.normalized_alias != normalized, len(row.alias), row.alias.lower()))
        units = self.store.get_units({row.unit_id for row in rows})

        suggestions: list[dict[str, str]] = []
        seen: set[tuple[str, str]] = set()
        for row in rows:
            unit = units.get(row.unit_id)
            if unit is None or not unit.is_verified:
                continue
            marker = (row.alias, unit.name)
            if marker in seen:
                continue
            seen.add(marker)
            suggestions.append({"alias": row.alias, "name": unit.name, "category": unit.category})
            if len(suggestions) >= limit:
                break
        return suggestions

    def advanced_search(
        self,
        query: str = "",
        category: str = "",
        region: str = "",
        era: str = "",
        limit: int = SEARCH_RESULT_LIMIT,
    ) -> list[Unit]:
        """Filter verified units by any combination of query, category, region and era."""

        keys = prepare_query(query)
        if keys is not None:
            ranked = rank_keys(self.store, keys, category=category or None, limit=None)
            candidates = assemble(self.store, ranked)
        else:
            candidates = self.store.verified_units()

        filtered = [
            unit
            for unit in candidates
            if (not category or unit.category == category)
            and (not region or unit.region == region)
            and (not era or unit.era == era)
        ]
        filtered.sort(key=lambda unit: unit.name)
        return filtered[:limit]

    def batch_search(self, queries: Iterable[str], per_query: int = BATCH_RESULTS_PER_QUERY) -> dict[str, list[Unit]]:
        return {query: self.search(query)[:per_query] for query in queries}

    def get_unit_with_aliases(self, unit_id: UnitId) -> Optional[Unit]:
        unit = self.store.get_unit(unit_id)
        if unit is None or not unit.is_verified:
            return None
        return unit

    def units_in_category(self, category: str) -> list[Unit]:
        return sorted(self.store.units_by_category(category), key=lambda unit: unit.name)

    def convert(self, from_id: UnitId, to_id: UnitId, value: float) -> ConversionResult:
        return convert_units(self.store, from_id, to_id, value)


def build_store() -> UnitStore:
    if settings.storage_backend == "elasticsearch":
        from .es_store import ElasticsearchUnitStore, get_client

        es_store = ElasticsearchUnitStore(get_client())
        es_store.ensure_indices()
        return es_store

    from .store import InMemoryUnitStore

    return InMemoryUnitStore()


@lru_cache(maxsize=1)
def get_search_service() -> SearchService:
    from .importer import import_if_empty

    store = build_store()
    if settings.load_on_startup:
        imported = import_if_empty(store)
        if imported:
            logger.info("Imported %s units on startup", imported)
    return SearchService(store, cache=get_cache(), limit=settings.search_result_limit)
