"""Three-layer ranking of alias matches.

A query is normalized and phonetically encoded once, then probed against the
store in priority order:

    1. exact    - normalized alias equals the normalized query
    2. phonetic - alias phonetic key equals the query phonetic key
    3. fuzzy    - normalized alias contains the normalized query

Every unit keeps the best layer any of its aliases reached. Results are ordered
by layer, then by unit name length so short specific names come first, then by
name and id to keep equal keys deterministic.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterator, Optional

from .constants import SEARCH_RESULT_LIMIT
from .models import AliasRow, MatchLayer, SearchResult, UnitId
from .normalize import normalize, phonetic_key
from .store import AliasMatch, UnitStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueryKeys:
    raw: str
    normalized: str
    phonetic: str


def prepare_query(query: Any) -> Optional[QueryKeys]:
    """Return the index keys for ``query`` or ``None`` for blank input."""

    if not isinstance(query, str) or not query.strip():
        return None
    return QueryKeys(raw=query, normalized=normalize(query), phonetic=phonetic_key(query))


def _probe(store: UnitStore, keys: QueryKeys, category: str | None) -> Iterator[tuple[MatchLayer, list[AliasMatch]]]:
    if keys.normalized:
        yield MatchLayer.EXACT, store.find_by_exact_normalized(keys.normalized, category)
    if keys.phonetic:
        yield MatchLayer.PHONETIC, store.find_by_phonetic_key(keys.phonetic, category)
    if keys.normalized:
        yield MatchLayer.FUZZY, store.find_by_normalized_substring(keys.normalized, category)


def _is_well_formed(unit_id: UnitId, row: AliasRow) -> bool:
    return (
        unit_id is not None
        and isinstance(row.unit_name, str)
        and isinstance(row.normalized_alias, str)
        and isinstance(row.phonetic_key, str)
    )


def sort_key(result: SearchResult) -> tuple[int, int, str, str]:
    return (result.priority, len(result.unit_name), result.unit_name.lower(), str(result.unit_id))


def rank_keys(
    store: UnitStore,
    keys: QueryKeys,
    category: str | None = None,
    limit: Optional[int] = SEARCH_RESULT_LIMIT,
) -> list[SearchResult]:
    best: dict[UnitId, SearchResult] = {}
    skipped = 0
    for layer, matches in _probe(store, keys, category):
        for unit_id, row in matches:
            if not _is_well_formed(unit_id, row):
                skipped += 1
                continue
            current = best.get(unit_id)
            if current is None or layer.priority < current.priority:
                best[unit_id] = SearchResult(unit_id=unit_id, unit_name=row.unit_name, layer=layer)
    if skipped:
        logger.debug("Skipped %s malformed alias rows for q=%r", skipped, keys.raw)
    ranked = sorted(best.values(), key=sort_key)
    logger.debug(
        "rank q=%r normalized=%r phonetic=%r candidates=%s",
        keys.raw,
        keys.normalized,
        keys.phonetic,
        len(ranked),
    )
    return ranked[:limit]


def rank(
    store: UnitStore,
    query: Any,
    category: str | None = None,
    limit: int = SEARCH_RESULT_LIMIT,
) -> list[SearchResult]:
    """Rank units whose aliases match ``query``; blank queries rank nothing."""

    keys = prepare_query(query)
    if keys is None:
        return []
    return rank_keys(store, keys, category=category, limit=limit)
