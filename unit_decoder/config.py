"""Application configuration and constants."""
from __future__ import annotations

import os
from dataclasses import dataclass


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value is not None else default


def _get_flag(name: str, default: str) -> bool:
    return _get_env(name, default).lower() in {"1", "true", "yes"}


@dataclass(frozen=True)
class Settings:
    """Simple settings container with environment variable overrides."""

    storage_backend: str = _get_env("STORAGE_BACKEND", "memory")
    es_host: str = _get_env("ES_HOST", "http://localhost:9200")
    es_units_index: str = _get_env("ES_UNITS_INDEX", "units")
    es_aliases_index: str = _get_env("ES_ALIASES_INDEX", "unit_aliases")
    mappings_dir: str = _get_env("MAPPINGS_DIR", "mappings")
    seed_path: str = _get_env("SEED_PATH", "data/units.json")
    load_on_startup: bool = _get_flag("LOAD_ON_STARTUP", "true")
    redis_host: str = _get_env("REDIS_HOST", "localhost")
    redis_port: int = int(_get_env("REDIS_PORT", "6379"))
    cache_enabled: bool = _get_flag("CACHE_ENABLED", "true")
    cache_ttl_seconds: int = int(_get_env("CACHE_TTL_SECONDS", "300"))
    cache_max_entries: int = int(_get_env("CACHE_MAX_ENTRIES", "1024"))
    search_result_limit: int = int(_get_env("SEARCH_RESULT_LIMIT", "20"))
    log_level: str = _get_env("LOG_LEVEL", "INFO")


settings = Settings()
