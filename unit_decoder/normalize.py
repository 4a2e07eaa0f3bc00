"""Text normalization and phonetic encoding for unit names and aliases.

Two pure functions feed both sides of the search index:

    1) :func:`normalize` lowercases, transliterates diacritics away with
       ``unidecode`` and trims, so ``"Tōlā"`` and ``"tola"`` compare equal.
    2) :func:`phonetic_key` runs double metaphone over the normalized text and
       keeps only the primary code of every token, so ``"toolah"`` and
       ``"tola"`` share the key ``"TL"``.

Aliases are stored with the output of these functions at insertion time and
queries are pushed through the very same functions, so identical text always
lands on identical index values.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Iterable
from urllib.parse import urlparse

from metaphone import doublemetaphone
from unidecode import unidecode

logger = logging.getLogger(__name__)

# Metaphone only understands ASCII letters; everything else becomes a separator.
_ASCII_ALNUM_SPACE_RE = re.compile(r"[^0-9a-z ]+")
_ALIAS_SEPARATOR_RE = re.compile(r"[,;|]")
_HTML_TAG_RE = re.compile(r"<[^>]*>")


def normalize(text: Any) -> str:
    """Return the canonical search form of ``text``.

    Non-string and empty input yields ``""``. The transformation is idempotent:
    ``normalize(normalize(x)) == normalize(x)``. Lowercasing runs again after
    transliteration because ``unidecode`` may emit capitals (``"北"`` becomes
    ``"Bei "``).
    """

    if not isinstance(text, str) or not text:
        return ""
    return unidecode(text.lower()).lower().strip()


def _primary_codes(tokens: Iterable[str]) -> list[str]:
    codes: list[str] = []
    for token in tokens:
        primary, _secondary = doublemetaphone(token)
        if primary:
            codes.append(primary)
    return codes


def phonetic_key(text: Any) -> str:
    """Generate the "sounds like" key for ``text``.

    The text is normalized first, then every ASCII token is encoded with double
    metaphone. Only the primary code is kept so the key is always one string;
    multi-word input yields space separated codes. Codes are per token, so a
    run-together spelling ("troyounce") does not share a key with the spaced
    form ("troy ounce"). Tokens with no primary code, such as a lone "h" or
    digits, are dropped, so "Pound h" keys like "Pound". Any failure results in
    an empty string.
    """

    normalized = normalize(text)
    if not normalized:
        return ""
    try:
        tokens = _ASCII_ALNUM_SPACE_RE.sub(" ", normalized).split()
        key = " ".join(_primary_codes(tokens))
    except Exception as exc:  # pragma: no cover
        logger.debug("phonetic conversion failed for %r: %s", text, exc)
        return ""
    logger.debug("phonetic_key raw=%r normalized=%r key=%r", text, normalized, key)
    return key


def parse_aliases(value: Any) -> list[str]:
    """Split a comma, semicolon or pipe separated alias string."""

    if not isinstance(value, str) or not value:
        return []
    return [alias.strip() for alias in _ALIAS_SEPARATOR_RE.split(value) if alias.strip()]


def sanitize_string(value: Any) -> str:
    """Drop HTML tags and surrounding whitespace from user supplied text."""

    if not isinstance(value, str) or not value:
        return ""
    return _HTML_TAG_RE.sub("", value).strip()


def is_valid_url(value: Any) -> bool:
    if not isinstance(value, str) or not value:
        return False
    parsed = urlparse(value.strip())
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)
