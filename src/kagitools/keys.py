"""Cache key normalisation.

Keys are built from the provider id, the request intent and every parameter
that can change the upstream response. Free text is never embedded verbatim:
it is reduced to a fixed-size SHA-256 fingerprint first, so two long inputs
sharing a prefix still produce different keys.
"""

from __future__ import annotations

import hashlib
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

FINGERPRINT_LENGTH = 16

_WHITESPACE_RE = re.compile(r"\s+")


def fingerprint(content: str, length: int = FINGERPRINT_LENGTH) -> str:
    """Return the first ``length`` hex chars of the SHA-256 of ``content``."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:length]


def collapse_whitespace(text: str) -> str:
    """Trim and collapse runs of whitespace: ``" a \\n b "`` → ``"a b"``."""
    return _WHITESPACE_RE.sub(" ", text).strip()


def canonical_choice(value: str | None, allowed: Iterable[str]) -> str | None:
    """Return the allow-list member matching ``value`` case-insensitively, or None."""
    if not value:
        return None
    normalised = value.strip().lower()
    for choice in allowed:
        if choice.lower() == normalised:
            return choice
    return None


def canonical_language(value: str | None, allowed: Iterable[str]) -> str | None:
    """Upper-case language code from the allow-list, or None.

    ``ZHHANT`` is accepted as a spelling of ``ZH-HANT``.
    """
    if not value:
        return None
    normalised = value.strip().upper()
    if normalised == "ZHHANT":
        normalised = "ZH-HANT"
    return normalised if normalised in set(allowed) else None


def _escape(part: str) -> str:
    # Keeps ':' inside a part (URLs) from being read as a separator
    return part.replace("%", "%25").replace(":", "%3A")


def normalize_cache_key(*parts: str) -> str:
    """Join trimmed, escaped key parts with ``:``.

    Pure and deterministic. Callers are responsible for canonicalising enum
    parts and fingerprinting free text before passing them in.
    """
    return ":".join(_escape(part.strip()) for part in parts)
