"""URL parsing, serialization and query-string helpers."""

from __future__ import annotations

import re
from collections.abc import Callable
from urllib.parse import SplitResult, parse_qsl, urlencode, urlsplit, urlunsplit

# Characters that can never appear in a parsed host
_BAD_HOST_RE = re.compile(r"[\s\x00-\x1f\x7f<>\"{}|\\^`]")

_WEB_SCHEMES = frozenset({"http", "https"})


def ensure_scheme(text: str) -> str:
    """Prefix ``http://`` to bare domains so they parse with a host."""
    if "://" not in text and not text.startswith("mailto:"):
        return f"http://{text}"
    return text


def parse_url(text: str) -> SplitResult | None:
    """Split *text* into URL components, or None if it is not a usable URL."""
    try:
        url = urlsplit(text)
        url.port  # raises ValueError on a non-numeric or out-of-range port
    except ValueError:
        return None

    if not url.scheme:
        return None

    # Web URLs need a host; opaque ones (mailto:) don't have one
    if url.scheme in _WEB_SCHEMES or url.netloc:
        host = url.hostname
        if not host or _BAD_HOST_RE.search(host):
            return None

    return url


def serialize(url: SplitResult) -> str:
    return urlunsplit(url)


def host_of(url: SplitResult) -> str:
    """Lowercased host without port, empty for opaque URLs."""
    return url.hostname or ""


def path_segments(url: SplitResult) -> list[str]:
    if not url.path.startswith("/"):
        return []
    return url.path[1:].split("/")


def query_pairs(query: str) -> list[tuple[str, str]]:
    """Decode a form-encoded query string, keeping blank values."""
    if not query:
        return []
    return parse_qsl(query, keep_blank_values=True)


def encode_query(pairs: list[tuple[str, str]]) -> str:
    return urlencode(pairs)


def filter_query(url: SplitResult, should_remove: Callable[[str], bool]) -> tuple[SplitResult, list[str]]:
    """Drop query parameters whose name satisfies *should_remove*.

    Returns the rewritten URL and the names removed. The query is re-encoded
    only when something was removed, so untouched URLs keep their encoding.
    """
    kept: list[tuple[str, str]] = []
    removed: list[str] = []
    for key, value in query_pairs(url.query):
        if should_remove(key):
            removed.append(key)
        else:
            kept.append((key, value))

    if not removed:
        return url, removed
    return url._replace(query=encode_query(kept)), removed
