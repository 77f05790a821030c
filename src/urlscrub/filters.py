"""Ruleset-independent passes: custom rules, fallback trackers, GitHub repo root."""

from __future__ import annotations

from collections.abc import Iterable
from urllib.parse import SplitResult

import structlog

from urlscrub.models import CustomRule
from urlscrub.utils.urls import filter_query, host_of, path_segments

# Trackers ClearURLs does not cover, mostly Google Search UI telemetry and ad params
FALLBACK_TRACKERS = frozenset(
    {
        "gs_lcrp",
        "oq",
        "sourceid",
        "client",
        "bih",
        "biw",
        "ved",
        "ei",
        "iflsig",
        "adgrpid",
        "nw",
        "matchtype",
    }
)

GITHUB_HOST = "github.com"

_log = structlog.get_logger(__name__)


def apply_custom_rules(
    url: SplitResult,
    custom_rules: Iterable[CustomRule],
    log: structlog.stdlib.BoundLogger = _log,
) -> tuple[SplitResult, bool]:
    """Remove every parameter whose name contains one of the rule patterns."""
    patterns = [rule.pattern for rule in custom_rules if rule.pattern]
    if not patterns or not url.query:
        return url, False

    url, removed = filter_query(url, lambda key: any(p in key for p in patterns))
    if removed:
        log.debug("filters.custom_rule_matched", params=removed)
    return url, bool(removed)


def strip_fallback_trackers(
    url: SplitResult,
    log: structlog.stdlib.BoundLogger = _log,
) -> tuple[SplitResult, bool]:
    if not url.query:
        return url, False

    url, removed = filter_query(url, lambda key: key in FALLBACK_TRACKERS)
    if removed:
        log.debug("filters.fallback_stripped", params=removed)
    return url, bool(removed)


def truncate_github_repo(url: SplitResult) -> tuple[SplitResult, bool]:
    """Collapse deep GitHub links (blob, tree, issues...) to ``/owner/repo``."""
    if host_of(url) != GITHUB_HOST:
        return url, False

    segments = path_segments(url)
    if len(segments) <= 2:
        return url, False

    new_path = f"/{segments[0]}/{segments[1]}"
    if url.path == new_path:
        return url, False
    return url._replace(path=new_path, query="", fragment=""), True
