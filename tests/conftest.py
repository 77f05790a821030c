"""Shared fixtures: a small ClearURLs-shaped ruleset and engines built from it."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from urlscrub.engine import RuleEngine

# Patterns are written the way data.min.json spells them (JS-style escaped slashes)
SAMPLE_RULESET = {
    "providers": {
        "google": {
            "urlPattern": r"^https?:\/\/(?:[a-z0-9-]+\.)*?google(?:\.[a-z]{2,}){1,}",
            "completeProvider": False,
            "rules": ["ved", "gws_[a-z]+", "ei", "uact", "sxsrf"],
            "referralMarketing": ["referrer"],
            "exceptions": [r"^https?:\/\/mail\.google\.com\/"],
            "redirections": [r"^https?:\/\/(?:[a-z0-9-]+\.)*?google(?:\.[a-z]{2,}){1,}\/url\?.*?(?:url|q)=(https?[^&]+)"],
            "forceRedirection": True,
        },
        "amazon": {
            "urlPattern": r"^https?:\/\/(?:[a-z0-9-]+\.)*?amazon(?:\.[a-z]{2,}){1,}",
            "rules": ["tag", "ref_?", "pf_rd_[a-z]*"],
            "rawRules": [r"\/ref=[^\/?]*"],
        },
        "youtube": {
            "urlPattern": r"^https?:\/\/(?:[a-z0-9-]+\.)*?(?:youtube\.com|youtu\.be)",
            "rules": ["feature", "si", "pp"],
        },
        "generic": {
            # Never matches on its own; applied to every URL because of its name
            "urlPattern": r"^https?:\/\/generic\.invalid",
            "rules": ["utm_[a-z_]+", "fbclid", "gclid", "mc_eid"],
            "referralMarketing": ["ref"],
        },
    }
}


def make_engine(document: dict | None = None, **kwargs) -> RuleEngine:
    """Engine with a MagicMock logger and *document* loaded (empty ruleset when None)."""
    kwargs.setdefault("log", MagicMock())
    engine = RuleEngine(**kwargs)
    if document is not None:
        engine.load_document(document)
    return engine


@pytest.fixture
def engine() -> RuleEngine:
    return make_engine(SAMPLE_RULESET)


@pytest.fixture
def empty_engine() -> RuleEngine:
    return make_engine()


@pytest.fixture
def engine_factory():
    """Build engines from ad-hoc rulesets inside a test."""
    return make_engine
