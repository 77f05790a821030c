"""Ruleset error hierarchy."""

from __future__ import annotations


class RulesetError(Exception):
    """Base class for failures that leave the active ruleset untouched."""


class RulesetLoadError(RulesetError):
    """Ruleset document could not be fetched, decoded or validated."""


class RulesetLockError(RulesetError):
    """Store guard could not be acquired for a swap."""
