"""Credential masking for log output."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict

# Applied in order; earlier kinds win when matches overlap
_DEFAULT_DETECTORS = {
    "password": r"(?i)password\s*[:=]\s*[^\s&]+",
    "email": r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}",
    "ipv4": r"\b(?:\d{1,3}\.){3}\d{1,3}\b",
    "aws_secret_key": r"\b[A-Za-z0-9/+=]{40}\b",
    "aws_access_key": r"(?i)\b[A-Z0-9]{20}\b",
}

# Event fields scrubbed by the structlog processor
REDACTED_FIELDS = frozenset({"url", "host", "original", "cleaned", "expanded", "source"})


class RedactionPatterns(BaseModel):
    """Immutable set of (kind, detector) pairs, built once per process."""

    model_config = ConfigDict(frozen=True)

    detectors: tuple[tuple[str, re.Pattern], ...]

    @classmethod
    def from_mapping(cls, patterns: Mapping[str, str]) -> RedactionPatterns:
        return cls(detectors=tuple((kind, re.compile(rx)) for kind, rx in patterns.items()))


DEFAULT_REDACTION_PATTERNS = RedactionPatterns.from_mapping(_DEFAULT_DETECTORS)


class Redactor:
    """Replace credential-like substrings with ``[REDACTED <KIND>]`` markers."""

    def __init__(
        self,
        patterns: RedactionPatterns = DEFAULT_REDACTION_PATTERNS,
        fields: Iterable[str] = REDACTED_FIELDS,
    ) -> None:
        self.patterns = patterns
        self.fields = frozenset(fields)

    def redact(self, text: str) -> str:
        for kind, detector in self.patterns.detectors:
            text = detector.sub(f"[REDACTED {kind.upper()}]", text)
        return text

    def processor(self, logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        """structlog processor masking string values of the configured fields."""
        for key in self.fields.intersection(event_dict):
            value = event_dict[key]
            if isinstance(value, str):
                event_dict[key] = self.redact(value)
        return event_dict
