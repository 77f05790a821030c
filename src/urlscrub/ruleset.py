"""ClearURLs ruleset parsing, compilation and the shared provider store."""

from __future__ import annotations

import re
import threading
from collections.abc import Iterable, Mapping
from typing import Any

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from tenacity import retry, stop_after_attempt, wait_exponential

from urlscrub.errors import RulesetLoadError, RulesetLockError

GENERIC_PROVIDER = "generic"

# ClearURLs patterns are written for case-insensitive JS regexes; every
# pattern, parameter-name rules included, is searched rather than anchored
PATTERN_FLAGS = re.IGNORECASE

_log = structlog.get_logger(__name__)


# -- Document model -------------------------------------------------------------


class RawProvider(BaseModel):
    """One provider entry as it appears in the ruleset document."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    url_pattern: str = Field("", alias="urlPattern")
    rules: list[str] = []
    exceptions: list[str] = []
    raw_rules: list[str] = Field([], alias="rawRules")
    redirections: list[str] = []
    referral_marketing: list[str] = Field([], alias="referralMarketing")
    force_redirection: bool = Field(False, alias="forceRedirection")

    @field_validator("rules", "exceptions", "raw_rules", "redirections", "referral_marketing", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("url_pattern", mode="before")
    @classmethod
    def _null_as_blank(cls, value: Any) -> Any:
        return "" if value is None else value


class RulesetDocument(BaseModel):
    """Top-level document. Providers stay untyped here so one bad entry can't sink the rest."""

    model_config = ConfigDict(extra="ignore")

    providers: dict[str, Any]


def parse_ruleset(
    payload: str | bytes | Mapping[str, Any],
    log: structlog.stdlib.BoundLogger = _log,
) -> dict[str, RawProvider]:
    """Decode a ruleset document into typed provider definitions.

    Raises RulesetLoadError when the document itself is unusable; malformed
    individual providers are skipped.
    """
    try:
        if isinstance(payload, (str, bytes)):
            document = RulesetDocument.model_validate_json(payload)
        else:
            document = RulesetDocument.model_validate(payload)
    except ValidationError as exc:
        raise RulesetLoadError(f"Malformed ruleset document ({exc.error_count()} errors): {exc.errors()[0]['msg']}") from exc

    providers: dict[str, RawProvider] = {}
    for name, definition in document.providers.items():
        try:
            providers[name] = RawProvider.model_validate(definition)
        except ValidationError as exc:
            log.debug("ruleset.provider_invalid", provider=name, errors=exc.error_count())
    return providers


# -- Compilation ------------------------------------------------------------------


class CompiledProvider(BaseModel):
    """Immutable, ready-to-match provider."""

    model_config = ConfigDict(frozen=True)

    name: str
    url_pattern: re.Pattern
    rules: tuple[re.Pattern, ...] = ()
    exceptions: tuple[re.Pattern, ...] = ()
    raw_rules: tuple[re.Pattern, ...] = ()
    redirections: tuple[re.Pattern, ...] = ()
    referral_marketing: tuple[re.Pattern, ...] = ()
    force_redirection: bool = False

    @property
    def is_generic(self) -> bool:
        return self.name == GENERIC_PROVIDER

    def applies_to(self, url: str) -> bool:
        return self.is_generic or self.url_pattern.search(url) is not None

    def is_exception(self, url: str) -> bool:
        return any(rx.search(url) for rx in self.exceptions)

    def strips_param(self, name: str) -> bool:
        """True if *name* is a tracking or referral parameter for this provider."""
        return any(rx.search(name) for rx in self.rules) or any(rx.search(name) for rx in self.referral_marketing)


def _compile(pattern: str) -> re.Pattern | None:
    try:
        return re.compile(pattern, PATTERN_FLAGS)
    except (re.error, OverflowError):
        return None


def _compile_all(patterns: Iterable[str]) -> tuple[re.Pattern, ...]:
    return tuple(rx for rx in map(_compile, patterns) if rx is not None)


def compile_provider(name: str, raw: RawProvider) -> CompiledProvider | None:
    """Compile one provider; None if its url pattern is empty or invalid."""
    if not raw.url_pattern:
        return None
    url_pattern = _compile(raw.url_pattern)
    if url_pattern is None:
        return None

    return CompiledProvider(
        name=name,
        url_pattern=url_pattern,
        rules=_compile_all(raw.rules),
        exceptions=_compile_all(raw.exceptions),
        raw_rules=_compile_all(raw.raw_rules),
        redirections=_compile_all(raw.redirections),
        referral_marketing=_compile_all(raw.referral_marketing),
        force_redirection=raw.force_redirection,
    )


def compile_providers(
    raw_providers: Mapping[str, RawProvider],
    log: structlog.stdlib.BoundLogger = _log,
) -> tuple[CompiledProvider, ...]:
    """Compile all providers in document order, dropping unusable ones."""
    compiled: list[CompiledProvider] = []
    for name, raw in raw_providers.items():
        provider = compile_provider(name, raw)
        if provider is None:
            log.debug("ruleset.provider_dropped", provider=name)
            continue
        compiled.append(provider)
    return tuple(compiled)


# -- Fetching -------------------------------------------------------------------------


def _should_retry(retry_state) -> bool:
    exc = retry_state.outcome.exception()
    return isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code in (429, 503)


@retry(
    retry=_should_retry,
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    reraise=True,
)
def fetch_ruleset(client: httpx.Client, url: str) -> bytes:
    """GET the raw ruleset document, retrying on 429/503."""
    resp = client.get(url)
    resp.raise_for_status()
    return resp.content


# -- Store ----------------------------------------------------------------------------


class RulesetStore:
    """Holds the active providers as an immutable tuple.

    Readers take ``snapshot()`` without locking. Writers swap the whole tuple
    under a short lock; providers are never mutated in place.
    """

    def __init__(self, providers: Iterable[CompiledProvider] = (), *, lock_timeout: float = 5.0) -> None:
        self._providers: tuple[CompiledProvider, ...] = tuple(providers)
        self._lock = threading.Lock()
        self._lock_timeout = lock_timeout

    def snapshot(self) -> tuple[CompiledProvider, ...]:
        return self._providers

    def replace(self, providers: Iterable[CompiledProvider]) -> None:
        new_providers = tuple(providers)
        if not self._lock.acquire(timeout=self._lock_timeout):
            raise RulesetLockError(f"Could not acquire ruleset store lock within {self._lock_timeout}s")
        try:
            self._providers = new_providers
        finally:
            self._lock.release()

    def __len__(self) -> int:
        return len(self._providers)
