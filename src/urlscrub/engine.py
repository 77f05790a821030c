"""Match & rewrite engine: provider identification and the converging clean loop."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any
from urllib.parse import SplitResult, unquote

import httpx
import structlog

from urlscrub.errors import RulesetError, RulesetLoadError
from urlscrub.expander import ShortenerExpander
from urlscrub.filters import apply_custom_rules, strip_fallback_trackers, truncate_github_repo
from urlscrub.models import PROVIDER_CUSTOM, PROVIDER_GITHUB_ROOT, CleaningResult, CustomRule
from urlscrub.redaction import Redactor
from urlscrub.ruleset import CompiledProvider, RulesetStore, compile_providers, fetch_ruleset, parse_ruleset
from urlscrub.settings import CLEARURLS_RULES_URL, Settings
from urlscrub.utils.http import create_http_client
from urlscrub.utils.urls import encode_query, ensure_scheme, host_of, parse_url, query_pairs, serialize

# Outer passes per clean_url call; multi-hop redirect chains resolve one hop per pass
MAX_ITERATIONS = 5
# Nesting budget shared by parameter-value and fragment recursion
MAX_DEPTH = 5

# Synthetic base used to clean a query string smuggled into a fragment
_FRAGMENT_BASE = "http://localhost"

Providers = Sequence[CompiledProvider]


def is_ignored_host(host: str, ignored_domains: Iterable[str]) -> bool:
    return any(domain and domain.lower() in host for domain in ignored_domains)


class RuleEngine:
    """Sanitize URLs against the active ClearURLs ruleset.

    The engine itself holds no per-requester state: custom rules and ignored
    domains are passed on each call. The ruleset lives in a ``RulesetStore``
    and is replaced wholesale by ``refresh()`` / ``load_file()``.
    """

    def __init__(
        self,
        store: RulesetStore | None = None,
        *,
        source_url: str = CLEARURLS_RULES_URL,
        timeout: float = 30.0,
        proxy_url: str | None = None,
        http_client: httpx.Client | None = None,
        expander: ShortenerExpander | None = None,
        redactor: Redactor | None = None,
        log: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self.store = store or RulesetStore()
        self.source_url = source_url
        self.timeout = timeout
        self.proxy_url = proxy_url
        self._http_client = http_client
        self.redactor = redactor or Redactor()
        self.log = log or structlog.get_logger(__name__)
        self.expander = expander or ShortenerExpander(proxy_url=proxy_url, redactor=self.redactor, log=self.log)

    @classmethod
    def from_settings(cls, settings: Settings, log: structlog.stdlib.BoundLogger | None = None) -> RuleEngine:
        redactor = Redactor()
        log = log or structlog.get_logger(__name__)
        proxy_url = settings.proxy_url or None
        expander = ShortenerExpander(
            timeout=settings.expand_timeout,
            max_redirects=settings.expand_max_redirects,
            proxy_url=proxy_url,
            redactor=redactor,
            log=log,
        )
        return cls(
            source_url=settings.rules_url,
            timeout=settings.rules_timeout,
            proxy_url=proxy_url,
            expander=expander,
            redactor=redactor,
            log=log,
        )

    # -- Ruleset loading ---------------------------------------------------------

    def load_document(self, payload: str | bytes | Mapping[str, Any]) -> int:
        """Parse, compile and activate a ruleset document. Returns provider count."""
        raw_providers = parse_ruleset(payload, self.log)
        providers = compile_providers(raw_providers, self.log)
        self.store.replace(providers)
        self.log.info("ruleset.loaded", providers=len(providers), dropped=len(raw_providers) - len(providers))
        return len(providers)

    def load_file(self, path: str | Path) -> int:
        try:
            payload = Path(path).read_bytes()
        except OSError as exc:
            self.log.error("ruleset.refresh_failed", source=str(path), error=str(exc))
            raise RulesetLoadError(f"Cannot read ruleset file {path}: {exc}") from exc
        try:
            return self.load_document(payload)
        except RulesetError as exc:
            self.log.error("ruleset.refresh_failed", source=str(path), error=str(exc))
            raise

    def refresh(self) -> int:
        """Re-fetch the ruleset and hot-swap it.

        On failure the previous ruleset stays active and the error is raised
        after being logged; the caller's scheduler decides when to retry.
        """
        self.log.info("ruleset.fetching", source=self.source_url)
        client = self._http_client or create_http_client(proxy_url=self.proxy_url, timeout=self.timeout, follow_redirects=True)
        try:
            payload = fetch_ruleset(client, self.source_url)
            return self.load_document(payload)
        except httpx.HTTPError as exc:
            self.log.error("ruleset.refresh_failed", source=self.source_url, error=str(exc))
            raise RulesetLoadError(f"Failed to fetch ruleset from {self.source_url}: {exc}") from exc
        except RulesetError as exc:
            self.log.error("ruleset.refresh_failed", source=self.source_url, error=str(exc))
            raise
        finally:
            if self._http_client is None:
                client.close()

    # -- Entry points --------------------------------------------------------------

    def expand_url(self, text: str) -> str:
        return self.expander.expand(text)

    def sanitize(
        self,
        text: str,
        custom_rules: Iterable[CustomRule] = (),
        ignored_domains: Iterable[str] = (),
    ) -> CleaningResult | None:
        """Clean *text* as a URL. None means it was already canonical (or not a URL)."""
        providers = self.store.snapshot()
        redacted = self.redactor.redact(text)
        self.log.debug("sanitizer.started", url=redacted)

        url = parse_url(ensure_scheme(text))
        if url is None:
            self.log.debug("sanitizer.unparsable", url=redacted)
            return None

        host = host_of(url)
        if host and is_ignored_host(host, ignored_domains):
            self.log.debug("sanitizer.ignored_domain", host=self.redactor.redact(host))
            return None

        custom_rules = list(custom_rules)
        changed = github_changed = False
        # Rounds repeat until nothing changes; redirect targets get every pass too
        for _ in range(MAX_ITERATIONS):
            url, truncated = truncate_github_repo(url)
            url, custom_changed = apply_custom_rules(url, custom_rules, self.log)
            url, rewritten = self.clean_url(url, providers=providers)
            url, fallback_changed = strip_fallback_trackers(url, self.log)
            github_changed = github_changed or truncated
            if not (truncated or custom_changed or rewritten or fallback_changed):
                break
            changed = True

        if not changed:
            return None

        provider_name = self._identify_provider(text, providers, github_changed)

        cleaned = serialize(url)
        if cleaned == text:
            return None

        self.log.info("sanitizer.cleaned", original=redacted, cleaned=self.redactor.redact(cleaned), provider=provider_name)
        return CleaningResult(original=text, cleaned=cleaned, provider=provider_name)

    def _identify_provider(self, text: str, providers: Providers, github_changed: bool) -> str:
        """Reporting label only; matched against the untouched input."""
        for provider in providers:
            if provider.url_pattern.search(text):
                self.log.debug("sanitizer.provider_identified", provider=provider.name)
                return provider.name
        return PROVIDER_GITHUB_ROOT if github_changed else PROVIDER_CUSTOM

    def sanitize_many(
        self,
        texts: Iterable[str],
        custom_rules: Iterable[CustomRule] = (),
        ignored_domains: Iterable[str] = (),
    ) -> list[CleaningResult]:
        """Sanitize each text, keeping only the ones that changed."""
        custom_rules = list(custom_rules)
        ignored_domains = list(ignored_domains)
        results = []
        for text in texts:
            result = self.sanitize(text, custom_rules, ignored_domains)
            if result is not None:
                results.append(result)
        return results

    # -- Rewrite loop --------------------------------------------------------------

    def clean_url(
        self,
        url: SplitResult,
        *,
        providers: Providers | None = None,
        depth: int = 0,
    ) -> tuple[SplitResult, bool]:
        """Apply every active provider until a pass changes nothing.

        Runs at most MAX_ITERATIONS passes. Returns the rewritten URL and
        whether anything changed. Nested URLs (parameter values, fragments)
        are cleaned recursively with ``depth + 1``; at MAX_DEPTH the URL is
        returned as-is.
        """
        if providers is None:
            providers = self.store.snapshot()
        if depth >= MAX_DEPTH:
            self.log.debug("sanitizer.depth_exhausted", depth=depth)
            return url, False

        changed = False
        for _ in range(MAX_ITERATIONS):
            pass_changed = False
            for provider in providers:
                url, provider_changed = self._apply_provider(provider, url, providers, depth)
                pass_changed = pass_changed or provider_changed
            if not pass_changed:
                break
            changed = True
        return url, changed

    def _apply_provider(
        self,
        provider: CompiledProvider,
        url: SplitResult,
        providers: Providers,
        depth: int,
    ) -> tuple[SplitResult, bool]:
        current = serialize(url)
        if not provider.applies_to(current):
            return url, False
        if provider.is_exception(current):
            return url, False

        redirected = self._follow_redirection(provider, url, current)
        if redirected is not None:
            return redirected, True

        changed = False

        if url.query:
            url, query_changed = self._filter_params(provider, url, providers, depth)
            changed = changed or query_changed

        if "=" in url.fragment:
            url, fragment_changed = self._clean_fragment(url, providers, depth)
            changed = changed or fragment_changed

        if provider.raw_rules:
            url, raw_changed = self._apply_raw_rules(provider, url)
            changed = changed or raw_changed

        return url, changed

    def _follow_redirection(self, provider: CompiledProvider, url: SplitResult, current: str) -> SplitResult | None:
        for pattern in provider.redirections:
            match = pattern.search(current)
            if match is None or pattern.groups < 1 or not match.group(1):
                continue
            target = parse_url(unquote(match.group(1)))
            if target is None or target == url:
                continue
            self.log.debug("sanitizer.redirected", provider=provider.name, url=self.redactor.redact(serialize(target)))
            return target
        return None

    def _filter_params(
        self,
        provider: CompiledProvider,
        url: SplitResult,
        providers: Providers,
        depth: int,
    ) -> tuple[SplitResult, bool]:
        kept: list[tuple[str, str]] = []
        rewritten = False
        for key, value in query_pairs(url.query):
            if provider.strips_param(key):
                rewritten = True
                continue
            # Open-redirect wrappers carry the destination as a parameter value
            if value.startswith("http"):
                nested = parse_url(value)
                if nested is not None:
                    nested, nested_changed = self.clean_url(nested, providers=providers, depth=depth + 1)
                    if nested_changed:
                        value = serialize(nested)
                        rewritten = True
            kept.append((key, value))

        if not rewritten:
            return url, False
        return url._replace(query=encode_query(kept)), True

    def _clean_fragment(self, url: SplitResult, providers: Providers, depth: int) -> tuple[SplitResult, bool]:
        synthetic = parse_url(f"{_FRAGMENT_BASE}?{url.fragment}")
        if synthetic is None:
            return url, False
        synthetic, changed = self.clean_url(synthetic, providers=providers, depth=depth + 1)
        if not changed:
            return url, False
        return url._replace(fragment=synthetic.query), True

    def _apply_raw_rules(self, provider: CompiledProvider, url: SplitResult) -> tuple[SplitResult, bool]:
        current = serialize(url)
        stripped = current
        for pattern in provider.raw_rules:
            stripped = pattern.sub("", stripped)
        if stripped == current:
            return url, False
        reparsed = parse_url(stripped)
        if reparsed is None:
            return url, False
        return reparsed, True
