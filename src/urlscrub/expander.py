"""Resolve known link shorteners to their destination before cleaning."""

from __future__ import annotations

import httpx
import structlog

from urlscrub.redaction import Redactor
from urlscrub.utils.http import create_http_client
from urlscrub.utils.urls import ensure_scheme, host_of, parse_url

SHORTENER_DOMAINS = frozenset(
    {
        "bit.ly",
        "tinyurl.com",
        "t.co",
        "goo.gl",
        "rebrand.ly",
        "buff.ly",
        "is.gd",
        "ow.ly",
        "t.me",
        "shorturl.at",
    }
)


def is_shortener_host(host: str) -> bool:
    return any(host == domain or host.endswith(f".{domain}") for domain in SHORTENER_DOMAINS)


class ShortenerExpander:
    """Follow redirects of shortened links with bounded hops and timeout.

    Never raises: any network failure degrades to returning the input.
    """

    def __init__(
        self,
        client: httpx.Client | None = None,
        *,
        timeout: float = 10.0,
        max_redirects: int = 5,
        proxy_url: str | None = None,
        redactor: Redactor | None = None,
        log: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._client = client
        self.timeout = timeout
        self.max_redirects = max_redirects
        self.proxy_url = proxy_url
        self.redactor = redactor or Redactor()
        self.log = log or structlog.get_logger(__name__)

    def is_shortened(self, text: str) -> bool:
        url = parse_url(ensure_scheme(text))
        return url is not None and is_shortener_host(host_of(url))

    def expand(self, text: str) -> str:
        if not self.is_shortened(text):
            return text

        target = ensure_scheme(text)
        redacted = self.redactor.redact(text)
        self.log.debug("expander.expanding", url=redacted)

        client = self._client or create_http_client(
            proxy_url=self.proxy_url,
            timeout=self.timeout,
            follow_redirects=True,
            max_redirects=self.max_redirects,
        )
        try:
            resp = client.head(target)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            self.log.warning("expander.failed", url=redacted, error=str(exc))
            return text
        finally:
            if self._client is None:
                client.close()

        final_url = str(resp.url)
        if final_url in (text, target):
            return text

        self.log.info("expander.expanded", url=redacted, expanded=self.redactor.redact(final_url))
        return final_url
