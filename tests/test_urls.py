"""Tests for URL parsing helpers."""

from __future__ import annotations

import pytest

from urlscrub.utils.urls import ensure_scheme, filter_query, parse_url, path_segments, query_pairs, serialize


class TestEnsureScheme:
    def test_bare_domain(self):
        assert ensure_scheme("example.com/a") == "http://example.com/a"

    def test_existing_scheme(self):
        assert ensure_scheme("ftp://example.com") == "ftp://example.com"

    def test_mailto(self):
        assert ensure_scheme("mailto:a@b.test") == "mailto:a@b.test"


class TestParseUrl:
    def test_round_trip(self):
        text = "https://user@Example.com:8443/a/b?x=1&y=%2F#frag"
        assert serialize(parse_url(text)) == text

    def test_opaque_url_has_no_host(self):
        url = parse_url("mailto:a@b.test?subject=x")
        assert url.path == "a@b.test"
        assert url.query == "subject=x"

    @pytest.mark.parametrize(
        "text",
        ["no-scheme/path", "http://", "http:///path", "http:opaque", "http://bad host/", "http://[::1", "http://a.test:port/"],
    )
    def test_rejects(self, text):
        assert parse_url(text) is None


class TestQueryHelpers:
    def test_query_pairs_keeps_blank_values(self):
        assert query_pairs("a=&b=2&c") == [("a", ""), ("b", "2"), ("c", "")]

    def test_filter_query_reports_removed(self):
        url, removed = filter_query(parse_url("https://a.test/?x=1&y=2&x=3"), lambda k: k == "x")
        assert removed == ["x", "x"]
        assert serialize(url) == "https://a.test/?y=2"

    def test_path_segments(self):
        assert path_segments(parse_url("https://a.test/o/r/")) == ["o", "r", ""]
        assert path_segments(parse_url("mailto:a@b.test")) == []
