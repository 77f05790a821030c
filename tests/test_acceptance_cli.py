"""Acceptance tests for CLI commands."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
import structlog
from click.testing import CliRunner

from urlscrub.cli import cli

RULES = {
    "providers": {
        "youtube": {"urlPattern": r"^https?:\/\/(?:[a-z0-9-]+\.)*?youtube\.com", "rules": ["feature", "si"]},
        "generic": {"urlPattern": ".*", "rules": ["utm_[a-z_]+", "fbclid"]},
        "broken": {"urlPattern": "(("},
    }
}


@pytest.fixture(autouse=True)
def _isolated(monkeypatch, tmp_path: Path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("URLSCRUB_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.delenv("URLSCRUB_RULES_FILE", raising=False)
    yield
    # setup_logging rebinds global handlers to the runner's streams
    logging.getLogger().handlers.clear()
    structlog.reset_defaults()


@pytest.fixture
def rules_file(tmp_path: Path) -> Path:
    path = tmp_path / "rules.json"
    path.write_text(json.dumps(RULES))
    return path


def _invoke(*args: str):
    return CliRunner().invoke(cli, ["--config", "missing.yaml", *args])


class TestCleanCommand:
    def test_cleans_urls(self, rules_file: Path):
        result = _invoke(
            "clean",
            "--rules-file",
            str(rules_file),
            "https://www.youtube.com/watch?v=abc&feature=share",
            "https://example.com/?utm_source=x&a=1",
        )
        assert result.exit_code == 0, result.output
        assert "https://www.youtube.com/watch?v=abc\tyoutube" in result.output
        assert "https://example.com/?a=1\tgeneric" in result.output

    def test_unchanged_url(self, rules_file: Path):
        result = _invoke("clean", "--rules-file", str(rules_file), "https://example.com/page")
        assert result.exit_code == 0
        assert "https://example.com/page\t(unchanged)" in result.output

    def test_custom_rule_and_ignored_domain_options(self, rules_file: Path):
        result = _invoke(
            "clean",
            "--rules-file",
            str(rules_file),
            "-r",
            "session",
            "-i",
            "intranet.test",
            "https://shop.test/?sessionid=1&q=2",
            "https://intranet.test/?utm_source=x",
        )
        assert result.exit_code == 0
        assert "https://shop.test/?q=2\tgeneric" in result.output
        assert "https://intranet.test/?utm_source=x\t(unchanged)" in result.output

    def test_config_file_rules(self, rules_file: Path, tmp_path: Path):
        config = tmp_path / "config.yaml"
        config.write_text(f"custom_rules:\n  - owner_id: 3\n    pattern: aff\nsettings:\n  rules_file: {rules_file}\n")
        result = CliRunner().invoke(cli, ["--config", str(config), "clean", "https://shop.test/?aff_id=9&q=2"])
        assert result.exit_code == 0, result.output
        assert "https://shop.test/?q=2" in result.output

    def test_bad_rules_file_exits_1(self, tmp_path: Path):
        bad = tmp_path / "bad.json"
        bad.write_text("{oops")
        result = _invoke("clean", "--rules-file", str(bad), "https://example.com/")
        assert result.exit_code == 1
        assert "Could not load ruleset" in result.output


class TestRulesCommand:
    def test_summary(self, rules_file: Path):
        result = _invoke("rules", "--rules-file", str(rules_file), "-v")
        assert result.exit_code == 0, result.output
        assert "Providers: 2" in result.output
        assert "youtube: rules=2" in result.output
        assert "broken" not in result.output.split("=== Ruleset")[1]
