"""Click CLI with commands: clean, rules."""

from __future__ import annotations

import click

from urlscrub.config import AppConfig, load_config
from urlscrub.engine import RuleEngine
from urlscrub.errors import RulesetError
from urlscrub.logging import setup_logging
from urlscrub.models import CustomRule
from urlscrub.redaction import Redactor

# Owner id attached to rules given on the command line
CLI_OWNER_ID = 0


@click.group()
@click.option("--config", "config_path", default="config.yaml", help="Path to config YAML file.")
@click.pass_context
def cli(ctx: click.Context, config_path: str) -> None:
    """urlscrub: strip tracking parameters from URLs."""
    ctx.ensure_object(dict)
    ctx.obj["config"] = load_config(config_path)


def _load_engine(cfg: AppConfig, rules_file: str | None, name: str) -> RuleEngine:
    """Build the engine and activate a ruleset, exiting with status 1 on failure."""
    log = setup_logging(cfg.settings.log_dir, name, level=cfg.settings.log_level, redactor=Redactor())
    engine = RuleEngine.from_settings(cfg.settings, log)
    source = rules_file or cfg.settings.rules_file
    try:
        if source:
            engine.load_file(source)
        else:
            engine.refresh()
    except RulesetError as exc:
        click.echo(f"Could not load ruleset: {exc}", err=True)
        raise SystemExit(1) from exc
    return engine


@cli.command()
@click.argument("urls", nargs=-1, required=True)
@click.option("--custom-rule", "-r", "custom_patterns", multiple=True, help="Remove parameters whose name contains this text.")
@click.option("--ignore-domain", "-i", "ignored", multiple=True, help="Leave URLs on hosts containing this text untouched.")
@click.option("--expand", is_flag=True, help="Resolve known link shorteners before cleaning.")
@click.option("--rules-file", type=click.Path(dir_okay=False), help="Local ruleset JSON instead of the remote source.")
@click.pass_context
def clean(
    ctx: click.Context,
    urls: tuple[str, ...],
    custom_patterns: tuple[str, ...],
    ignored: tuple[str, ...],
    expand: bool,
    rules_file: str | None,
) -> None:
    """Print the cleaned form of each URL, one per line."""
    cfg = ctx.obj["config"]
    engine = _load_engine(cfg, rules_file, "clean")

    custom_rules = cfg.custom_rules + [CustomRule(owner_id=CLI_OWNER_ID, pattern=p) for p in custom_patterns]
    ignored_domains = cfg.ignored_domains + list(ignored)

    for url in urls:
        target = engine.expand_url(url) if expand else url
        result = engine.sanitize(target, custom_rules, ignored_domains)
        if result is None:
            click.echo(f"{target}\t(unchanged)")
        else:
            click.echo(f"{result.cleaned}\t{result.provider}")


@cli.command()
@click.option("--rules-file", type=click.Path(dir_okay=False), help="Local ruleset JSON instead of the remote source.")
@click.option("--verbose", "-v", is_flag=True, help="List every provider with its rule counts.")
@click.pass_context
def rules(ctx: click.Context, rules_file: str | None, verbose: bool) -> None:
    """Load the ruleset and summarize what compiled."""
    cfg = ctx.obj["config"]
    engine = _load_engine(cfg, rules_file, "rules")
    providers = engine.store.snapshot()

    click.echo(f"\n=== Ruleset ({rules_file or cfg.settings.rules_file or engine.source_url}) ===")
    click.echo(f"  Providers: {len(providers)}")
    if verbose:
        for p in providers:
            click.echo(
                f"  {p.name}: rules={len(p.rules)} referral={len(p.referral_marketing)} "
                f"exceptions={len(p.exceptions)} redirections={len(p.redirections)} raw={len(p.raw_rules)}"
            )
    click.echo()
