"""YAML config loading with env var overrides."""

from __future__ import annotations

from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from urlscrub.models import CustomRule
from urlscrub.settings import Settings


class AppConfig(BaseModel):
    custom_rules: list[CustomRule] = []
    ignored_domains: list[str] = []
    settings: Settings = Field(default_factory=Settings)


def load_config(config_path: str = "config.yaml") -> AppConfig:
    """Load config from YAML file, then apply env var overrides.

    Only the ``settings`` section is overridable from the environment
    (``URLSCRUB_*``); custom rules and ignored domains come from the file.
    """
    load_dotenv()

    data: dict = {}
    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            data = yaml.safe_load(f) or {}

    # Settings() reads URLSCRUB_* itself; file values only fill what the env leaves unset
    file_settings = data.pop("settings", None) or {}
    settings = Settings()
    overrides = {k: v for k, v in file_settings.items() if k in Settings.model_fields and k not in settings.model_fields_set}

    return AppConfig(**data, settings=Settings(**{**settings.model_dump(), **overrides}))
