"""Global settings loaded from environment variables via pydantic-settings."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict

CLEARURLS_RULES_URL = "https://raw.githubusercontent.com/ClearURLs/Rules/refs/heads/master/data.min.json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="URLSCRUB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    rules_url: str = CLEARURLS_RULES_URL
    rules_file: str = ""  # local JSON copy, takes precedence over rules_url
    log_dir: str = "./data/logs"
    log_level: str = "INFO"  # stdout threshold; the JSON file always gets DEBUG
    proxy_url: str = ""
    # Network bounds
    rules_timeout: float = 30.0
    expand_timeout: float = 10.0
    expand_max_redirects: int = 5
