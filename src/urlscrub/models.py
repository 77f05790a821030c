"""Pydantic models for validation and serialization."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

PROVIDER_CUSTOM = "Custom/Other"
PROVIDER_GITHUB_ROOT = "GitHub (Repo Root)"


class CustomRule(BaseModel):
    """Requester-owned substring removing every query parameter whose name contains it."""

    model_config = ConfigDict(frozen=True)

    owner_id: int
    pattern: str


class CleaningResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    original: str
    cleaned: str
    provider: str
