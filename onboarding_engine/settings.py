from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ALLOWED_MIME_TYPES = frozenset({"image/jpeg", "image/png", "application/pdf"})


class OnboardingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="ONBOARDING_", extra="forbid")

    code_length: int = Field(default=6, ge=1)
    max_file_size_bytes: int = Field(default=5 * 1024 * 1024, gt=0)
    allowed_mime_types: frozenset[str] = DEFAULT_ALLOWED_MIME_TYPES
    # "any_category": one category with a successful upload is enough.
    document_completion_rule: Literal["any_category", "all_categories"] = "any_category"
    require_clean_category: bool = False
    strict_account_checks: bool = False
    enforce_option_catalog: bool = False
