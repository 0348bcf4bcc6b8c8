from __future__ import annotations

import os
from typing import Mapping, Sequence

from pydantic import BaseModel, Field, ValidationError, field_validator

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_REDDIT_USER_AGENT = "SocialListening/1.0"

AI_REQUIRED_ENVS = ("OPENAI_API_KEY",)


class Settings(BaseModel):
    openai_api_key: str = ""
    openai_model: str = DEFAULT_OPENAI_MODEL
    openai_base_url: str = DEFAULT_OPENAI_BASE_URL
    ai_request_timeout_seconds: float = Field(default=30.0, gt=0.0)
    ai_batch_concurrency: int = Field(default=3, ge=1)
    ai_batch_delay_seconds: float = Field(default=0.2, ge=0.0)
    request_timeout_seconds: float = Field(default=10.0, gt=0.0)
    reddit_user_agent: str = DEFAULT_REDDIT_USER_AGENT
    reddit_rate_limit_per_minute: int = Field(default=30, ge=1)
    hackernews_rate_limit_per_minute: int = Field(default=100, ge=1)

    @field_validator("openai_base_url")
    @classmethod
    def _validate_base_url(cls, value: str) -> str:
        if not value.startswith(("https://", "http://")):
            raise ValueError("OPENAI_BASE_URL must be an http(s) URL")
        return value.rstrip("/")

    @property
    def ai_enabled(self) -> bool:
        return bool(self.openai_api_key)


def _env_value(environ: Mapping[str, str], key: str) -> str:
    return environ.get(key, "").strip()


def missing_envs(required: Sequence[str], environ: Mapping[str, str] | None = None) -> list[str]:
    source = os.environ if environ is None else environ
    return [key for key in required if not _env_value(source, key)]


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    source = os.environ if environ is None else environ
    payload = {
        "openai_api_key": _env_value(source, "OPENAI_API_KEY"),
        "openai_model": _env_value(source, "OPENAI_MODEL") or DEFAULT_OPENAI_MODEL,
        "openai_base_url": _env_value(source, "OPENAI_BASE_URL") or DEFAULT_OPENAI_BASE_URL,
        "ai_request_timeout_seconds": _env_value(source, "AI_REQUEST_TIMEOUT_SECONDS") or "30",
        "ai_batch_concurrency": _env_value(source, "AI_BATCH_CONCURRENCY") or "3",
        "ai_batch_delay_seconds": _env_value(source, "AI_BATCH_DELAY_SECONDS") or "0.2",
        "request_timeout_seconds": _env_value(source, "REQUEST_TIMEOUT_SECONDS") or "10",
        "reddit_user_agent": _env_value(source, "REDDIT_USER_AGENT") or DEFAULT_REDDIT_USER_AGENT,
        "reddit_rate_limit_per_minute": _env_value(source, "REDDIT_RATE_LIMIT_PER_MINUTE") or "30",
        "hackernews_rate_limit_per_minute": (
            _env_value(source, "HACKERNEWS_RATE_LIMIT_PER_MINUTE") or "100"
        ),
    }
    try:
        return Settings(**payload)
    except ValidationError as exc:
        raise ValueError(str(exc)) from exc


def mask_secret(value: str, visible_prefix: int = 3, visible_suffix: int = 2) -> str:
    if not value:
        return ""
    if len(value) <= visible_prefix + visible_suffix:
        return "*" * len(value)
    hidden = "*" * (len(value) - visible_prefix - visible_suffix)
    return f"{value[:visible_prefix]}{hidden}{value[-visible_suffix:]}"
