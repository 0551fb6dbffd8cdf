"""Environment-sourced settings for the expense extraction pipeline."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

OPENAI = "openai"
ANTHROPIC = "anthropic"

_DEFAULT_MODELS: dict[str, str] = {
    OPENAI: "gpt-4o-mini",
    ANTHROPIC: "claude-haiku-4-5-20251001",
}
_DEFAULT_SECRET_NAME = "openai-api-key"
_DEFAULT_MAX_TOKENS = 2048


def _blank_to_none(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value


def _flag(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Everything the pipeline reads from its environment.

    Blank strings are normalised to None so "set but empty" and "unset"
    behave the same downstream.
    """

    provider: str = OPENAI
    model: str = _DEFAULT_MODELS[OPENAI]
    api_key: str | None = None
    secret_project: str | None = None
    secret_name: str = _DEFAULT_SECRET_NAME
    system_prompt: str | None = None
    user_prompt_template: str | None = None
    allow_default_prompts: bool = False
    max_tokens: int = _DEFAULT_MAX_TOKENS

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build Settings from environment variables (or any mapping)."""
        env = os.environ if environ is None else environ
        provider = (env.get("MODEL_PROVIDER") or OPENAI).strip().lower()
        if provider not in _DEFAULT_MODELS:
            raise ValueError(
                f"MODEL_PROVIDER must be one of {sorted(_DEFAULT_MODELS)}, got {provider!r}"
            )

        if provider == ANTHROPIC:
            api_key = _blank_to_none(env.get("ANTHROPIC_API_KEY"))
        else:
            api_key = _blank_to_none(env.get("OPENAI_API_KEY")) or _blank_to_none(
                env.get("openai-api-key")
            )

        return cls(
            provider=provider,
            model=_blank_to_none(env.get("OPENAI_MODEL")) or _DEFAULT_MODELS[provider],
            api_key=api_key,
            secret_project=_blank_to_none(env.get("SECRET_MANAGER_PROJECT")),
            secret_name=_blank_to_none(env.get("SECRET_NAME")) or _DEFAULT_SECRET_NAME,
            system_prompt=_blank_to_none(env.get("OPENAI_SYSTEM_PROMPT")),
            user_prompt_template=_blank_to_none(env.get("OPENAI_USER_PROMPT_TEMPLATE")),
            allow_default_prompts=_flag(env.get("ALLOW_DEFAULT_PROMPTS")),
            max_tokens=int(env.get("MODEL_MAX_TOKENS") or _DEFAULT_MAX_TOKENS),
        )
