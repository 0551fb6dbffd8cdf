"""Prompt builder for batch expense extraction."""

from __future__ import annotations

import json
from collections.abc import Collection, Sequence
from typing import TYPE_CHECKING

from src.processing.types import ConfigurationError, EmailRecord

if TYPE_CHECKING:
    from src.config import Settings

CATEGORIES_PLACEHOLDER = "{{categories}}"
EMAILS_PLACEHOLDER = "{{emails}}"

#: Substituted for {{categories}} when the caller sends no categories.
NO_CATEGORIES_TEXT = "No categories provided."

# Only used when ALLOW_DEFAULT_PROMPTS is on; otherwise both prompts must be
# configured explicitly.
DEFAULT_SYSTEM_PROMPT = (
    "You extract expense data from emails. Return valid JSON only: an object "
    'with an "entries" array holding one object per email, in input order, '
    "each with keys: date, amount, category, description."
)

DEFAULT_USER_PROMPT_TEMPLATE = (
    "Categories: {{categories}}\n"
    "Emails (JSON array of objects with date, sender, message):\n"
    "{{emails}}\n\n"
    "Rules:\n"
    "- Return exactly one entry per email, in the same order.\n"
    "- Use the email's date when possible.\n"
    "- amount should include currency symbol if present.\n"
    "- category should be one of the provided categories when possible.\n"
    "- description should be short and concrete."
)


def build_prompt(
    batch: Sequence[EmailRecord],
    categories: Collection[str],
    template: str,
) -> str:
    """Render `template` for one batch.

    Substitution is plain string replacement: ``{{categories}}`` becomes the
    comma-joined category list and ``{{emails}}`` the batch as a JSON array.
    Any other ``{{...}}`` text is left as written.
    """
    category_text = ", ".join(categories) if categories else NO_CATEGORIES_TEXT
    emails_json = json.dumps([email.to_dict() for email in batch], ensure_ascii=False)
    # Chained: an {{emails}} inside a category label is substituted too.
    return template.replace(CATEGORIES_PLACEHOLDER, category_text).replace(
        EMAILS_PLACEHOLDER, emails_json
    )


def resolve_prompts(settings: Settings) -> tuple[str, str]:
    """Return (system_prompt, user_prompt_template) for `settings`.

    Raises:
        ConfigurationError: if either prompt is unset and the embedded
            defaults are not allowed.
    """
    system_prompt = settings.system_prompt
    template = settings.user_prompt_template

    if settings.allow_default_prompts:
        return system_prompt or DEFAULT_SYSTEM_PROMPT, template or DEFAULT_USER_PROMPT_TEMPLATE

    if not system_prompt:
        raise ConfigurationError("OPENAI_SYSTEM_PROMPT is required.")
    if not template:
        raise ConfigurationError("OPENAI_USER_PROMPT_TEMPLATE is required.")
    return system_prompt, template
