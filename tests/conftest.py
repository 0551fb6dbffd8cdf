"""Shared pytest fixtures."""

import pytest

from src.config import Settings
from src.processing.types import EmailRecord


@pytest.fixture
def sample_batch() -> list[EmailRecord]:
    """Three receipt emails in a fixed order."""
    return [
        EmailRecord(
            date="2026-02-27",
            sender="receipts@coffee.example",
            message="Thanks for your order: Flat white $4.50",
        ),
        EmailRecord(
            date="2026-02-28",
            sender="no-reply@rides.example",
            message="Your trip on Saturday: total €18.20",
        ),
        EmailRecord(
            date="2026-03-01",
            sender="billing@cloud.example",
            message="Invoice #1042 for March: $12.00",
        ),
    ]


@pytest.fixture
def settings() -> Settings:
    """Settings with both prompts configured and a direct API key."""
    return Settings(
        api_key="sk-test",
        system_prompt="Return JSON only.",
        user_prompt_template="Categories: {{categories}}\nEmails: {{emails}}",
    )
