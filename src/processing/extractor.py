"""Expense extraction pipeline — prompt, model call, normalize, align."""

from __future__ import annotations

import logging
from collections.abc import Collection, Sequence

from src.config import Settings
from src.processing.aligner import align
from src.processing.invoker import ModelInvoker, create_invoker
from src.processing.normalizer import normalize
from src.processing.prompts import build_prompt, resolve_prompts
from src.processing.secrets import CredentialCache, GoogleSecretManagerStore
from src.processing.types import (
    EmailRecord,
    ExpenseRecord,
    ExtractionError,
    ExtractionFailure,
    ExtractionResult,
    ExtractionSuccess,
    ParseError,
)

logger = logging.getLogger(__name__)


class ExpenseExtractor:
    """Extracts one ExpenseRecord per email for a batch, in a single model call.

    Holds the only state shared across batches: the credential cache.  Every
    batch's prompt, response and alignment stay local to the call.

    Usage::

        extractor = create_extractor(Settings.from_env())
        entries = await extractor.extract(emails, categories)
    """

    def __init__(
        self,
        settings: Settings,
        credentials: CredentialCache,
        invoker: ModelInvoker,
    ) -> None:
        self._settings = settings
        self._credentials = credentials
        self._invoker = invoker

    async def extract(
        self, batch: Sequence[EmailRecord], categories: Collection[str]
    ) -> list[ExpenseRecord]:
        """Run the pipeline for one batch.

        Raises:
            ValueError: if the batch is empty.
            ConfigurationError: prompts or credential not configured.
            UpstreamError: the model API call failed.
            ParseError: the model response could not be normalized.
        """
        if not batch:
            raise ValueError("batch must contain at least one email")

        system_prompt, template = resolve_prompts(self._settings)
        user_prompt = build_prompt(batch, categories, template)
        credential = await self._credentials.get_credential()

        raw = await self._invoker.invoke(
            credential, self._settings.model, system_prompt, user_prompt
        )
        try:
            candidates = normalize(raw)
        except ParseError as exc:
            logger.error("Could not parse model response: %s", exc.reason)
            logger.debug("Response preview: %r", exc.preview)
            raise

        if len(candidates) != len(batch):
            logger.warning(
                "Model returned %d candidate(s) for %d email(s); aligning by position",
                len(candidates),
                len(batch),
            )
        entries = align(candidates, batch)
        logger.info(
            "Extracted batch emails=%d candidates=%d entries=%d model=%s",
            len(batch),
            len(candidates),
            len(entries),
            self._settings.model,
        )
        return entries

    async def run(
        self, batch: Sequence[EmailRecord], categories: Collection[str]
    ) -> ExtractionResult:
        """Like extract(), but returns pipeline failures instead of raising them."""
        try:
            entries = await self.extract(batch, categories)
        except ExtractionError as exc:
            return ExtractionFailure(exc)
        return ExtractionSuccess(entries)


def create_extractor(settings: Settings) -> ExpenseExtractor:
    """Wire an ExpenseExtractor from settings (Secret Manager store if configured)."""
    store = (
        GoogleSecretManagerStore(settings.secret_project)
        if settings.secret_project
        else None
    )
    credentials = CredentialCache(
        direct_value=settings.api_key,
        store=store,
        secret_name=settings.secret_name,
    )
    return ExpenseExtractor(settings, credentials, create_invoker(settings))
