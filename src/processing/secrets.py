"""Model API credential resolution with a write-once, single-flight cache."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol, runtime_checkable

from google.cloud import secretmanager

from src.processing.types import ConfigurationError

logger = logging.getLogger(__name__)


@runtime_checkable
class SecretStore(Protocol):
    """Interface for an external secret store."""

    async def get_secret(self, name: str) -> str:
        """Return the current value of secret `name`. May raise."""
        ...


class GoogleSecretManagerStore:
    """Reads the latest version of a secret from Google Cloud Secret Manager.

    The async client is created on first use so constructing the store never
    triggers an Application Default Credentials lookup.
    """

    def __init__(
        self,
        project_id: str,
        client: secretmanager.SecretManagerServiceAsyncClient | None = None,
    ) -> None:
        self._project_id = project_id
        self._client = client

    async def get_secret(self, name: str) -> str:
        if self._client is None:
            self._client = secretmanager.SecretManagerServiceAsyncClient()
        path = self._client.secret_version_path(self._project_id, name, "latest")
        response = await self._client.access_secret_version(request={"name": path})
        return response.payload.data.decode("utf-8")


class CredentialCache:
    """Resolves the model API key at most once and hands it to every caller.

    The hot path (already resolved) is a plain attribute read.  The first
    resolution runs under an asyncio.Lock with a second check inside, so
    concurrent first callers share one secret-store round trip.

    Usage::

        cache = CredentialCache(direct_value=None, store=store, secret_name="openai-api-key")
        key = await cache.get_credential()
    """

    def __init__(
        self,
        direct_value: str | None = None,
        store: SecretStore | None = None,
        secret_name: str = "openai-api-key",
    ) -> None:
        self._direct_value = direct_value
        self._store = store
        self._secret_name = secret_name
        self._value: str | None = None
        self._lock = asyncio.Lock()

    @property
    def is_resolved(self) -> bool:
        return self._value is not None

    async def get_credential(self) -> str:
        """Return the cached credential, resolving it on first use.

        Raises:
            ConfigurationError: if neither a direct value nor a store is
                configured, or the stored secret is blank.
        """
        if self._value is not None:
            return self._value

        async with self._lock:
            if self._value is not None:
                return self._value

            if self._direct_value is not None and self._direct_value.strip():
                self._value = self._direct_value
                return self._value

            if self._store is None:
                raise ConfigurationError(
                    f"No API key configured and no secret store set to load {self._secret_name!r}."
                )

            secret = await self._store.get_secret(self._secret_name)
            if secret is None or not secret.strip():
                raise ConfigurationError(f"Secret {self._secret_name!r} is empty.")

            self._value = secret
            logger.info("Loaded model API key from secret store (%s)", self._secret_name)
            return self._value
