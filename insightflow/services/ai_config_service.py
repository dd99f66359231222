"""Singleton AI provider configuration kept as one JSON document in Redis.

The provider credential is stored only as AES-GCM ciphertext and is decrypted
on demand when provider options are needed.
"""

from __future__ import annotations

import json
import logging

import redis.asyncio as redis
from pydantic import BaseModel, Field, ValidationError

from insightflow.core.crypto import CredentialCryptoError, decrypt, encrypt
from insightflow.llm.gateway import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE
from insightflow.llm.schemas import ProviderName, ProviderOptions

logger = logging.getLogger(__name__)

AI_CONFIG_KEY = "ai_config"


class AIConfigError(Exception):
    """Raised when no usable AI configuration is available."""

    def __init__(self, message: str, error_code: str = "ai_not_configured") -> None:
        super().__init__(message)
        self.error_code = error_code


class AIConfigNotSetError(AIConfigError):
    def __init__(self) -> None:
        super().__init__("AI config not set. Please configure in settings.")


class StoredAIConfig(BaseModel):
    provider: ProviderName
    model: str
    base_url: str | None = None
    api_key_encrypted: str
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS


class AIConfigView(BaseModel):
    """Public view of the configuration; never carries the credential."""

    configured: bool
    provider: ProviderName | None = None
    model: str | None = None
    base_url: str | None = None


class AIConfigUpdate(BaseModel):
    provider: ProviderName
    model: str = Field(..., min_length=1)
    api_key: str = Field(..., min_length=1, repr=False)
    base_url: str | None = None
    temperature: float | None = Field(default=None, ge=0, le=2)
    max_tokens: int | None = Field(default=None, ge=1)


class AIConfigStore:
    def __init__(self, client: redis.Redis, encryption_key: str) -> None:
        self._client = client
        self._encryption_key = encryption_key

    async def save(self, update: AIConfigUpdate) -> StoredAIConfig:
        """Encrypt the credential and replace the stored configuration wholesale."""
        stored = StoredAIConfig(
            provider=update.provider,
            model=update.model,
            base_url=update.base_url or None,
            api_key_encrypted=encrypt(update.api_key, self._encryption_key),
            temperature=(
                update.temperature if update.temperature is not None else DEFAULT_TEMPERATURE
            ),
            max_tokens=update.max_tokens if update.max_tokens is not None else DEFAULT_MAX_TOKENS,
        )
        await self._client.set(AI_CONFIG_KEY, stored.model_dump_json())
        logger.info("AI config saved for provider %s model %s", stored.provider.value, stored.model)
        return stored

    async def load(self) -> StoredAIConfig | None:
        payload = await self._client.get(AI_CONFIG_KEY)
        if payload is None:
            return None
        try:
            return StoredAIConfig.model_validate(json.loads(payload))
        except (json.JSONDecodeError, ValidationError) as exc:
            raise AIConfigError("Stored AI config is malformed. Please reconfigure in settings.") from exc

    async def view(self) -> AIConfigView:
        stored = await self.load()
        if stored is None:
            return AIConfigView(configured=False)
        return AIConfigView(
            configured=True,
            provider=stored.provider,
            model=stored.model,
            base_url=stored.base_url,
        )

    async def provider_options(self) -> ProviderOptions:
        """Decrypted provider options for the gateway.

        Raises:
            AIConfigNotSetError: When nothing has been configured.
            AIConfigError: When the stored credential cannot be decrypted.
        """
        stored = await self.load()
        if stored is None:
            raise AIConfigNotSetError()
        try:
            api_key = decrypt(stored.api_key_encrypted, self._encryption_key)
        except CredentialCryptoError as exc:
            logger.error("Stored AI credential is unusable: %s", exc.error_code)
            raise AIConfigError(
                "Stored AI credential could not be decrypted. Please reconfigure in settings."
            ) from exc
        return ProviderOptions(
            provider=stored.provider,
            api_key=api_key,
            model=stored.model,
            base_url=stored.base_url,
            temperature=stored.temperature,
            max_tokens=stored.max_tokens,
        )
