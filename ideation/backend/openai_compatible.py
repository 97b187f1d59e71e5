"""OpenAI-compatible chat completions backend (Groq by default) using the openai SDK."""

import asyncio
import logging
import os
import re
import time

from openai import AsyncOpenAI

from config.config_loader import BackendConfig, ConfigurationError
from ideation.backend.base import BackendError, BackendReply, GenerativeBackend
from ideation.models import Persona
from ideation.personas import PersonaRegistry

logger = logging.getLogger(__name__)

_THINK_BLOCK = re.compile(r"<think>[\s\S]*?</think>", re.IGNORECASE)
_UNCLOSED_THINK = re.compile(r"<think>[\s\S]*$", re.IGNORECASE)
_NOTE_LINE = re.compile(r"\*\*Note:.*$", re.MULTILINE)
_ROLE_PREFIX = re.compile(r"^(Human|Assistant):\s*", re.MULTILINE)


def clean_response(content: str) -> str:
    """Strip reasoning traces, trailing notes and role prefixes from raw model text."""
    text = _THINK_BLOCK.sub("", content)
    # A truncated reply can leave an opening tag with no close.
    text = _UNCLOSED_THINK.sub("", text)
    text = _NOTE_LINE.sub("", text)
    text = _ROLE_PREFIX.sub("", text)
    return text.strip()


class OpenAICompatibleBackend(GenerativeBackend):
    """Chat completions against any OpenAI-compatible endpoint."""

    def __init__(self, config: BackendConfig, registry: PersonaRegistry) -> None:
        self._config = config
        self._registry = registry
        self._api_key = os.environ.get(config.api_key_env, "").strip()
        self._client: AsyncOpenAI | None = None

    def check_credentials(self) -> None:
        if not self._api_key:
            raise ConfigurationError(f"Missing API key: set {self._config.api_key_env} in .env")

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self.check_credentials()
            # Retries belong to the caller; the SDK must not retry behind our back.
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                base_url=self._config.base_url,
                max_retries=0,
            )
        return self._client

    async def invoke(
        self,
        persona: Persona,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
        timeout_sec: float,
        model: str | None = None,
    ) -> BackendReply:
        resolved_model = model or self._registry.pick_model(persona)
        persona_name = persona.id.value
        try:
            client = self._get_client()
        except ConfigurationError as exc:
            raise BackendError(persona_name, str(exc), resolved_model) from exc

        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                client.chat.completions.create(
                    model=resolved_model,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_prompt},
                    ],
                    temperature=temperature,
                    max_tokens=max_tokens,
                    stream=False,
                ),
                timeout=timeout_sec,
            )
        except TimeoutError as exc:
            raise BackendError(persona_name, f"Request timed out after {timeout_sec}s", resolved_model) from exc
        except Exception as exc:
            raise BackendError(persona_name, f"API call failed: {exc}", resolved_model) from exc

        latency = time.monotonic() - start

        choice = response.choices[0] if getattr(response, "choices", None) else None
        raw = choice.message.content if choice and choice.message else None
        if not isinstance(raw, str):
            raise BackendError(persona_name, "Malformed response: no message content", resolved_model)

        content = clean_response(raw)
        if not content:
            raise BackendError(persona_name, "Empty response content", resolved_model)

        token_count: int | None = None
        if getattr(response, "usage", None):
            token_count = response.usage.total_tokens

        logger.info(
            "%s via %s: %.2fs, %s tokens, %d chars",
            persona.display_name,
            resolved_model,
            latency,
            token_count,
            len(content),
        )

        return BackendReply(content=content, model=resolved_model)
