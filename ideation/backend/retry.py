"""Bounded retry policy wrapped around a backend. Opt-in; the core path does not retry."""

import asyncio
import logging
from dataclasses import dataclass

from config.config_loader import RetryConfig
from ideation.backend.base import BackendError, BackendReply, GenerativeBackend
from ideation.models import Persona

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 1
    base_delay_sec: float = 1.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "max_attempts", max(1, self.max_attempts))
        object.__setattr__(self, "base_delay_sec", max(0.0, self.base_delay_sec))

    @classmethod
    def from_config(cls, config: RetryConfig) -> "RetryPolicy":
        return cls(max_attempts=config.max_attempts, base_delay_sec=config.base_delay_sec)

    def delay_for(self, attempt: int) -> float:
        """Exponential backoff before the given (1-indexed) retry attempt."""
        return self.base_delay_sec * (2 ** (attempt - 1))


class RetryingBackend(GenerativeBackend):
    """Re-issue failed calls with backoff, all inside the caller's timeout_sec.

    Attempts and backoff share one time allowance, so a retried call lasts no
    longer than a single unretried one. A retry that cannot start before that
    allowance runs out is not attempted.
    """

    def __init__(self, inner: GenerativeBackend, policy: RetryPolicy) -> None:
        self._inner = inner
        self._policy = policy

    def check_credentials(self) -> None:
        self._inner.check_credentials()

    async def _attempt(
        self,
        persona: Persona,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
        remaining: float,
        model: str | None,
    ) -> BackendReply:
        try:
            return await asyncio.wait_for(
                self._inner.invoke(
                    persona,
                    system_prompt,
                    user_prompt,
                    temperature,
                    max_tokens,
                    remaining,
                    model=model,
                ),
                timeout=remaining,
            )
        except TimeoutError as exc:
            raise BackendError(persona.id.value, f"Request timed out after {remaining:.2f}s", model) from exc

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
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_sec
        attempt = 1
        while True:
            remaining = max(0.0, deadline - loop.time())
            try:
                return await self._attempt(
                    persona, system_prompt, user_prompt, temperature, max_tokens, remaining, model
                )
            except BackendError as exc:
                if attempt >= self._policy.max_attempts:
                    raise
                delay = self._policy.delay_for(attempt)
                if loop.time() + delay >= deadline:
                    logger.warning(
                        "Not retrying %s: %.1fs call timeout used up after %d attempt(s)",
                        persona.id.value, timeout_sec, attempt,
                    )
                    raise
                attempt += 1
                logger.warning(
                    "Retrying %s (attempt %d/%d) in %.1fs after: %s",
                    persona.id.value, attempt, self._policy.max_attempts, delay, exc,
                )
                await asyncio.sleep(delay)


def wrap_with_policy(backend: GenerativeBackend, policy: RetryPolicy) -> GenerativeBackend:
    """Return backend unchanged when the policy allows a single attempt."""
    if policy.max_attempts <= 1:
        return backend
    return RetryingBackend(backend, policy)
