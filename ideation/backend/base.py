"""Abstract base for generative text backends."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from ideation.models import Persona


class BackendError(Exception):
    """Raised when a single backend call fails (timeout, transport, bad or empty response)."""

    def __init__(self, persona_id: str, message: str, model: str | None = None) -> None:
        self.persona_id = persona_id
        self.model = model
        label = f"{persona_id}/{model}" if model else persona_id
        super().__init__(f"[{label}] {message}")


@dataclass(frozen=True)
class BackendReply:
    content: str    # cleaned, never empty
    model: str      # model identifier actually used


class GenerativeBackend(ABC):
    """One request in, one cleaned text out. No retries, no fabricated content."""

    @abstractmethod
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
        """Generate a completion for the persona.

        Args:
            persona: Calling profile; its model pool is used when model is None.
            system_prompt: Persona instructions.
            user_prompt: Composed prompt built from accumulated session state.
            temperature: Sampling temperature.
            max_tokens: Output token allowance.
            timeout_sec: Per-call timeout, independent of any phase deadline.
            model: Explicit model id, bypassing random pool selection.

        Returns:
            BackendReply with non-empty content.

        Raises:
            BackendError: On timeout, transport failure, malformed or empty response.
        """
        ...

    def check_credentials(self) -> None:
        """Raise ConfigurationError if the backend cannot be used at all."""
        return None
