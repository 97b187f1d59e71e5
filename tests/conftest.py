"""Shared pytest fixtures."""

import asyncio
import random
from collections.abc import Callable
from pathlib import Path

import pytest

from config.config_loader import (
    AppConfig,
    BackendConfig,
    ConfigurationError,
    DefaultsConfig,
    PersonaConfig,
    PhaseConfig,
    PromptsConfig,
)
from ideation.backend.base import BackendError, BackendReply, GenerativeBackend
from ideation.models import Persona, PersonaId
from ideation.orchestrator import SessionOrchestrator
from ideation.personas import PersonaRegistry

# Each template starts with the phase name so FakeBackend responders can tell phases apart.
TEST_PROMPTS = PromptsConfig(
    foundation="FOUNDATION step {step} as {persona_name}\n{context}\nTopic: {prompt}\nEarlier:\n{chain}",
    expansion="EXPANSION iteration {iteration} as {persona_name}\nTopic: {prompt}\nHistory:\n{history}",
    refinement="REFINEMENT step {step} as {persona_name}\nTopic: {prompt}\nHistory:\n{history}\nEarlier:\n{chain}",
    synthesis="SYNTHESIS\nTopic: {prompt}\nHistory:\n{history}",
)


def phase_of(user_prompt: str) -> str:
    return user_prompt.split(maxsplit=1)[0].lower()


# (persona, user_prompt, call_number) -> content, or an Exception to raise
Responder = Callable[[Persona, str, int], "str | Exception"]


class FakeBackend(GenerativeBackend):
    """Scripted backend. Records every call; honors timeout_sec like the real client."""

    def __init__(
        self,
        responder: Responder | None = None,
        delay_for: Callable[[Persona], float] | None = None,
        credentials_ok: bool = True,
    ) -> None:
        self._responder = responder
        self._delay_for = delay_for
        self._credentials_ok = credentials_ok
        self.calls: list[dict] = []
        self.completed: list[PersonaId] = []

    def check_credentials(self) -> None:
        if not self._credentials_ok:
            raise ConfigurationError("Missing API key: set TEST_KEY in .env")

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
        self.calls.append(
            {
                "persona": persona.id,
                "phase": phase_of(user_prompt),
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "temperature": temperature,
                "max_tokens": max_tokens,
                "timeout_sec": timeout_sec,
            }
        )
        number = len(self.calls)
        delay = self._delay_for(persona) if self._delay_for else 0.0
        if delay:
            try:
                await asyncio.wait_for(asyncio.sleep(delay), timeout=timeout_sec)
            except TimeoutError as exc:
                raise BackendError(persona.id.value, f"Request timed out after {timeout_sec}s", "fake-model") from exc

        if self._responder is None:
            content: str | Exception = f"{persona.display_name} {phase_of(user_prompt)} idea #{number}"
        else:
            content = self._responder(persona, user_prompt, number)
        if isinstance(content, Exception):
            raise content
        self.completed.append(persona.id)
        return BackendReply(content=content, model=model or f"{persona.id.value}-model")

    def personas_called(self, phase: str | None = None) -> list[PersonaId]:
        return [c["persona"] for c in self.calls if phase is None or c["phase"] == phase]


@pytest.fixture
def persona_configs() -> dict[str, PersonaConfig]:
    return {
        "creative": PersonaConfig("creative", "Creative", 0.9, ["c-model-1", "c-model-2"], "Be creative."),
        "reasoning": PersonaConfig("reasoning", "Reasoning", 0.6, ["r-model-1"], "Be analytical."),
        "logical": PersonaConfig("logical", "Logical", 0.4, ["l-model-1", "l-model-2"], "Be critical."),
    }


@pytest.fixture
def registry(persona_configs) -> PersonaRegistry:
    return PersonaRegistry.from_config(persona_configs, rng=random.Random(1234))


@pytest.fixture
def phase_config() -> PhaseConfig:
    return PhaseConfig(phase2_budget_sec=5.0, phase2_max_iterations=4)


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def make_orchestrator(registry, phase_config):
    """Factory: make_orchestrator(backend, **overrides) -> SessionOrchestrator."""

    def _make(backend: GenerativeBackend, phases: PhaseConfig | None = None, **kwargs) -> SessionOrchestrator:
        params = {
            "timeout_sec": 2.0,
            "max_tokens": 500,
            "synthesis_max_tokens": 2000,
            "session_budget_sec": None,
            "rng": random.Random(42),
        }
        params.update(kwargs)
        return SessionOrchestrator(backend, registry, TEST_PROMPTS, phases or phase_config, **params)

    return _make


@pytest.fixture
def sample_backend_config() -> BackendConfig:
    return BackendConfig(
        base_url="https://example.invalid/v1",
        api_key_env="TEST_GROQ_KEY",
        timeout_sec=1.0,
        max_tokens=256,
        synthesis_max_tokens=1024,
    )


@pytest.fixture
def sample_app_config(tmp_path: Path, sample_backend_config, phase_config, persona_configs) -> AppConfig:
    return AppConfig(
        backend=sample_backend_config,
        defaults=DefaultsConfig(output_dir=tmp_path / "output", session_budget_sec=300.0),
        phases=phase_config,
        personas=persona_configs,
        prompts=TEST_PROMPTS,
    )
