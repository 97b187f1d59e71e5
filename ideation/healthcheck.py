"""Backend health checks: ping every model in every persona pool before a session."""

import asyncio
import logging

from ideation.backend.base import GenerativeBackend
from ideation.models import Persona
from ideation.personas import PersonaRegistry

logger = logging.getLogger(__name__)

_PING_PROMPT = "Reply with the word OK only."
_PING_SYSTEM = "You are a health check. Answer tersely."
_TIMEOUT_SEC = 15.0
_PING_MAX_TOKENS = 16


async def _check_one(backend: GenerativeBackend, persona: Persona, model: str) -> tuple[str, bool, str]:
    """Ping a single (persona, model) pair. Returns (label, ok, error_message)."""
    label = f"{persona.id.value}/{model}"
    try:
        await asyncio.wait_for(
            backend.invoke(
                persona,
                _PING_SYSTEM,
                _PING_PROMPT,
                0.0,
                _PING_MAX_TOKENS,
                _TIMEOUT_SEC,
                model=model,
            ),
            timeout=_TIMEOUT_SEC,
        )
        return label, True, ""
    except Exception as exc:
        return label, False, str(exc)


async def run_health_checks(
    backend: GenerativeBackend,
    registry: PersonaRegistry,
) -> dict[str, tuple[bool, str]]:
    """Ping all persona models in parallel.

    Returns:
        Dict mapping "persona/model" -> (ok, error_message).
        error_message is "" when ok is True.
    """
    checks = [
        _check_one(backend, persona, model)
        for persona in registry.all()
        for model in sorted(persona.model_pool)
    ]
    results = await asyncio.gather(*checks)
    return {label: (ok, err) for label, ok, err in results}


def unhealthy_personas(results: dict[str, tuple[bool, str]]) -> list[str]:
    """Personas whose every model failed; those would run on fallbacks only."""
    by_persona: dict[str, list[bool]] = {}
    for label, (ok, _) in results.items():
        by_persona.setdefault(label.split("/", 1)[0], []).append(ok)
    return sorted(p for p, oks in by_persona.items() if not any(oks))
