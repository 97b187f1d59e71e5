"""Persona registry: persona id -> name, temperature, model pool, system prompt."""

import logging
import random
from collections.abc import Iterable, Mapping

from config.config_loader import ConfigurationError, PersonaConfig
from ideation.models import Persona, PersonaId

logger = logging.getLogger(__name__)


class PersonaRegistry:
    """Read-only mapping of personas, validated once at construction.

    Model selection draws from the injected RNG so tests can pass a seeded
    ``random.Random``. Nothing here mutates after __init__, so one registry
    can be shared by concurrent sessions.
    """

    def __init__(self, personas: Iterable[Persona], rng: random.Random | None = None) -> None:
        self._personas: dict[PersonaId, Persona] = {}
        for persona in personas:
            if not persona.model_pool:
                raise ConfigurationError(f"Persona '{persona.id.value}' has an empty model pool")
            self._personas[persona.id] = persona

        missing = [p.value for p in PersonaId if p not in self._personas]
        if missing:
            raise ConfigurationError(f"Missing persona configuration: {', '.join(missing)}")

        self._rng = rng or random.Random()

    @classmethod
    def from_config(
        cls,
        personas: Mapping[str, PersonaConfig],
        rng: random.Random | None = None,
    ) -> "PersonaRegistry":
        built: list[Persona] = []
        for key, cfg in personas.items():
            try:
                persona_id = PersonaId(key)
            except ValueError as exc:
                raise ConfigurationError(f"Unknown persona id in settings: {key}") from exc
            built.append(
                Persona(
                    id=persona_id,
                    display_name=cfg.name,
                    temperature=cfg.temperature,
                    model_pool=frozenset(cfg.models),
                    system_prompt=cfg.system_prompt,
                )
            )
        registry = cls(built, rng=rng)
        logger.debug(
            "Persona registry ready: %s",
            ", ".join(f"{p.id.value}({len(p.model_pool)} models)" for p in registry.all()),
        )
        return registry

    def lookup(self, persona_id: PersonaId | str) -> Persona:
        try:
            return self._personas[PersonaId(persona_id)]
        except (KeyError, ValueError) as exc:
            raise ConfigurationError(f"Unknown persona: {persona_id}") from exc

    def pick_model(self, persona: Persona) -> str:
        # Sorted so a seeded RNG gives the same pick regardless of set ordering.
        return self._rng.choice(sorted(persona.model_pool))

    def all(self) -> list[Persona]:
        return [self._personas[p] for p in PersonaId]

    def ids(self) -> list[PersonaId]:
        return list(PersonaId)
