"""Tests for ideation/personas.py."""

import random

import pytest

from config.config_loader import ConfigurationError, PersonaConfig
from ideation.models import Persona, PersonaId
from ideation.personas import PersonaRegistry


def _persona(pid: PersonaId, pool: set[str]) -> Persona:
    return Persona(id=pid, display_name=pid.value.title(), temperature=0.5, model_pool=frozenset(pool))


def test_lookup_by_enum_and_string(registry):
    assert registry.lookup(PersonaId.CREATIVE).display_name == "Creative"
    assert registry.lookup("logical").temperature == 0.4


def test_lookup_unknown_persona(registry):
    with pytest.raises(ConfigurationError, match="Unknown persona"):
        registry.lookup("poetic")


def test_from_config_carries_system_prompt(registry):
    assert registry.lookup(PersonaId.REASONING).system_prompt == "Be analytical."


def test_empty_pool_fails_fast():
    personas = [
        _persona(PersonaId.CREATIVE, {"a"}),
        _persona(PersonaId.REASONING, set()),
        _persona(PersonaId.LOGICAL, {"b"}),
    ]
    with pytest.raises(ConfigurationError, match="empty model pool"):
        PersonaRegistry(personas)


def test_missing_persona_fails_fast():
    with pytest.raises(ConfigurationError, match="logical"):
        PersonaRegistry([_persona(PersonaId.CREATIVE, {"a"}), _persona(PersonaId.REASONING, {"b"})])


def test_unknown_persona_id_in_config(persona_configs):
    persona_configs["poetic"] = PersonaConfig("poetic", "Poetic", 1.0, ["p"], "")
    with pytest.raises(ConfigurationError, match="poetic"):
        PersonaRegistry.from_config(persona_configs)


def test_pick_model_stays_in_pool(registry):
    creative = registry.lookup(PersonaId.CREATIVE)
    picks = {registry.pick_model(creative) for _ in range(50)}
    assert picks <= creative.model_pool
    assert picks == creative.model_pool  # both models show up over 50 draws


def test_pick_model_is_reproducible_with_seed(persona_configs):
    first = PersonaRegistry.from_config(persona_configs, rng=random.Random(7))
    second = PersonaRegistry.from_config(persona_configs, rng=random.Random(7))
    logical_a = first.lookup(PersonaId.LOGICAL)
    logical_b = second.lookup(PersonaId.LOGICAL)
    assert [first.pick_model(logical_a) for _ in range(10)] == [second.pick_model(logical_b) for _ in range(10)]


def test_all_returns_every_persona_in_enum_order(registry):
    assert [p.id for p in registry.all()] == list(PersonaId)
    assert registry.ids() == list(PersonaId)
