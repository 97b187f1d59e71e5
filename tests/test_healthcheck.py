"""Unit tests for ideation/healthcheck.py: no real API calls."""

import asyncio

from ideation.backend.base import BackendError
from ideation.healthcheck import run_health_checks, unhealthy_personas
from tests.conftest import FakeBackend


class ModelAwareBackend(FakeBackend):
    """Fails for the models listed in bad_models."""

    def __init__(self, bad_models: set[str]) -> None:
        super().__init__()
        self.bad_models = bad_models
        self.models_seen: list[str] = []

    async def invoke(self, persona, system_prompt, user_prompt, temperature, max_tokens, timeout_sec, model=None):
        self.models_seen.append(model)
        if model in self.bad_models:
            raise BackendError(persona.id.value, "403 Forbidden", model)
        return await super().invoke(
            persona, system_prompt, user_prompt, temperature, max_tokens, timeout_sec, model=model
        )


async def test_every_pool_model_is_pinged(registry):
    backend = ModelAwareBackend(bad_models=set())
    results = await run_health_checks(backend, registry)

    assert set(results) == {
        "creative/c-model-1",
        "creative/c-model-2",
        "reasoning/r-model-1",
        "logical/l-model-1",
        "logical/l-model-2",
    }
    assert all(ok for ok, _ in results.values())
    assert sorted(backend.models_seen) == sorted(m.split("/", 1)[1] for m in results)


async def test_failed_model_reports_error(registry):
    results = await run_health_checks(ModelAwareBackend(bad_models={"l-model-2"}), registry)
    ok, err = results["logical/l-model-2"]
    assert ok is False
    assert "403" in err
    assert results["logical/l-model-1"] == (True, "")


async def test_timeout_counts_as_failure(registry):
    import ideation.healthcheck as hc

    backend = FakeBackend(delay_for=lambda p: 10.0)
    original = hc._TIMEOUT_SEC
    hc._TIMEOUT_SEC = 0.05
    try:
        results = await asyncio.wait_for(run_health_checks(backend, registry), timeout=5)
    finally:
        hc._TIMEOUT_SEC = original

    assert not any(ok for ok, _ in results.values())


def test_unhealthy_personas_needs_every_model_down():
    results = {
        "creative/a": (False, "x"),
        "creative/b": (True, ""),
        "reasoning/r": (False, "x"),
        "logical/l": (True, ""),
    }
    assert unhealthy_personas(results) == ["reasoning"]


def test_unhealthy_personas_all_ok():
    assert unhealthy_personas({"creative/a": (True, "")}) == []
