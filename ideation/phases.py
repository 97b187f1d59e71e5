"""Phase execution: fixed-order chains, randomized time-boxed walks, single calls."""

import logging
import random
import time
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta

from ideation.backend.base import BackendError, GenerativeBackend
from ideation.cache import ResponseCache, cache_key
from ideation.models import (
    AgentCallResult,
    Persona,
    PersonaId,
    PhaseId,
    PhaseRecord,
    PhaseRecorder,
    SessionState,
)
from ideation.personas import PersonaRegistry

logger = logging.getLogger(__name__)

# (persona, 1-indexed step, results of this phase so far) -> user prompt
PromptFn = Callable[[Persona, int, list[AgentCallResult]], str]

FALLBACK_MODEL = "local-fallback"
CACHED_MODEL = "cache"

_FALLBACK_TEMPLATES: dict[PersonaId, str] = {
    PersonaId.CREATIVE: (
        'The creative agent could not respond during the {phase} phase. For "{prompt}", '
        "consider unconventional approaches, inspiration from other industries, and new "
        "combinations of existing solutions."
    ),
    PersonaId.REASONING: (
        'The reasoning agent could not respond during the {phase} phase. For "{prompt}", '
        "break the problem into components, map the stakeholders, and compare options "
        "against evidence."
    ),
    PersonaId.LOGICAL: (
        'The logical agent could not respond during the {phase} phase. For "{prompt}", '
        "check implementation feasibility, resource requirements and the main risks "
        "before proceeding."
    ),
}


def fallback_content(persona_id: PersonaId, phase_id: PhaseId, prompt: str) -> str:
    """Deterministic stand-in text for a failed call. Always non-empty."""
    topic = " ".join(prompt.split())[:200] or "this topic"
    return _FALLBACK_TEMPLATES[persona_id].format(phase=phase_id.value, prompt=topic)


def choose_next_persona(
    candidates: Sequence[PersonaId],
    previous: PersonaId | None,
    rng: random.Random,
) -> PersonaId:
    """Pick uniformly at random, never repeating previous when another choice exists."""
    if not candidates:
        raise ValueError("No personas to choose from")
    eligible = [p for p in candidates if p is not previous]
    if not eligible:
        eligible = list(candidates)
    return rng.choice(eligible)


class PhaseExecutor:
    """Runs one phase at a time and returns a sealed PhaseRecord.

    Backend failures never escape: each failed call is replaced by a local
    fallback and the phase carries on. Deadlines are checked before a call
    starts; a call already in flight finishes on its own timeout.
    """

    def __init__(
        self,
        backend: GenerativeBackend,
        registry: PersonaRegistry,
        *,
        timeout_sec: float,
        max_tokens: int,
        rng: random.Random | None = None,
        cache: ResponseCache | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._backend = backend
        self._registry = registry
        self._timeout_sec = timeout_sec
        self._max_tokens = max_tokens
        self._rng = rng or random.Random()
        self._cache = cache
        self._clock = clock

    def _start(self, phase_id: PhaseId, budget_sec: float | None) -> tuple[PhaseRecorder, float | None]:
        started_at = datetime.now()
        deadline_at = started_at + timedelta(seconds=budget_sec) if budget_sec is not None else None
        deadline = self._clock() + budget_sec if budget_sec is not None else None
        logger.info(
            "%s started%s",
            phase_id.heading,
            f" (budget {budget_sec:.1f}s)" if budget_sec is not None else "",
        )
        return PhaseRecorder(phase_id, started_at, deadline_at), deadline

    def _expired(self, deadline: float | None) -> bool:
        return deadline is not None and self._clock() >= deadline

    def _seal(self, recorder: PhaseRecorder) -> PhaseRecord:
        record = recorder.seal()
        logger.info(
            "%s sealed: %d results, %d fallbacks",
            record.phase_id.heading,
            len(record.results),
            record.failed_count,
        )
        return record

    def _cache_get(self, key: str | None) -> str | None:
        if self._cache is None or key is None:
            return None
        try:
            return self._cache.get(key)
        except Exception as exc:
            logger.warning("Cache read failed, ignoring: %s", exc)
            return None

    def _cache_set(self, key: str | None, value: str) -> None:
        if self._cache is None or key is None:
            return
        try:
            self._cache.set(key, value)
        except Exception as exc:
            logger.warning("Cache write failed, ignoring: %s", exc)

    async def call_persona(
        self,
        persona_id: PersonaId,
        phase_id: PhaseId,
        user_prompt: str,
        original_prompt: str,
        iteration: int,
        max_tokens: int | None = None,
        fallback: Callable[[], str] | None = None,
        temperature: float | None = None,
    ) -> AgentCallResult:
        """Invoke one persona. Never raises for backend failures.

        temperature overrides the persona default for this call only.
        """
        persona = self._registry.lookup(persona_id)
        key = cache_key(user_prompt, persona_id, phase_id) if self._cache is not None else None

        cached = self._cache_get(key)
        if cached:
            return AgentCallResult(
                persona_id=persona_id,
                phase_id=phase_id,
                content=cached,
                model_used=CACHED_MODEL,
                duration_ms=0,
                succeeded=True,
                iteration=iteration,
            )

        start = self._clock()
        model_used = FALLBACK_MODEL
        try:
            reply = await self._backend.invoke(
                persona,
                persona.system_prompt,
                user_prompt,
                persona.temperature if temperature is None else temperature,
                max_tokens or self._max_tokens,
                self._timeout_sec,
            )
            if not reply.content.strip():
                raise BackendError(persona_id.value, "Empty response content", reply.model)
        except BackendError as exc:
            model_used = exc.model or FALLBACK_MODEL
            logger.warning("%s failed in %s, using fallback: %s", persona.display_name, phase_id.value, exc)
        except Exception as exc:
            logger.warning(
                "%s unexpected failure in %s, using fallback: %s", persona.display_name, phase_id.value, exc
            )
        else:
            self._cache_set(key, reply.content)
            return AgentCallResult(
                persona_id=persona_id,
                phase_id=phase_id,
                content=reply.content,
                model_used=reply.model,
                duration_ms=int((self._clock() - start) * 1000),
                succeeded=True,
                iteration=iteration,
            )

        content = fallback() if fallback else fallback_content(persona_id, phase_id, original_prompt)
        return AgentCallResult(
            persona_id=persona_id,
            phase_id=phase_id,
            content=content,
            model_used=model_used,
            duration_ms=int((self._clock() - start) * 1000),
            succeeded=False,
            iteration=iteration,
        )

    async def run_fixed_order(
        self,
        phase_id: PhaseId,
        state: SessionState,
        order: Sequence[PersonaId],
        build_prompt: PromptFn,
        budget_sec: float | None = None,
        temperature_delta: float = 0.0,
    ) -> PhaseRecord:
        """Invoke personas strictly in order; each sees every earlier step of this chain.

        temperature_delta shifts every persona temperature for this phase, floored at 0.
        """
        recorder, deadline = self._start(phase_id, budget_sec)
        for step, persona_id in enumerate(order, start=1):
            if self._expired(deadline):
                logger.info("%s deadline reached after %d steps", phase_id.heading, step - 1)
                break
            persona = self._registry.lookup(persona_id)
            user_prompt = build_prompt(persona, step, recorder.results)
            result = await self.call_persona(
                persona_id,
                phase_id,
                user_prompt,
                state.original_prompt,
                step,
                temperature=max(0.0, round(persona.temperature + temperature_delta, 2)),
            )
            recorder.add(result)
        return self._seal(recorder)

    async def run_random_walk(
        self,
        phase_id: PhaseId,
        state: SessionState,
        candidates: Sequence[PersonaId],
        build_prompt: PromptFn,
        budget_sec: float,
        max_iterations: int,
    ) -> PhaseRecord:
        """Serial random walk until the budget or the iteration cap runs out."""
        recorder, deadline = self._start(phase_id, budget_sec)
        previous: PersonaId | None = None
        iteration = 0
        while iteration < max_iterations and not self._expired(deadline):
            iteration += 1
            persona_id = choose_next_persona(candidates, previous, self._rng)
            persona = self._registry.lookup(persona_id)
            user_prompt = build_prompt(persona, iteration, recorder.results)
            logger.debug("%s iteration %d: %s", phase_id.heading, iteration, persona_id.value)
            result = await self.call_persona(persona_id, phase_id, user_prompt, state.original_prompt, iteration)
            recorder.add(result)
            previous = persona_id

        if iteration >= max_iterations:
            logger.info("%s stopped at iteration cap (%d)", phase_id.heading, max_iterations)
        else:
            logger.info("%s budget exhausted after %d iterations", phase_id.heading, iteration)
        return self._seal(recorder)

    async def run_single(
        self,
        phase_id: PhaseId,
        state: SessionState,
        persona_id: PersonaId,
        build_prompt: PromptFn,
        max_tokens: int,
        fallback: Callable[[], str],
    ) -> PhaseRecord:
        """One call with a larger token allowance and a caller-supplied fallback."""
        recorder, _ = self._start(phase_id, None)
        persona = self._registry.lookup(persona_id)
        user_prompt = build_prompt(persona, 1, [])
        result = await self.call_persona(
            persona_id,
            phase_id,
            user_prompt,
            state.original_prompt,
            1,
            max_tokens=max_tokens,
            fallback=fallback,
        )
        recorder.add(result)
        return self._seal(recorder)

    def skip(self, phase_id: PhaseId) -> PhaseRecord:
        """Seal an empty record for a phase the orchestrator chose not to run."""
        logger.info("%s skipped", phase_id.heading)
        return PhaseRecorder(phase_id, datetime.now(), None).seal(skipped=True)
