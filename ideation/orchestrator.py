"""Session orchestration: four phases from a topic to a synthesized report."""

import logging
import random
import time
from collections.abc import Callable, Iterable, Mapping

from config.config_loader import AppConfig, ConfigurationError, PhaseConfig, PromptsConfig
from ideation.backend.base import GenerativeBackend
from ideation.cache import ResponseCache
from ideation.context import to_messages
from ideation.models import (
    ConversationMessage,
    PersonaId,
    PhaseId,
    PhaseRecord,
    SessionResult,
    SessionState,
    SessionStatus,
)
from ideation.personas import PersonaRegistry
from ideation.phases import PhaseExecutor
from ideation.prompts import PromptBuilder
from ideation.report import build_breakdown, fallback_synthesis, render_report, synthesis_text

logger = logging.getLogger(__name__)

_PHASE_STATUS = {
    PhaseId.FOUNDATION: SessionStatus.PHASE1_FOUNDATION,
    PhaseId.EXPANSION: SessionStatus.PHASE2_EXPANSION,
    PhaseId.REFINEMENT: SessionStatus.PHASE3_REFINEMENT,
    PhaseId.SYNTHESIS: SessionStatus.PHASE4_SYNTHESIS,
}


def _persona_ids(names: Iterable[str], what: str) -> list[PersonaId]:
    try:
        return [PersonaId(n) for n in names]
    except ValueError as exc:
        raise ConfigurationError(f"Invalid persona in {what}: {exc}") from exc


class SessionOrchestrator:
    """Drives INIT -> PHASE1..PHASE4 -> DONE for one request at a time.

    Holds only read-only collaborators, so one instance can serve concurrent
    sessions; all per-session data lives in a fresh SessionState. The only
    error a caller can see is ConfigurationError, raised before phase 1.
    """

    def __init__(
        self,
        backend: GenerativeBackend,
        registry: PersonaRegistry,
        prompts: PromptsConfig,
        phases: PhaseConfig,
        *,
        timeout_sec: float,
        max_tokens: int,
        synthesis_max_tokens: int,
        session_budget_sec: float | None = None,
        early_exit_fraction: float = 0.7,
        context_messages: int = 10,
        rng: random.Random | None = None,
        cache: ResponseCache | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._backend = backend
        self._registry = registry
        self._prompts = prompts
        self._phases = phases
        self._fixed_order = _persona_ids(phases.fixed_order, "phases.fixed_order")
        if not self._fixed_order:
            raise ConfigurationError("phases.fixed_order must name at least one persona")
        self._synthesizer = _persona_ids([phases.synthesizer], "phases.synthesizer")[0]
        self._synthesis_max_tokens = synthesis_max_tokens
        self._session_budget_sec = session_budget_sec
        self._early_exit_fraction = early_exit_fraction
        self._context_messages = context_messages
        self._clock = clock
        self._executor = PhaseExecutor(
            backend,
            registry,
            timeout_sec=timeout_sec,
            max_tokens=max_tokens,
            rng=rng,
            cache=cache,
            clock=clock,
        )

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        backend: GenerativeBackend,
        registry: PersonaRegistry,
        *,
        rng: random.Random | None = None,
        cache: ResponseCache | None = None,
    ) -> "SessionOrchestrator":
        return cls(
            backend,
            registry,
            config.prompts,
            config.phases,
            timeout_sec=config.backend.timeout_sec,
            max_tokens=config.backend.max_tokens,
            synthesis_max_tokens=config.backend.synthesis_max_tokens,
            session_budget_sec=config.defaults.session_budget_sec,
            early_exit_fraction=config.defaults.early_exit_fraction,
            context_messages=config.defaults.context_messages,
            rng=rng,
            cache=cache,
        )

    def _should_exit_early(self, elapsed_sec: float) -> bool:
        if not self._session_budget_sec:
            return False
        return elapsed_sec > self._session_budget_sec * self._early_exit_fraction

    async def execute_session(
        self,
        prompt: str,
        conversation_context: Iterable[ConversationMessage | Mapping[str, str]] = (),
        on_phase_complete: Callable[[PhaseRecord], None] | None = None,
    ) -> SessionResult:
        """Run all four phases and return the synthesized report.

        Args:
            prompt: The topic to ideate on.
            conversation_context: Prior turns, as ConversationMessage or {"role", "content"} dicts.
            on_phase_complete: Optional callback invoked with each sealed PhaseRecord.

        Returns:
            SessionResult with the markdown artifact and per-phase breakdown.

        Raises:
            ValueError: If prompt is blank or a context message lacks role or content.
            ConfigurationError: If the backend is unusable.
            Either way the session moves INIT -> FAILED and no phase is started.
        """
        status = SessionStatus.INIT
        transitions = [status]

        def advance(next_status: SessionStatus) -> None:
            nonlocal status
            logger.debug("Session %s -> %s", status.value, next_status.value)
            status = next_status
            transitions.append(next_status)

        try:
            if not prompt or not prompt.strip():
                raise ValueError("prompt must not be empty")
            messages = to_messages(conversation_context)
        except ValueError as exc:
            advance(SessionStatus.FAILED)
            logger.error("Session failed before phase 1: %s", exc)
            raise

        try:
            self._backend.check_credentials()
        except ConfigurationError:
            advance(SessionStatus.FAILED)
            logger.error("Session failed before phase 1: backend is not configured")
            raise

        state = SessionState(original_prompt=prompt.strip(), conversation_context=messages)
        builder = PromptBuilder(self._prompts, state, context_messages=self._context_messages)
        session_start = self._clock()
        logger.info(
            "Starting ideation session (%d context messages): %s",
            len(state.conversation_context),
            state.original_prompt[:100],
        )

        def seal(record: PhaseRecord) -> None:
            state.append(record)
            if on_phase_complete:
                on_phase_complete(record)

        advance(SessionStatus.PHASE1_FOUNDATION)
        seal(
            await self._executor.run_fixed_order(
                PhaseId.FOUNDATION,
                state,
                self._fixed_order,
                builder.foundation,
                budget_sec=self._phases.fixed_phase_budget_sec,
            )
        )

        elapsed = self._clock() - session_start
        exit_early = self._should_exit_early(elapsed)
        if exit_early:
            logger.warning(
                "Phase 1 used %.1fs of the %.0fs session budget; skipping to synthesis",
                elapsed,
                self._session_budget_sec,
            )

        advance(SessionStatus.PHASE2_EXPANSION)
        if exit_early:
            seal(self._executor.skip(PhaseId.EXPANSION))
        else:
            seal(
                await self._executor.run_random_walk(
                    PhaseId.EXPANSION,
                    state,
                    self._registry.ids(),
                    builder.expansion,
                    budget_sec=self._phases.phase2_budget_sec,
                    max_iterations=self._phases.phase2_max_iterations,
                )
            )

        advance(SessionStatus.PHASE3_REFINEMENT)
        if exit_early:
            seal(self._executor.skip(PhaseId.REFINEMENT))
        else:
            seal(
                await self._executor.run_fixed_order(
                    PhaseId.REFINEMENT,
                    state,
                    self._fixed_order,
                    builder.refinement,
                    budget_sec=self._phases.fixed_phase_budget_sec,
                    temperature_delta=self._phases.refinement_temperature_delta,
                )
            )

        advance(SessionStatus.PHASE4_SYNTHESIS)
        seal(
            await self._executor.run_single(
                PhaseId.SYNTHESIS,
                state,
                self._synthesizer,
                builder.synthesis,
                max_tokens=self._synthesis_max_tokens,
                fallback=lambda: fallback_synthesis(state),
            )
        )

        advance(SessionStatus.DONE)
        total = self._clock() - session_start
        logger.info(
            "Ideation session complete in %.1fs (%d calls)",
            total,
            len(state.all_results()),
        )

        return SessionResult(
            prompt=state.original_prompt,
            content=render_report(state, total),
            synthesis=synthesis_text(state),
            phase_records=list(state.phase_records),
            per_phase_breakdown=build_breakdown(state.phase_records),
            status=status,
            total_duration_sec=total,
            transitions=transitions,
        )
