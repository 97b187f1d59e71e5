"""Compose per-phase user prompts from accumulated session state."""

from config.config_loader import PromptsConfig
from ideation.context import render_conversation_context
from ideation.models import AgentCallResult, Persona, PersonaId, PhaseId, PhaseRecord, SessionState

_NO_EARLIER_STEPS = "(none yet; you are the first agent in this phase)"
_NO_OUTPUT = "(no output in this phase)"


def _persona_label(persona_id: PersonaId) -> str:
    return persona_id.value.title()


def format_results(results: list[AgentCallResult] | tuple[AgentCallResult, ...]) -> str:
    """Format one phase's results in invocation order."""
    parts: list[str] = []
    for r in results:
        marker = "" if r.succeeded else " [fallback]"
        parts.append(f"#### {_persona_label(r.persona_id)} (step {r.iteration}){marker}\n{r.content}")
    return "\n\n".join(parts)


def format_history(records: list[PhaseRecord]) -> str:
    """Format every sealed phase into a single transcript for later prompts."""
    parts: list[str] = []
    for rec in records:
        parts.append(f"### {rec.phase_id.heading}")
        if rec.skipped:
            parts.append("(skipped)")
        elif rec.results:
            parts.append(format_results(rec.results))
        else:
            parts.append(_NO_OUTPUT)
    return "\n\n".join(parts)


class PromptBuilder:
    """Fills the settings.yaml templates for one session."""

    def __init__(self, prompts: PromptsConfig, state: SessionState, context_messages: int = 10) -> None:
        self._prompts = prompts
        self._state = state
        self._context_messages = context_messages

    def _context(self) -> str:
        return render_conversation_context(self._state.conversation_context, limit=self._context_messages)

    def foundation(self, persona: Persona, step: int, phase_results: list[AgentCallResult]) -> str:
        return self._prompts.foundation.format(
            context=self._context(),
            prompt=self._state.original_prompt,
            chain=format_results(phase_results) or _NO_EARLIER_STEPS,
            persona_name=persona.display_name,
            step=step,
        )

    def expansion(self, persona: Persona, step: int, phase_results: list[AgentCallResult]) -> str:
        history = format_history(self._state.phase_records)
        if phase_results:
            history += f"\n\n### {PhaseId.EXPANSION.heading} (so far)\n\n" + format_results(phase_results)
        return self._prompts.expansion.format(
            prompt=self._state.original_prompt,
            history=history,
            persona_name=persona.display_name,
            iteration=step,
        )

    def refinement(self, persona: Persona, step: int, phase_results: list[AgentCallResult]) -> str:
        return self._prompts.refinement.format(
            prompt=self._state.original_prompt,
            history=format_history(self._state.phase_records),
            chain=format_results(phase_results) or _NO_EARLIER_STEPS,
            persona_name=persona.display_name,
            step=step,
        )

    def synthesis(self, persona: Persona, step: int, phase_results: list[AgentCallResult]) -> str:
        return self._prompts.synthesis.format(
            prompt=self._state.original_prompt,
            history=format_history(self._state.phase_records),
        )
