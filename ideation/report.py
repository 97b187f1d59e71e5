"""Assemble the final session artifact and the local fallback synthesis."""

import re

from ideation.models import AgentCallResult, PhaseId, PhaseRecord, SessionState

REPORT_SECTIONS = (
    "Executive Summary",
    "Phase Recap",
    "Detailed Ideas",
    "Recommendation",
    "Action Plan",
)

_LIST_MARKER = re.compile(r"^\s*(?:[#>*\-+]+|\d+[.)])\s*")


def _headline(text: str, max_len: int = 120) -> str:
    """First meaningful line of a response, stripped of markdown markers."""
    for line in text.splitlines():
        cleaned = _LIST_MARKER.sub("", line).strip().strip("*_").strip()
        if cleaned:
            return cleaned[:max_len]
    return ""


def _preview(text: str, words: int = 60) -> str:
    all_words = text.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def _phase_summary_line(record: PhaseRecord) -> str:
    if record.skipped:
        return f"- **{record.phase_id.heading}**: skipped to stay within the session budget."
    if not record.results:
        return f"- **{record.phase_id.heading}**: no iterations ran."
    personas = ", ".join(dict.fromkeys(r.persona_id.value for r in record.results))
    return (
        f"- **{record.phase_id.heading}**: {len(record.results)} contributions ({personas}), "
        f"{record.failed_count} fallbacks."
    )


def fallback_synthesis(state: SessionState) -> str:
    """Structured report built locally when the synthesis call fails."""
    prompt = " ".join(state.original_prompt.split())
    results: list[AgentCallResult] = [
        r for rec in state.phase_records if rec.phase_id is not PhaseId.SYNTHESIS for r in rec.results
    ]
    preferred = [r for r in results if r.succeeded] or results
    concepts = list(dict.fromkeys(h for h in (_headline(r.content) for r in preferred) if h))[:2]

    lines = [
        "### Executive Summary",
        "",
        f'The synthesis agent was unavailable, so this report for "{prompt}" was assembled '
        f"from {len(results)} contributions gathered in the earlier phases.",
        "",
        "### Phase Recap",
        "",
    ]
    lines += [_phase_summary_line(rec) for rec in state.phase_records if rec.phase_id is not PhaseId.SYNTHESIS]
    lines += ["", "### Detailed Ideas", ""]
    if concepts:
        lines += [f"{i}. {c}" for i, c in enumerate(concepts, start=1)]
    else:
        lines.append(f"No distinct concepts were recorded for {prompt}.")
    lines += ["", "### Recommendation", ""]
    if concepts:
        lines.append(f"Pursue **{concepts[0]}** first; it emerged earliest and anchors the rest of the session.")
    else:
        lines.append(f"Re-run the session for {prompt} once the backend is reachable.")
    lines += [
        "",
        "### Action Plan",
        "",
        "1. Short term: validate the leading concept with the people it affects.",
        "2. Medium term: prototype it and measure against a clear success metric.",
        "3. Long term: scale what works and revisit the runner-up concept.",
    ]
    return "\n".join(lines)


def synthesis_text(state: SessionState) -> str:
    record = state.record_for(PhaseId.SYNTHESIS)
    if record is None or not record.results:
        return fallback_synthesis(state)
    return record.results[-1].content


def build_breakdown(records: list[PhaseRecord]) -> dict[str, list[dict]]:
    """Per-phase structured view, keyed by phase id."""
    return {
        rec.phase_id.value: [
            {
                "persona": r.persona_id.value,
                "iteration": r.iteration,
                "model": r.model_used,
                "duration_ms": r.duration_ms,
                "succeeded": r.succeeded,
                "content": r.content,
            }
            for r in rec.results
        ]
        for rec in records
    }


def render_report(state: SessionState, duration_sec: float) -> str:
    """Markdown artifact with one section per phase; phase 4 carries the synthesis."""
    lines = [f"# Ideation Report: {' '.join(state.original_prompt.split())[:80]}", ""]
    for rec in state.phase_records:
        lines.append(f"## {rec.phase_id.heading}")
        lines.append("")
        if rec.phase_id is PhaseId.SYNTHESIS:
            lines.append(synthesis_text(state))
            lines.append("")
            continue
        if rec.skipped:
            lines += ["*Skipped to stay within the session budget.*", ""]
            continue
        if not rec.results:
            lines += ["*No iterations ran in this phase.*", ""]
            continue
        for r in rec.results:
            tag = "" if r.succeeded else " *(fallback)*"
            lines.append(f"**{r.persona_id.value.title()} #{r.iteration}**{tag}: {_preview(r.content)}")
            lines.append("")

    fallbacks = sum(rec.failed_count for rec in state.phase_records)
    lines += [
        "---",
        f"*Ideation completed in {duration_sec:.1f}s across {len(state.phase_records)} phases"
        f" ({fallbacks} fallbacks)*",
    ]
    return "\n".join(lines)
