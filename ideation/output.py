"""Rich console output and markdown file save for ideation results."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.text import Text

from ideation.models import AgentCallResult, PhaseRecord, SessionResult

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _result_preview(result: AgentCallResult, words: int = 50) -> str:
    """Return first N words of a result."""
    all_words = result.content.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def print_phase_summary(record: PhaseRecord) -> None:
    """Print a brief summary of one sealed phase to the console."""
    console.print(Rule(f"[bold cyan]{record.phase_id.heading}[/bold cyan]"))
    if record.skipped:
        console.print(Text("Skipped (session budget)", style="yellow"))
        return
    if not record.results:
        console.print(Text("No iterations ran", style="dim"))
        return
    for result in record.results:
        border = "dim" if result.succeeded else "red"
        title = f"[bold]{result.persona_id.value.title()}[/bold] #{result.iteration} ({result.model_used})"
        if not result.succeeded:
            title += " [red]fallback[/red]"
        console.print(
            Panel(
                _result_preview(result),
                title=title,
                subtitle=f"{result.duration_ms / 1000:.1f}s",
                border_style=border,
            )
        )


def print_report(result: SessionResult) -> None:
    """Print the synthesis to the console using Rich markdown."""
    console.print(Rule("[bold green]Ideation Synthesis[/bold green]"))
    calls = sum(len(r.results) for r in result.phase_records)
    fallbacks = sum(r.failed_count for r in result.phase_records)
    console.print(
        Text(
            f"Duration: {result.total_duration_sec:.1f}s | "
            f"Calls: {calls} | "
            f"Fallbacks: {fallbacks} | "
            f"Status: {result.status.value}",
            style="dim",
        )
    )
    console.print(Markdown(result.synthesis))


def save_to_file(result: SessionResult, output_dir: Path, slug_override: str | None = None) -> Path:
    """Save the full session transcript and report as a markdown file.

    Args:
        result: The completed SessionResult.
        output_dir: Directory to save the file in.
        slug_override: If provided, use this as the filename stem instead of
            deriving one from the topic. Useful for inbox mode.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(result.prompt)
    filepath = output_dir / f"{timestamp}_{slug}.md"

    models = sorted(
        {r.model_used for rec in result.phase_records for r in rec.results if r.succeeded}
    )
    lines: list[str] = [
        f"# Ideation Session: {result.prompt[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Models:** {', '.join(models) if models else 'none (all fallbacks)'}",
        f"**Duration:** {result.total_duration_sec:.1f}s",
        f"**Status:** {result.status.value}",
        "",
        "---",
        "",
        result.content,
        "",
        "---",
        "",
        "## Full Transcript",
        "",
    ]

    for rec in result.phase_records:
        lines.append(f"### {rec.phase_id.heading}")
        lines.append("")
        if rec.skipped or not rec.results:
            lines.append("*(no output)*")
            lines.append("")
            continue
        for r in rec.results:
            lines.append(f"#### {r.persona_id.value.title()} #{r.iteration} ({r.model_used})")
            lines.append("")
            lines.append(r.content)
            lines.append("")
            lines.append(
                f"*Latency: {r.duration_ms / 1000:.2f}s"
                + ("" if r.succeeded else " | fallback")
                + "*"
            )
            lines.append("")

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Session saved to: %s", filepath)
    return filepath
