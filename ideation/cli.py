"""Click CLI: wires config, personas, backend and the session orchestrator together."""

import asyncio
import dataclasses
import logging
import random
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from config.config_loader import AppConfig, ConfigurationError, load_config
from ideation.backend.base import GenerativeBackend
from ideation.backend.openai_compatible import OpenAICompatibleBackend
from ideation.backend.retry import RetryPolicy, wrap_with_policy
from ideation.cache import ResponseCache, TTLResponseCache
from ideation.healthcheck import run_health_checks, unhealthy_personas
from ideation.inbox import archive_topic, ensure_dirs, load_topic, scan_inbox
from ideation.models import ConversationMessage, PhaseId, PhaseRecord
from ideation.orchestrator import SessionOrchestrator
from ideation.output import print_phase_summary, print_report, save_to_file
from ideation.personas import PersonaRegistry

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_CACHE_TTL_SEC = 3600.0


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
    # The SDK's own request logging duplicates ours.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _apply_overrides(
    config: AppConfig,
    phase2_budget: float | None,
    session_budget: float | None,
) -> AppConfig:
    """Return a copy of config with CLI/frontmatter budget overrides applied."""
    phases = config.phases
    defaults = config.defaults
    if phase2_budget is not None:
        phases = dataclasses.replace(phases, phase2_budget_sec=phase2_budget)
    if session_budget is not None:
        defaults = dataclasses.replace(defaults, session_budget_sec=session_budget)
    return dataclasses.replace(config, phases=phases, defaults=defaults)


def _build_backend(config: AppConfig, registry: PersonaRegistry) -> GenerativeBackend:
    backend = OpenAICompatibleBackend(config.backend, registry)
    return wrap_with_policy(backend, RetryPolicy.from_config(config.backend.retry))


def _check_backend(backend: GenerativeBackend, registry: PersonaRegistry) -> None:
    """Ping every persona model and ask whether to continue when a persona is fully down.

    Exits if the user declines or every model failed.
    """
    console.print("\n[bold]Checking models...[/bold]")
    results = asyncio.run(run_health_checks(backend, registry))

    for label in sorted(results):
        ok, err = results[label]
        if ok:
            console.print(f"  [green]OK  [/green] {label}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {label}: {short_err}")

    if results and not any(ok for ok, _ in results.values()):
        console.print("\n[bold red]Error:[/bold red] No model passed the health check.")
        sys.exit(1)

    down = unhealthy_personas(results)
    if down:
        console.print(
            f"\n[yellow]Every model failed for:[/yellow] {', '.join(down)}. "
            "Those personas will contribute fallback text only."
        )
        if not click.confirm("Continue anyway?", default=True):
            sys.exit(0)
    console.print()


async def _run_single(
    topic: str,
    config: AppConfig,
    backend: GenerativeBackend,
    registry: PersonaRegistry,
    rng: random.Random,
    cache: ResponseCache,
    output_dir: Path,
    context: list[ConversationMessage] | None = None,
    slug_override: str | None = None,
) -> Path:
    """Run one ideation session and return the saved output path."""
    orchestrator = SessionOrchestrator.from_config(config, backend, registry, rng=rng, cache=cache)

    console.print(
        f"\n[bold cyan]Ideation Council[/bold cyan]: phase 2 budget "
        f"{config.phases.phase2_budget_sec:.0f}s, session budget {config.defaults.session_budget_sec:.0f}s"
    )
    console.print(f"Topic: [italic]{topic[:80]}{'...' if len(topic) > 80 else ''}[/italic]\n")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Phase 1: Foundation...", total=None)

        def on_phase_complete(record: PhaseRecord) -> None:
            progress.print(
                f"[green]OK[/green] {record.phase_id.heading} sealed "
                f"({len(record.results)} results, {record.failed_count} fallbacks)"
            )
            if record.phase_id.number < 4:
                following = list(PhaseId)[record.phase_id.number]
                progress.update(task, description=f"{following.heading}...")

        result = await orchestrator.execute_session(
            topic,
            context or [],
            on_phase_complete=on_phase_complete,
        )

    for record in result.phase_records:
        print_phase_summary(record)

    print_report(result)

    saved_path = save_to_file(result, output_dir, slug_override=slug_override)
    console.print(f"\n[dim]Saved to: {saved_path}[/dim]")
    return saved_path


async def _run_inbox(
    config: AppConfig,
    backend: GenerativeBackend,
    registry: PersonaRegistry,
    rng: random.Random,
    cache: ResponseCache,
    inbox_dir: Path,
    archive_dir: Path,
    phase2_cli: float | None,
    session_cli: float | None,
    output_dir: Path,
) -> None:
    """Process every queued topic file.

    Precedence for budgets: CLI flag > frontmatter > config default.
    """
    ensure_dirs(inbox_dir, archive_dir)
    files = scan_inbox(inbox_dir)

    if not files:
        click.echo("No topics in inbox.")
        return

    for file_path in files:
        topic_file = load_topic(file_path)
        if not topic_file.topic:
            logger.error("Skipping empty topic file: %s", file_path.name)
            archive_topic(file_path, archive_dir, failed=True)
            continue

        effective = _apply_overrides(
            config,
            phase2_cli if phase2_cli is not None else topic_file.phase2_budget_sec,
            session_cli if session_cli is not None else topic_file.session_budget_sec,
        )
        try:
            saved = await _run_single(
                topic=topic_file.topic,
                config=effective,
                backend=backend,
                registry=registry,
                rng=rng,
                cache=cache,
                output_dir=output_dir,
                context=topic_file.context,
                slug_override=file_path.stem,
            )
            archived = archive_topic(file_path, archive_dir)
            click.echo(f"Processed: {file_path.name} -> {saved} (archived: {archived.name})")
        except Exception as e:
            logger.error("Failed: %s -- %s", file_path.name, e)
            archive_topic(file_path, archive_dir, failed=True)


@click.command()
@click.argument("topic", required=False)
@click.option("--file", "topic_file", type=click.Path(exists=True), help="Read the topic from a .md file")
@click.option("--phase2-budget", default=None, type=float, help="Expansion phase budget in seconds")
@click.option("--session-budget", default=None, type=float, help="Advisory session budget in seconds")
@click.option("--seed", default=None, type=int, help="Seed persona/model selection for reproducible runs")
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--inbox", "use_inbox", is_flag=True, default=False, help="Process all .md topics in the inbox folder")
@click.option("--inbox-dir", "inbox_dir_override", default=None, help="Override inbox folder path")
@click.option("--skip-health-check", is_flag=True, default=False, help="Skip the model connectivity check")
def main(
    topic: str | None,
    topic_file: str | None,
    phase2_budget: float | None,
    session_budget: float | None,
    seed: int | None,
    output_path: str | None,
    verbose: bool,
    use_inbox: bool,
    inbox_dir_override: str | None,
    skip_health_check: bool,
) -> None:
    """Ideation Council -- four-phase multi-agent ideation.

    \b
    Examples:
      python -m ideation.cli "sustainable urban transport"
      python -m ideation.cli "Remote team rituals" --phase2-budget 30
      python -m ideation.cli --file topic.md --seed 7
      python -m ideation.cli --inbox
    """
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
        rng = random.Random(seed)
        registry = PersonaRegistry.from_config(config.personas, rng=rng)
        backend = _build_backend(config, registry)
        backend.check_credentials()
    except (FileNotFoundError, ConfigurationError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    output_dir = Path(output_path) if output_path else config.defaults.output_dir
    cache = TTLResponseCache(ttl_sec=_CACHE_TTL_SEC)

    if not skip_health_check:
        _check_backend(backend, registry)

    if use_inbox:
        inbox_dir = Path(inbox_dir_override) if inbox_dir_override else config.defaults.inbox_dir
        asyncio.run(
            _run_inbox(
                config=config,
                backend=backend,
                registry=registry,
                rng=rng,
                cache=cache,
                inbox_dir=inbox_dir,
                archive_dir=config.defaults.archive_dir,
                phase2_cli=phase2_budget,
                session_cli=session_budget,
                output_dir=output_dir,
            )
        )
        return

    context: list[ConversationMessage] = []
    if topic_file:
        loaded = load_topic(Path(topic_file))
        topic_text = loaded.topic
        context = loaded.context
        phase2_budget = phase2_budget if phase2_budget is not None else loaded.phase2_budget_sec
        session_budget = session_budget if session_budget is not None else loaded.session_budget_sec
    elif topic:
        topic_text = topic
    else:
        console.print("[bold red]Error:[/bold red] Provide a TOPIC argument, --file, or --inbox.")
        sys.exit(1)

    if not topic_text.strip():
        console.print("[bold red]Error:[/bold red] Topic is empty.")
        sys.exit(1)

    asyncio.run(
        _run_single(
            topic=topic_text,
            config=_apply_overrides(config, phase2_budget, session_budget),
            backend=backend,
            registry=registry,
            rng=rng,
            cache=cache,
            output_dir=output_dir,
            context=context,
        )
    )


if __name__ == "__main__":
    main()
