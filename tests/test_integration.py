"""Integration tests: real API calls, no mocks. Requires .env with GROQ_API_KEY."""

import dataclasses
import os
import random
from pathlib import Path

import pytest
from dotenv import load_dotenv

load_dotenv()

pytestmark = pytest.mark.integration

if not os.environ.get("GROQ_API_KEY", "").strip():
    pytestmark = pytest.mark.skip(reason="GROQ_API_KEY is not set")


async def test_full_session_pipeline(tmp_path: Path):
    """Run a short real session end to end, verify no crash and a complete report."""
    from config.config_loader import load_config
    from ideation.cli import _build_backend
    from ideation.models import PhaseId, SessionStatus
    from ideation.orchestrator import SessionOrchestrator
    from ideation.output import save_to_file
    from ideation.personas import PersonaRegistry

    config = load_config()
    # Keep the run short: two expansion iterations at most.
    config = dataclasses.replace(
        config,
        phases=dataclasses.replace(config.phases, phase2_budget_sec=60.0, phase2_max_iterations=2),
    )
    rng = random.Random(1)
    registry = PersonaRegistry.from_config(config.personas, rng=rng)
    backend = _build_backend(config, registry)
    orchestrator = SessionOrchestrator.from_config(config, backend, registry, rng=rng)

    result = await orchestrator.execute_session("How could a small town reduce food waste from its restaurants?")

    assert result.status is SessionStatus.DONE
    assert [r.phase_id for r in result.phase_records] == list(PhaseId)
    assert result.synthesis.strip()
    for phase in PhaseId:
        assert f"## {phase.heading}" in result.content

    saved = save_to_file(result, tmp_path / "output")
    content = saved.read_text(encoding="utf-8")
    assert "Ideation Session" in content
    assert "## Full Transcript" in content
