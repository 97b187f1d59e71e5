"""Unit tests for ideation/output.py: no API calls."""

from datetime import datetime
from pathlib import Path

from ideation.models import (
    AgentCallResult,
    PersonaId,
    PhaseId,
    PhaseRecorder,
    SessionResult,
    SessionStatus,
)
from ideation.output import _result_preview, _slug, print_phase_summary, print_report, save_to_file


def _record(phase, results=(), skipped=False):
    recorder = PhaseRecorder(phase, datetime.now(), None)
    for r in results:
        recorder.add(r)
    return recorder.seal(skipped=skipped)


def _session_result() -> SessionResult:
    ok = AgentCallResult(PersonaId.CREATIVE, PhaseId.FOUNDATION, "Rooftop gardens.", "c-model-1", 1500, True)
    failed = AgentCallResult(PersonaId.LOGICAL, PhaseId.FOUNDATION, "Fallback text.", "local-fallback", 20, False, 2)
    synth = AgentCallResult(PersonaId.REASONING, PhaseId.SYNTHESIS, "### Executive Summary\nGo.", "r-model-1", 900, True)
    records = [
        _record(PhaseId.FOUNDATION, [ok, failed]),
        _record(PhaseId.EXPANSION),
        _record(PhaseId.REFINEMENT, skipped=True),
        _record(PhaseId.SYNTHESIS, [synth]),
    ]
    return SessionResult(
        prompt="Greener office buildings?",
        content="# Ideation Report: Greener office buildings?\n\n## Phase 1: Foundation",
        synthesis="### Executive Summary\nGo.",
        phase_records=records,
        per_phase_breakdown={},
        status=SessionStatus.DONE,
        total_duration_sec=4.2,
    )


def test_slug_basic():
    assert _slug("Greener office buildings?") == "greener-office-buildings"


def test_slug_truncates():
    assert len(_slug("word " * 40)) <= 40


def test_result_preview_truncates():
    result = AgentCallResult(PersonaId.CREATIVE, PhaseId.EXPANSION, "w " * 80, "m", 1, True)
    preview = _result_preview(result, words=10)
    assert preview.endswith("...")
    assert len(preview.split()) == 10


def test_save_to_file_writes_report_and_transcript(tmp_path: Path):
    path = save_to_file(_session_result(), tmp_path / "out")

    assert path.exists()
    assert path.name.endswith("_greener-office-buildings.md")
    text = path.read_text(encoding="utf-8")
    assert text.startswith("# Ideation Session: Greener office buildings?")
    assert "**Models:** c-model-1, r-model-1" in text
    assert "**Status:** done" in text
    assert "## Phase 1: Foundation" in text
    assert "## Full Transcript" in text
    assert "#### Logical #2 (local-fallback)" in text
    assert "| fallback*" in text
    assert text.count("*(no output)*") == 2


def test_save_to_file_slug_override(tmp_path: Path):
    path = save_to_file(_session_result(), tmp_path, slug_override="from-inbox")
    assert path.name.endswith("_from-inbox.md")


def test_print_functions_do_not_raise():
    result = _session_result()
    for record in result.phase_records:
        print_phase_summary(record)
    print_report(result)
