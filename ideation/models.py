"""Dataclasses and enums for the ideation pipeline. No I/O."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class PersonaId(str, Enum):
    """Calling profiles available to every phase."""

    CREATIVE = "creative"
    REASONING = "reasoning"
    LOGICAL = "logical"


class PhaseId(str, Enum):
    """The four phases of a session, in execution order."""

    FOUNDATION = "foundation"
    EXPANSION = "expansion"
    REFINEMENT = "refinement"
    SYNTHESIS = "synthesis"

    @property
    def number(self) -> int:
        return list(PhaseId).index(self) + 1

    @property
    def heading(self) -> str:
        return f"Phase {self.number}: {self.value.title()}"


class SessionStatus(str, Enum):
    """Session Orchestrator states."""

    INIT = "init"
    PHASE1_FOUNDATION = "phase1_foundation"
    PHASE2_EXPANSION = "phase2_expansion"
    PHASE3_REFINEMENT = "phase3_refinement"
    PHASE4_SYNTHESIS = "phase4_synthesis"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class Persona:
    id: PersonaId
    display_name: str
    temperature: float
    model_pool: frozenset[str]
    system_prompt: str = ""


@dataclass(frozen=True)
class ConversationMessage:
    role: str       # "user" or "assistant"
    content: str


@dataclass(frozen=True)
class AgentCallResult:
    persona_id: PersonaId
    phase_id: PhaseId
    content: str            # never empty; fallback text when succeeded is False
    model_used: str
    duration_ms: int
    succeeded: bool
    iteration: int = 1      # 1-indexed position inside the phase


@dataclass(frozen=True)
class PhaseRecord:
    phase_id: PhaseId
    started_at: datetime
    deadline: datetime | None
    sealed_at: datetime
    results: tuple[AgentCallResult, ...] = ()
    skipped: bool = False

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.results if not r.succeeded)


class PhaseRecorder:
    """Mutable builder for a PhaseRecord; seal() freezes it."""

    def __init__(self, phase_id: PhaseId, started_at: datetime, deadline: datetime | None) -> None:
        self.phase_id = phase_id
        self.started_at = started_at
        self.deadline = deadline
        self._results: list[AgentCallResult] = []
        self._sealed: PhaseRecord | None = None

    @property
    def results(self) -> list[AgentCallResult]:
        return list(self._results)

    def add(self, result: AgentCallResult) -> None:
        if self._sealed is not None:
            raise RuntimeError(f"Phase {self.phase_id.value} is already sealed")
        self._results.append(result)

    def seal(self, *, skipped: bool = False) -> PhaseRecord:
        if self._sealed is None:
            self._sealed = PhaseRecord(
                phase_id=self.phase_id,
                started_at=self.started_at,
                deadline=self.deadline,
                sealed_at=datetime.now(),
                results=tuple(self._results),
                skipped=skipped,
            )
        return self._sealed


@dataclass
class SessionState:
    original_prompt: str
    conversation_context: list[ConversationMessage] = field(default_factory=list)
    phase_records: list[PhaseRecord] = field(default_factory=list)

    def append(self, record: PhaseRecord) -> None:
        """Append a sealed record; phases must arrive once each, in order."""
        expected = list(PhaseId)[len(self.phase_records)] if len(self.phase_records) < len(PhaseId) else None
        if record.phase_id is not expected:
            raise ValueError(
                f"Out-of-order phase record: got {record.phase_id.value}, "
                f"expected {expected.value if expected else 'none'}"
            )
        self.phase_records.append(record)

    def record_for(self, phase_id: PhaseId) -> PhaseRecord | None:
        return next((r for r in self.phase_records if r.phase_id is phase_id), None)

    def all_results(self) -> list[AgentCallResult]:
        return [r for rec in self.phase_records for r in rec.results]


@dataclass
class SessionResult:
    prompt: str
    content: str                     # final markdown artifact
    synthesis: str                   # raw phase 4 text
    phase_records: list[PhaseRecord]
    per_phase_breakdown: dict[str, list[dict]]
    status: SessionStatus
    total_duration_sec: float
    transitions: list[SessionStatus] = field(default_factory=list)
