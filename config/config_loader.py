"""Load settings.yaml into typed dataclasses. Validates structure at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

_REQUIRED_SECTIONS = ("backend", "defaults", "phases", "personas", "prompts")
_PROMPT_KEYS = ("foundation", "expansion", "refinement", "synthesis")


class ConfigurationError(Exception):
    """Raised for fatal, pre-session misconfiguration (bad settings, missing credentials)."""


@dataclass
class RetryConfig:
    max_attempts: int = 1
    base_delay_sec: float = 1.0


@dataclass
class BackendConfig:
    base_url: str
    api_key_env: str
    timeout_sec: float
    max_tokens: int
    synthesis_max_tokens: int
    retry: RetryConfig = field(default_factory=RetryConfig)


@dataclass
class PersonaConfig:
    persona_id: str
    name: str
    temperature: float
    models: list[str]
    system_prompt: str


@dataclass
class PhaseConfig:
    phase2_budget_sec: float
    phase2_max_iterations: int
    fixed_order: list[str] = field(default_factory=lambda: ["creative", "logical", "reasoning"])
    synthesizer: str = "reasoning"
    fixed_phase_budget_sec: float | None = None
    refinement_temperature_delta: float = -0.1


@dataclass
class PromptsConfig:
    foundation: str
    expansion: str
    refinement: str
    synthesis: str


@dataclass
class DefaultsConfig:
    output_dir: Path
    session_budget_sec: float
    early_exit_fraction: float = 0.7
    context_messages: int = 10
    inbox_dir: Path = Path("./inbox")
    archive_dir: Path = Path("./inbox/archive")


@dataclass
class AppConfig:
    backend: BackendConfig
    defaults: DefaultsConfig
    phases: PhaseConfig
    personas: dict[str, PersonaConfig]
    prompts: PromptsConfig


def _env_float(name: str, fallback: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return fallback
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if the settings file is missing and
    ConfigurationError if a section is absent or malformed. Credentials are
    not checked here; the backend checks them before a session starts.

    IDEATION_PHASE2_BUDGET_SEC and IDEATION_SESSION_BUDGET_SEC override the
    matching values from the file.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    missing = [s for s in _REQUIRED_SECTIONS if s not in raw]
    if missing:
        raise ConfigurationError(f"Missing settings section(s): {', '.join(missing)}")

    try:
        backend_raw = raw["backend"]
        retry_raw = backend_raw.get("retry", {}) or {}
        backend = BackendConfig(
            base_url=str(backend_raw["base_url"]),
            api_key_env=str(backend_raw["api_key_env"]),
            timeout_sec=float(backend_raw["timeout_sec"]),
            max_tokens=int(backend_raw["max_tokens"]),
            synthesis_max_tokens=int(backend_raw["synthesis_max_tokens"]),
            retry=RetryConfig(
                max_attempts=int(retry_raw.get("max_attempts", 1)),
                base_delay_sec=float(retry_raw.get("base_delay_sec", 1.0)),
            ),
        )

        defaults_raw = raw["defaults"]
        defaults = DefaultsConfig(
            output_dir=Path(defaults_raw["output_dir"]),
            session_budget_sec=_env_float(
                "IDEATION_SESSION_BUDGET_SEC", float(defaults_raw["session_budget_sec"])
            ),
            early_exit_fraction=float(defaults_raw.get("early_exit_fraction", 0.7)),
            context_messages=int(defaults_raw.get("context_messages", 10)),
            inbox_dir=Path(defaults_raw.get("inbox_dir", "./inbox")),
            archive_dir=Path(defaults_raw.get("archive_dir", "./inbox/archive")),
        )

        phases_raw = raw["phases"]
        phases = PhaseConfig(
            phase2_budget_sec=_env_float(
                "IDEATION_PHASE2_BUDGET_SEC", float(phases_raw["phase2_budget_sec"])
            ),
            phase2_max_iterations=int(phases_raw["phase2_max_iterations"]),
            fixed_order=list(phases_raw.get("fixed_order", ["creative", "logical", "reasoning"])),
            synthesizer=str(phases_raw.get("synthesizer", "reasoning")),
            fixed_phase_budget_sec=(
                float(phases_raw["fixed_phase_budget_sec"])
                if phases_raw.get("fixed_phase_budget_sec") is not None
                else None
            ),
            refinement_temperature_delta=float(phases_raw.get("refinement_temperature_delta", -0.1)),
        )

        personas: dict[str, PersonaConfig] = {}
        for persona_id, persona_raw in raw["personas"].items():
            personas[persona_id] = PersonaConfig(
                persona_id=persona_id,
                name=str(persona_raw["name"]),
                temperature=float(persona_raw["temperature"]),
                models=[str(m) for m in (persona_raw.get("models") or [])],
                system_prompt=str(persona_raw.get("system_prompt", "")).strip(),
            )

        prompts_raw = raw["prompts"]
        absent = [k for k in _PROMPT_KEYS if k not in prompts_raw]
        if absent:
            raise ConfigurationError(f"Missing prompt template(s): {', '.join(absent)}")
        prompts = PromptsConfig(**{k: str(prompts_raw[k]) for k in _PROMPT_KEYS})
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid settings in {settings_path}: {exc}") from exc

    if phases.phase2_budget_sec < 0:
        raise ConfigurationError("phase2_budget_sec must be >= 0")
    if phases.phase2_max_iterations < 0:
        raise ConfigurationError("phase2_max_iterations must be >= 0")
    if not 0 < defaults.early_exit_fraction <= 1:
        raise ConfigurationError("early_exit_fraction must be in (0, 1]")

    logger.debug(
        "Loaded config: %d personas, phase 2 budget %.0fs, session budget %.0fs",
        len(personas),
        phases.phase2_budget_sec,
        defaults.session_budget_sec,
    )

    return AppConfig(
        backend=backend,
        defaults=defaults,
        phases=phases,
        personas=personas,
        prompts=prompts,
    )
