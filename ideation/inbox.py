"""Topic inbox: queued .md topic files with optional YAML frontmatter overrides."""

import logging
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

import frontmatter

from ideation.context import to_messages
from ideation.models import ConversationMessage

logger = logging.getLogger(__name__)


@dataclass
class TopicFile:
    path: Path
    topic: str
    phase2_budget_sec: float | None = None
    session_budget_sec: float | None = None
    context: list[ConversationMessage] = field(default_factory=list)


def _optional_seconds(metadata: dict, key: str, path: Path) -> float | None:
    if key not in metadata or metadata[key] is None:
        return None
    try:
        value = float(metadata[key])
    except (TypeError, ValueError):
        logger.warning("Ignoring non-numeric %s in %s: %r", key, path.name, metadata[key])
        return None
    if value < 0:
        logger.warning("Ignoring negative %s in %s", key, path.name)
        return None
    return value


def load_topic(file_path: Path) -> TopicFile:
    """Read a topic file.

    Recognized frontmatter keys:
        phase2_budget_sec: wall-clock budget for the expansion phase.
        session_budget_sec: advisory budget for the whole session.
        context: list of {role, content} prior conversation turns.
    Unknown keys are ignored.
    """
    post = frontmatter.load(str(file_path))
    metadata = dict(post.metadata)

    context: list[ConversationMessage] = []
    raw_context = metadata.get("context") or []
    try:
        context = to_messages(raw_context)
    except (TypeError, ValueError) as exc:
        logger.warning("Ignoring malformed context in %s: %s", file_path.name, exc)

    return TopicFile(
        path=file_path,
        topic=post.content.strip(),
        phase2_budget_sec=_optional_seconds(metadata, "phase2_budget_sec", file_path),
        session_budget_sec=_optional_seconds(metadata, "session_budget_sec", file_path),
        context=context,
    )


def ensure_dirs(inbox_dir: Path, archive_dir: Path) -> None:
    inbox_dir.mkdir(parents=True, exist_ok=True)
    archive_dir.mkdir(parents=True, exist_ok=True)


def scan_inbox(inbox_dir: Path) -> list[Path]:
    """Queued topics, oldest first."""
    return sorted(inbox_dir.glob("*.md"), key=lambda p: p.stat().st_mtime)


def archive_topic(file_path: Path, archive_dir: Path, *, failed: bool = False) -> Path:
    """Move a processed topic into archive_dir; failures get a FAILED_ prefix."""
    stamp = datetime.now().strftime("%Y-%m-%dT%H%M")
    prefix = "FAILED_" if failed else ""
    dest = archive_dir / f"{prefix}{stamp}_{file_path.name}"
    shutil.move(str(file_path), str(dest))
    return dest
