"""Render prior conversation turns into a prompt preamble."""

from collections.abc import Iterable, Mapping

from ideation.models import ConversationMessage

EMPTY_CONTEXT = "This is the beginning of our conversation."


def to_messages(raw: Iterable[ConversationMessage | Mapping[str, str]]) -> list[ConversationMessage]:
    """Accept ConversationMessage objects or {"role", "content"} dicts.

    Raises ValueError when an entry lacks role or content.
    """
    messages: list[ConversationMessage] = []
    for index, item in enumerate(raw):
        if isinstance(item, ConversationMessage):
            messages.append(item)
            continue
        try:
            messages.append(ConversationMessage(role=str(item["role"]), content=str(item["content"])))
        except (KeyError, TypeError) as exc:
            raise ValueError(f"Context message {index} needs both role and content") from exc
    return messages


def _truncate(text: str, max_chars: int) -> str:
    text = " ".join(text.split())
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."


def render_conversation_context(
    messages: list[ConversationMessage],
    limit: int = 10,
    max_chars: int = 150,
) -> str:
    if not messages:
        return EMPTY_CONTEXT
    recent = messages[-limit:] if limit > 0 else []
    if not recent:
        return EMPTY_CONTEXT
    lines = ["## Conversation Context", ""]
    if len(messages) > len(recent):
        lines.append(f"({len(messages) - len(recent)} earlier messages omitted)")
    lines.extend(f"**{m.role}**: {_truncate(m.content, max_chars)}" for m in recent)
    return "\n".join(lines)
