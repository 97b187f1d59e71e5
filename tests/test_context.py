"""Tests for ideation/context.py."""

import pytest

from ideation.context import EMPTY_CONTEXT, render_conversation_context, to_messages
from ideation.models import ConversationMessage


def test_empty_context():
    assert render_conversation_context([]) == EMPTY_CONTEXT


def test_to_messages_accepts_dicts_and_messages():
    msgs = to_messages([{"role": "user", "content": "hi"}, ConversationMessage("assistant", "hello")])
    assert msgs == [ConversationMessage("user", "hi"), ConversationMessage("assistant", "hello")]


def test_to_messages_requires_role_and_content():
    with pytest.raises(ValueError, match="role and content"):
        to_messages([{"role": "user"}])


def test_render_includes_recent_messages_only():
    msgs = [ConversationMessage("user", f"message {i}") for i in range(15)]
    rendered = render_conversation_context(msgs, limit=10)
    assert "message 14" in rendered
    assert "message 5" in rendered
    assert "message 4" not in rendered
    assert "5 earlier messages omitted" in rendered


def test_render_truncates_long_messages():
    rendered = render_conversation_context([ConversationMessage("user", "x" * 400)], max_chars=150)
    assert "x" * 150 + "..." in rendered
    assert "x" * 151 not in rendered


def test_render_labels_roles():
    rendered = render_conversation_context([ConversationMessage("assistant", "Earlier answer")])
    assert "**assistant**: Earlier answer" in rendered
