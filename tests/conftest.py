"""Shared fixtures for lesson generation tests."""

import logging
from unittest.mock import MagicMock

import pytest

from lessonforge.models.schema import CEFRLevel, SharedContext


SOURCE_TEXT = (
    "Technology has revolutionized how we communicate. Smartphones let people "
    "send messages instantly, and social media connects friends across the "
    "world. However, some people worry that online communication replaces "
    "real conversations with family and friends."
)


class ScriptedCompletionService:
    """Completion service answering prompts by keyword.

    Each rule is a (keyword, response) pair; the first keyword found in the
    prompt wins. A response may be an exception instance, which is raised.
    """

    def __init__(self, rules=None, default=""):
        self.rules = list(rules or [])
        self.default = default
        self.prompts = []

    def prompt(self, prompt_text):
        self.prompts.append(prompt_text)
        for keyword, response in self.rules:
            if keyword in prompt_text:
                if isinstance(response, Exception):
                    raise response
                return response
        if isinstance(self.default, Exception):
            raise self.default
        return self.default


@pytest.fixture
def source_text():
    """Sample source text about technology and communication."""
    return SOURCE_TEXT


@pytest.fixture
def completion_service():
    """MagicMock completion service; configure ``prompt`` per test."""
    service = MagicMock()
    service.prompt.return_value = ""
    return service


@pytest.fixture
def failing_service():
    """Completion service that rejects every call."""
    service = MagicMock()
    service.prompt.side_effect = RuntimeError("service unavailable")
    return service


@pytest.fixture
def make_context():
    """Factory for SharedContext objects with sensible defaults."""

    def _make(**overrides):
        values = {
            "key_vocabulary": ["technology", "communicate", "smartphone", "social media", "message"],
            "main_themes": ["technology", "communication", "social media"],
            "difficulty_level": CEFRLevel.B1,
            "content_summary": "Technology has changed how people communicate with each other every day.",
            "source_text": SOURCE_TEXT,
            "lesson_type": "discussion",
            "target_language": "English",
        }
        values.update(overrides)
        return SharedContext(**values)

    return _make


@pytest.fixture
def b1_context(make_context):
    """B1 discussion lesson context."""
    return make_context()


@pytest.fixture
def scripted_completion():
    """Factory for ScriptedCompletionService instances."""
    return ScriptedCompletionService


@pytest.fixture
def restore_root_logger():
    """Restore root logger handlers and level after configure_logging."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
