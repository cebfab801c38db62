"""Shared fixtures for orchestrator tests."""

import sys
from pathlib import Path

# Add src/ to sys.path so `import chat_orchestrator` works without installing.
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

import pytest

from chat_orchestrator.application.analysis import ContentAnalyzer
from chat_orchestrator.application.completion import ConversationCompletionEngine
from chat_orchestrator.application.moderation import ModerationGate
from chat_orchestrator.application.use_cases.chat import ChatUseCase
from chat_orchestrator.config import Settings
from helpers import (
    FakeClassifier,
    FakeCompletion,
    FakeExtractor,
    FakeVision,
    ScriptedBackend,
    make_test_settings,
)


def pytest_configure(config):
    """Set pytest-asyncio mode to auto so async test functions work without markers."""
    config.option.asyncio_mode = "auto"


@pytest.fixture()
def test_settings(tmp_path: Path) -> Settings:
    return make_test_settings(tmp_path)


@pytest.fixture()
def classifier() -> FakeClassifier:
    return FakeClassifier()


@pytest.fixture()
def completion() -> FakeCompletion:
    return FakeCompletion()


@pytest.fixture()
def vision() -> FakeVision:
    return FakeVision()


@pytest.fixture()
def extractor() -> FakeExtractor:
    return FakeExtractor(text="Section 1. Start-up of the feed pump P-101.")


@pytest.fixture()
def backend() -> ScriptedBackend:
    return ScriptedBackend()


@pytest.fixture()
def analyzer(completion, vision, extractor) -> ContentAnalyzer:
    return ContentAnalyzer(completion, vision, extractor)


@pytest.fixture()
def use_case(classifier, analyzer, backend) -> ChatUseCase:
    """ChatUseCase wired entirely to in-memory fakes."""
    return ChatUseCase(
        moderation_gate=ModerationGate(classifier),
        analyzer=analyzer,
        completion_engine=ConversationCompletionEngine(backend, "test-model"),
    )
