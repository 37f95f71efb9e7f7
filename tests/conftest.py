"""
Pytest configuration and fixtures for ContextFox tests.

This module provides:
- Network blocking fixture to prevent accidental API calls in CI
- A scripted completion client keyed by model id
- Processor settings that route each stage to its own test model
"""

import socket
from typing import Any, Dict, List, Optional

import pytest
from unittest.mock import patch

from contextfox.config import ProcessorSettings, SamplingConfig, TaskModelConfig
from contextfox.services import CompletionClient, CompletionResponse, InMemoryStateStore


class NetworkBlockedError(Exception):
    """Raised when a test attempts to make a network connection."""
    pass


def _block_socket_connect(*args, **kwargs):
    """Block all socket connections to prevent accidental API calls."""
    raise NetworkBlockedError(
        "Network access is blocked in unit tests. "
        "If you need to test network functionality, use mocks. "
        "This prevents accidental OpenRouter API calls that cost money."
    )


@pytest.fixture(autouse=True)
def block_network():
    """
    Automatically block all network connections in tests.

    If a test needs to make real network calls (integration tests),
    it should be marked with @pytest.mark.integration and run separately.
    """
    with patch.object(socket.socket, 'connect', _block_socket_connect):
        with patch.object(socket, 'create_connection', _block_socket_connect):
            yield


# ============================================================================
# Scripted Completion Client
# ============================================================================

STAGES = ("perspective", "title", "characters", "locations", "concepts", "summary", "plot_essentials", "core_self")

DEFAULT_RESPONSES: Dict[str, Any] = {
    "test/perspective": '{"character": "Alice"}',
    "test/title": '{"title": "The Fox"}',
    "test/characters": '{"cards": [{"title": "Alice", "keys": "Alice, girl", "value": "A curious girl", "type": "character"}]}',
    "test/locations": '{"cards": [{"title": "Wonderland", "keys": "Wonderland", "value": "A strange land", "type": "location"}]}',
    "test/concepts": '{"cards": []}',
    "test/summary": '{"summary": "Alice follows a rabbit."}',
    "test/plot_essentials": '{"plotEssentials": "Alice is late."}',
    "test/core_self": '{"coreSelfUpdates": []}',
}


class FakeCompletionClient(CompletionClient):
    """
    Completion client that answers from a per-model script.

    A scripted value may be a string, a CompletionResponse, an exception to
    raise, or a list of those consumed in order (the last one repeats).
    """

    def __init__(self, responses: Optional[Dict[str, Any]] = None):
        self.responses: Dict[str, Any] = dict(DEFAULT_RESPONSES)
        if responses:
            self.responses.update(responses)
        self.calls: List[Dict[str, str]] = []
        self.closed = False

    async def complete(self, model, system_prompt, user_content, sampling=None):
        self.calls.append({"model": model, "system_prompt": system_prompt, "user_content": user_content})
        scripted = self.responses.get(model, "")
        if isinstance(scripted, list):
            scripted = scripted.pop(0) if len(scripted) > 1 else scripted[0]
        if isinstance(scripted, Exception):
            raise scripted
        if isinstance(scripted, CompletionResponse):
            return scripted
        return CompletionResponse(content=scripted, model=model)

    async def close(self) -> None:
        self.closed = True

    def calls_for(self, model: str) -> List[Dict[str, str]]:
        return [call for call in self.calls if call["model"] == model]


def make_settings(**overrides) -> ProcessorSettings:
    """Settings whose stage models are test/<stage>; pass "None" to disable one."""
    models = {stage: f"test/{stage}" for stage in STAGES}
    models.update(overrides.pop("models", {}))
    return ProcessorSettings(
        task_models=TaskModelConfig(**models),
        sampling=SamplingConfig(max_tokens=1000),
        **overrides,
    )


@pytest.fixture
def fake_client():
    """A FakeCompletionClient with the default script."""
    return FakeCompletionClient()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def store():
    return InMemoryStateStore()
