"""
Tests for the Gemini client wrapper.

Validates:
1. Safety and recitation stops surface as UpstreamModelError
2. Histories never open with a model turn
"""

import pytest
from google.api_core import exceptions as google_exceptions
from google.generativeai.types import generation_types

from sonic.ai import gemini
from sonic.errors import UpstreamModelError


class FakeResponse:
    def __init__(self, text):
        self.text = text


class FakeSession:
    def __init__(self, error=None):
        self.error = error

    def send_message(self, message):
        if self.error:
            raise self.error
        return FakeResponse(f"echo: {message}")


class FakeModel:
    def __init__(self, error=None):
        self.error = error
        self.history = None

    def generate_content(self, prompt):
        if self.error:
            raise self.error
        return FakeResponse("1")

    def start_chat(self, history):
        self.history = history
        return FakeSession(self.error)


@pytest.fixture
def make_client(monkeypatch):
    def _make(error=None):
        model = FakeModel(error)
        monkeypatch.setattr(gemini.genai, "configure", lambda api_key: None)
        monkeypatch.setattr(gemini.genai, "GenerativeModel", lambda name: model)
        return gemini.GeminiClient(api_key="test-key"), model
    return _make


class TestModelErrors:
    @pytest.mark.parametrize("error", [
        generation_types.StopCandidateException("SAFETY"),
        generation_types.BlockedPromptException("blocked"),
        google_exceptions.ResourceExhausted("quota"),
        ValueError("no text part"),
    ])
    def test_chat_errors_are_upstream(self, make_client, error):
        client, _ = make_client(error)
        with pytest.raises(UpstreamModelError):
            client.chat([], "hello")

    @pytest.mark.parametrize("error", [
        generation_types.StopCandidateException("RECITATION"),
        generation_types.BlockedPromptException("blocked"),
    ])
    def test_generate_errors_are_upstream(self, make_client, error):
        client, _ = make_client(error)
        with pytest.raises(UpstreamModelError):
            client.generate("hello")


class TestChatHistory:
    def test_leading_model_turns_dropped(self, make_client):
        client, model = make_client()
        reply = client.chat(
            [{"role": "model", "content": "welcome"}, {"role": "user", "content": "hi"}, {"role": "model", "content": ""}],
            "build it",
        )
        assert reply == "echo: build it"
        assert model.history == [{"role": "user", "parts": ["hi"]}]
