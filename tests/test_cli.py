"""Tests for the minimax-chat command line."""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from minimax_chat import cli
from minimax_chat.config import API_KEY_ENV
from minimax_chat.options import MiniMaxChatOptions
from minimax_chat.prompt import ChatResponse, Generation, MessageType


class FakeClient:
    """Stands in for ``MiniMaxChatClient`` inside ``cli._run``."""

    prompts: list = []
    closed = False

    @classmethod
    def from_config(cls, config, registry=None):
        return cls()

    async def call(self, prompt):
        FakeClient.prompts.append(prompt)
        return ChatResponse(
            generations=[Generation(content="Hi from MiniMax", finish_reason="stop")],
            usage={"prompt_tokens": 3, "completion_tokens": 4, "total_tokens": 7},
        )

    async def stream(self, prompt):
        FakeClient.prompts.append(prompt)
        for part in ("Hi ", "there"):
            yield ChatResponse(generations=[Generation(content=part)])
        yield ChatResponse()

    async def close(self):
        FakeClient.closed = True


@pytest.fixture(autouse=True)
def _reset_fake():
    FakeClient.prompts = []
    FakeClient.closed = False


class TestBuildPrompt:
    def test_plain_text(self):
        prompt = cli.build_prompt("Hello", None, None, None, ())
        assert [m.content for m in prompt.messages] == ["Hello"]
        assert prompt.options is None

    def test_system_and_options(self):
        prompt = cli.build_prompt("Hello", "Be brief", "abab6.5-chat", 0.2, ("get_weather",))
        assert [m.message_type for m in prompt.messages] == [MessageType.SYSTEM, MessageType.USER]
        assert isinstance(prompt.options, MiniMaxChatOptions)
        assert prompt.options.model == "abab6.5-chat"
        assert prompt.options.temperature == 0.2
        assert prompt.options.functions == {"get_weather"}


class TestMain:
    def test_missing_api_key(self, tmp_path, monkeypatch):
        monkeypatch.delenv(API_KEY_ENV, raising=False)
        result = CliRunner().invoke(
            cli.main, ["Hello", "--config", str(tmp_path / "missing.yaml")],
        )
        assert result.exit_code == 1
        assert "No API key" in result.output

    def test_call_prints_answer(self, tmp_path, monkeypatch):
        monkeypatch.setenv(API_KEY_ENV, "k")
        with patch("minimax_chat.cli.MiniMaxChatClient", FakeClient):
            result = CliRunner().invoke(
                cli.main, ["Hello", "-m", "abab6.5-chat", "-c", str(tmp_path / "none.yaml")],
            )
        assert result.exit_code == 0, result.output
        assert "Hi from MiniMax" in result.output
        assert "tokens: 3 in / 4 out" in result.output
        assert FakeClient.prompts[0].options.model == "abab6.5-chat"
        assert FakeClient.closed

    def test_stream_prints_fragments(self, tmp_path, monkeypatch):
        monkeypatch.setenv(API_KEY_ENV, "k")
        with patch("minimax_chat.cli.MiniMaxChatClient", FakeClient):
            result = CliRunner().invoke(
                cli.main, ["Hello", "--stream", "-c", str(tmp_path / "none.yaml")],
            )
        assert result.exit_code == 0, result.output
        assert "Hi there" in result.output
        assert FakeClient.closed
