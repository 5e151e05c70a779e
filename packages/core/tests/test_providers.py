"""Tests for backend callers and the registry that builds them.

Shared behaviour (call, with_model) lives in BackendCaller and is tested once
via a stub. Provider-specific tests only check how each SDK client is driven.
"""

from unittest.mock import MagicMock, patch

import pytest

from prquorum_core.config import load_config
from prquorum_core.providers.anthropic import AnthropicCaller
from prquorum_core.providers.base import BackendCaller
from prquorum_core.providers.gemini import GeminiCaller
from prquorum_core.providers.openai import OpenAICaller
from prquorum_core.providers.registry import build_backend, build_backends, known_backends


class _StubCaller(BackendCaller):
    NAME = "stub"
    DEFAULT_MODEL = "stub-1"

    def __init__(self, model=None):
        super().__init__(model)
        self.client = object()
        self.seen = []

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        self.seen.append((system_prompt, user_prompt))
        return "[]"


class TestBackendCaller:
    def test_default_model(self):
        assert _StubCaller().model == "stub-1"

    def test_explicit_model(self):
        assert _StubCaller(model="stub-2").model == "stub-2"

    def test_call_passes_prompts_through(self):
        caller = _StubCaller()
        assert caller.call("sys", "usr") == "[]"
        assert caller.seen == [("sys", "usr")]

    def test_with_model_shares_client(self):
        caller = _StubCaller()
        clone = caller.with_model("stub-pro")
        assert clone.model == "stub-pro"
        assert caller.model == "stub-1"
        assert clone.client is caller.client
        assert clone.name == "stub"


class TestAnthropicCaller:
    def test_call_joins_text_blocks(self):
        with patch("prquorum_core.providers.anthropic.Anthropic") as mock_cls:
            caller = AnthropicCaller(api_key="key")
        with patch("prquorum_core.providers.anthropic.TextBlock", MagicMock):
            block = MagicMock()
            block.text = '  [{"path": "a.py"}]  '
            caller.client.messages.create.return_value = MagicMock(content=[block])
            assert caller.call("sys", "usr") == '[{"path": "a.py"}]'
        mock_cls.assert_called_once_with(api_key="key")
        kwargs = caller.client.messages.create.call_args.kwargs
        assert kwargs["system"] == "sys"
        assert kwargs["messages"] == [{"role": "user", "content": "usr"}]
        assert kwargs["model"] == AnthropicCaller.DEFAULT_MODEL

    def test_temperature_is_set(self):
        assert AnthropicCaller.TEMPERATURE == 0.3


class TestOpenAICaller:
    def test_call_returns_message_content(self):
        with patch("prquorum_core.providers.openai.OpenAI"):
            caller = OpenAICaller(api_key="key", model="gpt-4.1")
        choice = MagicMock()
        choice.message.content = "[]"
        caller.client.chat.completions.create.return_value = MagicMock(choices=[choice])
        assert caller.call("sys", "usr") == "[]"
        kwargs = caller.client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4.1"
        assert kwargs["messages"][0] == {"role": "system", "content": "sys"}

    def test_none_content_becomes_empty_string(self):
        with patch("prquorum_core.providers.openai.OpenAI"):
            caller = OpenAICaller(api_key="key")
        choice = MagicMock()
        choice.message.content = None
        caller.client.chat.completions.create.return_value = MagicMock(choices=[choice])
        assert caller.call("sys", "usr") == ""


class TestGeminiCaller:
    def test_call_returns_text(self):
        with patch("prquorum_core.providers.gemini.genai.Client"):
            caller = GeminiCaller(api_key="key")
        caller.client.models.generate_content.return_value = MagicMock(text=" [] ")
        assert caller.call("sys", "usr") == "[]"
        kwargs = caller.client.models.generate_content.call_args.kwargs
        assert kwargs["contents"] == "usr"
        assert kwargs["config"].system_instruction == "sys"

    def test_errors_propagate(self):
        with patch("prquorum_core.providers.gemini.genai.Client"):
            caller = GeminiCaller(api_key="key")
        caller.client.models.generate_content.side_effect = RuntimeError("input token count (9) exceeds")
        with pytest.raises(RuntimeError, match="input token count"):
            caller.call("sys", "usr")


class TestRegistry:
    def _config(self, tmp_path, **keys):
        config = load_config(config_path=str(tmp_path / "missing.yml"))
        for name in ("anthropic_api_key", "openai_api_key", "gemini_api_key"):
            config[name] = keys.get(name)
        return config

    def test_known_backends(self):
        assert known_backends() == ["anthropic", "openai", "gemini"]

    def test_unknown_backend_raises(self, tmp_path):
        with pytest.raises(ValueError, match="Unknown backend"):
            build_backend("mistral", self._config(tmp_path))

    def test_missing_key_raises(self, tmp_path):
        with pytest.raises(ValueError, match="OPENAI_API_KEY"):
            build_backend("openai", self._config(tmp_path))

    def test_model_comes_from_config(self, tmp_path):
        config = self._config(tmp_path, openai_api_key="sk")
        config["backends"]["openai"]["model"] = "gpt-4.1-mini"
        with patch("prquorum_core.providers.openai.OpenAI"):
            backend = build_backend("openai", config)
        assert backend.model == "gpt-4.1-mini"

    def test_secondaries_without_keys_are_skipped(self, tmp_path):
        config = self._config(tmp_path, anthropic_api_key="ak", gemini_api_key="gk")
        with (
            patch("prquorum_core.providers.anthropic.Anthropic"),
            patch("prquorum_core.providers.gemini.genai.Client"),
        ):
            backends = build_backends(config)
        assert list(backends) == ["anthropic", "gemini"]

    def test_primary_without_key_raises(self, tmp_path):
        with pytest.raises(ValueError, match="ANTHROPIC_API_KEY"):
            build_backends(self._config(tmp_path, openai_api_key="sk"))
