"""Unit tests for the OpenAI SDK-backed provider implementation."""
from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Iterable

import pytest

import notepilot.providers.openai_sdk as openai_sdk
from notepilot.errors import NPProviderError
from notepilot.providers import OpenAISDKProvider, ProviderSettings


class StubAPIStatusError(Exception):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class StubStream:
    def __init__(self, events: Iterable[Any]) -> None:
        self._events = list(events)
        self.closed = False

    def __iter__(self):
        return iter(self._events)

    def close(self) -> None:
        self.closed = True


class StubChatCompletions:
    def __init__(self, *, create_result: Any = None, stream_events: Iterable[Any] = (), create_error: Exception | None = None) -> None:
        self._create_result = create_result
        self._stream_events = list(stream_events)
        self._create_error = create_error
        self.calls: list[dict[str, Any]] = []
        self.streams: list[StubStream] = []

    def create(self, *, stream: bool = False, **kwargs: Any) -> Any:
        self.calls.append({"stream": stream, **kwargs})
        if self._create_error is not None:
            raise self._create_error
        if stream:
            self.streams.append(StubStream(self._stream_events))
            return self.streams[-1]
        return self._create_result


class StubOpenAIClient:
    def __init__(self, chat_completions: StubChatCompletions, models: list[Any] | None = None) -> None:
        self.chat = SimpleNamespace(completions=chat_completions)
        self.models = SimpleNamespace(list=lambda: SimpleNamespace(data=list(models or [])))
        self.kwargs: dict[str, Any] = {}
        self.closed = False

    def close(self) -> None:
        self.closed = True


def _install_stub_client(monkeypatch: pytest.MonkeyPatch, client: StubOpenAIClient) -> StubOpenAIClient:
    def _factory(**kwargs: Any) -> StubOpenAIClient:
        client.kwargs = kwargs
        return client

    monkeypatch.setattr(openai_sdk, "_OpenAIClient", _factory)
    monkeypatch.setattr(openai_sdk, "APIStatusError", StubAPIStatusError)
    return client


def _provider_settings() -> ProviderSettings:
    return ProviderSettings(
        base_url="https://api.openai.com/v1",
        api_key="token",
        model="gpt-4o",
        user_agent="notepilot-test",
    )


def _chat_response(text: str) -> dict[str, Any]:
    return {"choices": [{"message": {"content": text}}]}


def test_complete_collapses_choices(monkeypatch: pytest.MonkeyPatch) -> None:
    chat = StubChatCompletions(create_result=_chat_response("pong"))
    client = _install_stub_client(monkeypatch, StubOpenAIClient(chat))

    provider = OpenAISDKProvider(_provider_settings())

    assert provider.complete("ping") == "pong"
    assert chat.calls[0]["stream"] is False
    assert chat.calls[0]["model"] == "gpt-4o"
    assert client.kwargs["default_headers"] == {"User-Agent": "notepilot-test"}


def test_iterate_yields_deltas_and_closes_stream(monkeypatch: pytest.MonkeyPatch) -> None:
    events = [
        {"choices": [{"delta": {"content": "Hel"}}]},
        SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content="lo"))]),
        {"choices": [{"delta": {"content": None}}]},
    ]
    chat = StubChatCompletions(stream_events=events)
    _install_stub_client(monkeypatch, StubOpenAIClient(chat))

    provider = OpenAISDKProvider(_provider_settings())

    assert list(provider.iterate("hi")) == ["Hel", "lo"]
    assert chat.streams[0].closed


def test_status_errors_are_mapped(monkeypatch: pytest.MonkeyPatch) -> None:
    chat = StubChatCompletions(create_error=StubAPIStatusError(401, "Incorrect API key provided"))
    _install_stub_client(monkeypatch, StubOpenAIClient(chat))

    provider = OpenAISDKProvider(_provider_settings())

    with pytest.raises(NPProviderError) as excinfo:
        provider.complete("hi")
    assert excinfo.value.status_code == 401
    assert str(excinfo.value) == "Incorrect API key provided"

    with pytest.raises(NPProviderError):
        list(provider.iterate("hi"))


def test_list_models_and_close(monkeypatch: pytest.MonkeyPatch) -> None:
    models = [{"id": "gpt-4o", "owned_by": "openai"}, SimpleNamespace(id="gpt-4o-mini", owned_by="system")]
    client = _install_stub_client(monkeypatch, StubOpenAIClient(StubChatCompletions(), models))

    provider = OpenAISDKProvider(_provider_settings())

    assert provider.list_models() == [
        {"id": "gpt-4o", "owned_by": "openai"},
        {"id": "gpt-4o-mini", "owned_by": "system"},
    ]
    provider.close()
    assert client.closed
