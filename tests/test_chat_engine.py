"""Tests for stream normalisation, failover and the chat turn."""

import io
import json
from types import SimpleNamespace
from unittest.mock import Mock

import pytest
import requests

from vizchat.client.chat_engine import (
    ChatEngine,
    StreamEvent,
    iter_openai_events,
    iter_sse_events,
    parse_sources,
)
from vizchat.client.config import ChatConfig
from vizchat.client.history_manager import HistoryManager
from vizchat.errors import StreamTransportError
from vizchat.models import Message, Role
from vizchat.streaming import TokenAccumulator


def data(obj) -> str:
    return "data: " + json.dumps(obj)


def chunk(content):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


class FakeStream(list):
    closed = False

    def close(self):
        self.closed = True


class CollectingHandler:
    """Consumes the event stream the way ResponseHandler does, without a display."""

    def __init__(self):
        self.titles = []

    def handle_stream(self, events, title=None):
        self.titles.append(title)
        message = Message(role=Role.MODEL)
        accumulator = TokenAccumulator(message)
        for event in events:
            accumulator.feed(event.text, reset=event.reset)
            accumulator.add_sources(event.sources)
        return accumulator.finish()


def sse_response(lines, status_code=200):
    response = Mock(status_code=status_code)
    response.iter_lines.return_value = (line.encode("utf-8") for line in lines)
    return response


def raw_sse_response(body: bytes):
    """A real requests.Response as the HTTP adapter builds it for an event stream."""
    response = requests.Response()
    response.status_code = 200
    response.headers["Content-Type"] = "text/event-stream"
    response.encoding = requests.utils.get_encoding_from_headers(response.headers)
    response.raw = io.BytesIO(body)
    return response


def make_engine(session=None, openai_client=None, **overrides):
    options = {"transport": "sse", "model": "primary"}
    options.update(overrides)
    config = ChatConfig(**options)
    history = HistoryManager(config, console=Mock())
    return ChatEngine(config, history, CollectingHandler(), session=session or Mock(),
                      openai_client=openai_client)


class TestIterSseEvents:

    def test_text_reset_and_sources(self):
        lines = [
            data({"text": "Hel"}),
            "",
            ": keep-alive",
            data({"text": "lo"}),
            data({"reset": True}),
            data({"sources": [{"title": "Wiki", "uri": "https://en.wikipedia.org"}, {"title": "no uri"}]}),
        ]

        events = list(iter_sse_events(lines))

        assert [e.text for e in events] == ["Hel", "lo", "", ""]
        assert events[2].reset
        assert events[3].sources[0].uri == "https://en.wikipedia.org"
        assert len(events[3].sources) == 1

    def test_openai_style_chunks(self):
        lines = [data({"choices": [{"delta": {"content": "Hi"}}]}), data({"choices": [{"delta": {}}]})]

        assert [e.text for e in iter_sse_events(lines)] == ["Hi"]

    def test_done_ends_stream(self):
        lines = [data({"text": "a"}), "data: [DONE]", data({"text": "b"})]

        assert [e.text for e in iter_sse_events(lines)] == ["a"]

    def test_bytes_and_bad_json_lines(self):
        lines = [b'data: {"text": "\xc3\xa9"}', "data: {broken", "data: [1, 2]", data({"text": "!"})]

        assert [e.text for e in iter_sse_events(lines)] == ["é", "!"]

    def test_error_event_raises(self):
        lines = [data({"text": "a"}), data({"error": "quota exceeded"})]
        events = iter_sse_events(lines)

        assert next(events).text == "a"
        with pytest.raises(StreamTransportError, match="quota exceeded"):
            next(events)


class TestIterOpenAIEvents:

    def test_empty_deltas_skipped(self):
        stream = [chunk("Hello"), chunk(None), SimpleNamespace(choices=[]), chunk(" world")]

        assert [e.text for e in iter_openai_events(stream)] == ["Hello", " world"]

    def test_parse_sources_default_title(self):
        sources = parse_sources([{"uri": "https://a.example"}, "junk", None])

        assert [(s.title, s.uri) for s in sources] == [("Source", "https://a.example")]


class TestFailover:

    def test_next_attempt_resets_partial_text(self):
        engine = make_engine(fallback_models=["backup"])
        calls = []

        def attempt(model, *args):
            calls.append(model)
            if model == "primary":
                yield StreamEvent(text="partial")
                raise StreamTransportError("connection dropped")
            yield StreamEvent(text="full")
            yield StreamEvent(text=" answer")

        engine._attempt = attempt
        events = list(engine.stream_events("hi", []))

        assert calls == ["primary", "backup"]
        assert [(e.text, e.reset) for e in events] == [("partial", False), ("full", True), (" answer", False)]

    def test_no_reset_when_nothing_was_emitted(self):
        engine = make_engine(fallback_models=["backup"])

        def attempt(model, *args):
            if model == "primary":
                raise requests.exceptions.ConnectionError("refused")
            yield StreamEvent(text="ok")

        engine._attempt = attempt

        assert [(e.text, e.reset) for e in engine.stream_events("hi", [])] == [("ok", False)]

    def test_all_attempts_failed(self):
        engine = make_engine(fallback_models=["backup"])

        def attempt(model, *args):
            raise StreamTransportError(f"{model} is down")
            yield

        engine._attempt = attempt

        with pytest.raises(StreamTransportError, match="All attempts failed. Last error: backup is down"):
            list(engine.stream_events("hi", []))

    def test_server_default_model_when_none_configured(self):
        engine = make_engine(model=None)
        seen = []

        def attempt(model, *args):
            seen.append(model)
            yield StreamEvent(text="ok")

        engine._attempt = attempt
        list(engine.stream_events("hi", []))

        assert seen == [None]


class TestSseTransport:

    def test_posts_prompt_and_closes_response(self):
        session = Mock()
        response = sse_response([data({"text": "4"})])
        session.post.return_value = response
        engine = make_engine(session=session, language="ko")

        events = list(engine.stream_events("2+2?", [{"role": "user", "content": "hi"}], "ctx"))

        assert [e.text for e in events] == ["4"]
        url = session.post.call_args[0][0]
        payload = session.post.call_args[1]["json"]
        assert url == "http://localhost:8000/api/chat"
        assert payload == {
            "prompt": "2+2?",
            "history": [{"role": "user", "content": "hi"}],
            "language": "ko",
            "webContent": "ctx",
            "model": "primary",
        }
        assert session.post.call_args[1]["stream"] is True
        response.close.assert_called_once()

    def test_http_error_with_json_body(self):
        session = Mock()
        response = sse_response([], status_code=503)
        response.json.return_value = {"error": "overloaded"}
        session.post.return_value = response
        engine = make_engine(session=session)

        with pytest.raises(StreamTransportError, match="HTTP 503 - overloaded"):
            list(engine.stream_events("hi", []))
        response.close.assert_called_once()

    def test_http_error_with_non_json_body(self):
        session = Mock()
        response = sse_response([], status_code=502)
        response.json.side_effect = ValueError("not json")
        response.text = "Bad Gateway"
        session.post.return_value = response
        engine = make_engine(session=session)

        with pytest.raises(StreamTransportError, match="HTTP 502 - Bad Gateway"):
            list(engine.stream_events("hi", []))

    def test_utf8_stream_without_charset(self):
        body = 'data: {"text": "안녕 café"}\n\ndata: {"text": "하세요"}\n\n'.encode("utf-8")
        response = raw_sse_response(body)
        session = Mock()
        session.post.return_value = response
        engine = make_engine(session=session)

        text = "".join(e.text for e in engine.stream_events("hi", []))

        assert response.encoding == "ISO-8859-1"
        assert text == "안녕 café하세요"

    def test_closing_events_closes_response(self):
        session = Mock()
        response = sse_response(iter([data({"text": "a"}), data({"text": "b"})]))
        session.post.return_value = response
        engine = make_engine(session=session)

        events = engine.stream_events("hi", [])
        assert next(events).text == "a"
        events.close()

        response.close.assert_called_once()


class TestOpenAITransport:

    def test_streaming_completion(self):
        client = Mock()
        stream = FakeStream([chunk("Hi"), chunk(" there")])
        client.chat.completions.create.return_value = stream
        engine = make_engine(openai_client=client, transport="openai", temperature=0.2)

        events = list(engine.stream_events("hello", []))

        assert [e.text for e in events] == ["Hi", " there"]
        kwargs = client.chat.completions.create.call_args[1]
        assert kwargs["model"] == "primary"
        assert kwargs["stream"] is True
        assert kwargs["temperature"] == 0.2
        assert kwargs["messages"][0]["role"] == "system"
        assert kwargs["messages"][-1] == {"role": "user", "content": "hello"}
        assert stream.closed

    def test_non_streaming_completion(self):
        client = Mock()
        client.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="Done."))]
        )
        engine = make_engine(openai_client=client, transport="openai", stream=False)

        assert [e.text for e in engine.stream_events("hello", [])] == ["Done."]
        assert "stream" not in client.chat.completions.create.call_args[1]


class TestChatTurn:

    def test_build_messages(self):
        engine = make_engine(language="fr")

        messages = engine.build_messages("q", [{"role": "assistant", "content": "a"}], "page text")

        assert "Respond in French." in messages[0]["content"]
        assert messages[0]["content"].endswith("[PROVIDED_SOURCE_TEXT]\npage text")
        assert '{"smiles": "CCO", "name": "Ethanol"}' in messages[0]["content"]
        assert messages[1:] == [{"role": "assistant", "content": "a"}, {"role": "user", "content": "q"}]

    def test_chat_records_both_turns(self):
        session = Mock()
        session.post.side_effect = [
            sse_response([data({"text": "Paris"}), data({"sources": [{"uri": "https://x.example"}]})]),
            sse_response([data({"text": "About 2.1 million"})]),
        ]
        engine = make_engine(session=session)

        first = engine.chat("Capital of France?")
        engine.chat("Population?")

        assert first.content == "Paris"
        assert first.is_final
        assert [s.uri for s in first.grounding_sources] == ["https://x.example"]
        history = engine.history_manager.get_history()
        assert [(m.role, m.content) for m in history] == [
            (Role.USER, "Capital of France?"),
            (Role.MODEL, "Paris"),
            (Role.USER, "Population?"),
            (Role.MODEL, "About 2.1 million"),
        ]
        second_payload = session.post.call_args_list[1][1]["json"]
        assert second_payload["history"] == [
            {"role": "user", "content": "Capital of France?"},
            {"role": "assistant", "content": "Paris"},
        ]
        assert engine.response_handler.titles == ["primary", "primary"]

    def test_chat_uses_context_builder(self):
        session = Mock()
        session.post.return_value = sse_response([data({"text": "Summary"})])
        engine = make_engine(session=session)
        engine.context_builder = Mock()
        engine.context_builder.build.return_value = "[URL_CONTENT]\nbody"

        engine.chat("Summarise https://example.com")

        engine.context_builder.build.assert_called_once()
        assert session.post.call_args[1]["json"]["webContent"] == "[URL_CONTENT]\nbody"
