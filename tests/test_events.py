from __future__ import annotations

from agentcore_chat.streaming import (
    AfterModelCallEvent,
    ContentBlockDeltaEvent,
    ContentBlockStartEvent,
    ServerCompletionEvent,
    ServerErrorEvent,
    UnknownStreamEvent,
    parse_stream_event,
)


def test_delta_event() -> None:
    raw = {"type": "modelContentBlockDeltaEvent", "delta": {"type": "textDelta", "text": "Hel"}}
    event = parse_stream_event(raw)
    assert isinstance(event, ContentBlockDeltaEvent)
    assert event.delta_type == "textDelta"
    assert event.text == "Hel"
    assert event.raw is raw


def test_start_event_with_tool_use() -> None:
    event = parse_stream_event(
        {
            "type": "modelContentBlockStartEvent",
            "start": {"type": "toolUseStart", "name": "search", "toolUseId": "tu-1"},
        }
    )
    assert isinstance(event, ContentBlockStartEvent)
    assert (event.start_type, event.tool_name, event.tool_use_id) == ("toolUseStart", "search", "tu-1")


def test_after_model_call_keeps_text_parts_only() -> None:
    event = parse_stream_event(
        {
            "type": "afterModelCallEvent",
            "stopData": {
                "message": {
                    "type": "message",
                    "role": "assistant",
                    "content": [
                        {"type": "textBlock", "text": "answer"},
                        {"type": "toolUseBlock", "name": "x"},
                        "junk",
                    ],
                },
                "stopReason": "endTurn",
            },
        }
    )
    assert isinstance(event, AfterModelCallEvent)
    assert event.stop_reason == "endTurn"
    assert event.message is not None
    assert event.message.text_parts() == [{"type": "textBlock", "text": "answer"}]


def test_after_model_call_without_message() -> None:
    event = parse_stream_event({"type": "afterModelCallEvent"})
    assert isinstance(event, AfterModelCallEvent)
    assert event.message is None
    assert event.stop_reason is None


def test_completion_metadata() -> None:
    event = parse_stream_event(
        {"type": "serverCompletionEvent", "metadata": {"requestId": "r1", "sessionId": "s1"}}
    )
    assert isinstance(event, ServerCompletionEvent)
    assert event.request_id == "r1"
    assert event.session_id == "s1"


def test_server_error_defaults_message() -> None:
    event = parse_stream_event({"type": "serverErrorEvent", "error": {"requestId": "r9"}})
    assert isinstance(event, ServerErrorEvent)
    assert event.message == "unknown error from agent"
    assert event.request_id == "r9"


def test_unknown_type_is_preserved() -> None:
    event = parse_stream_event({"type": "beforeToolCallEvent", "tool": "x"})
    assert isinstance(event, UnknownStreamEvent)
    assert event.type == "beforeToolCallEvent"
    assert event.get("tool") == "x"


def test_non_object_values_are_rejected() -> None:
    assert parse_stream_event([1, 2]) is None
    assert parse_stream_event("text") is None
