from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

CONTENT_BLOCK_DELTA = "modelContentBlockDeltaEvent"
CONTENT_BLOCK_START = "modelContentBlockStartEvent"
AFTER_MODEL_CALL = "afterModelCallEvent"
SERVER_COMPLETION = "serverCompletionEvent"
SERVER_ERROR = "serverErrorEvent"


@dataclass(frozen=True)
class AgentStreamEvent:
    type: str
    raw: dict[str, Any] = field(repr=False, compare=False)


@dataclass(frozen=True)
class ContentBlockDeltaEvent(AgentStreamEvent):
    delta_type: str = ""
    text: str | None = None


@dataclass(frozen=True)
class ContentBlockStartEvent(AgentStreamEvent):
    start_type: str = ""
    tool_name: str | None = None
    tool_use_id: str | None = None


@dataclass(frozen=True)
class StopMessage:
    type: str
    role: str
    content: list[dict[str, Any]]

    def text_parts(self) -> list[dict[str, str]]:
        parts: list[dict[str, str]] = []
        for item in self.content:
            text = item.get("text")
            if text is None:
                continue
            parts.append({"type": str(item.get("type") or ""), "text": str(text)})
        return parts


@dataclass(frozen=True)
class AfterModelCallEvent(AgentStreamEvent):
    message: StopMessage | None = None
    stop_reason: str | None = None


@dataclass(frozen=True)
class ServerCompletionEvent(AgentStreamEvent):
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def request_id(self) -> str:
        return str(self.metadata.get("requestId") or "")

    @property
    def session_id(self) -> str:
        return str(self.metadata.get("sessionId") or "")


@dataclass(frozen=True)
class ServerErrorEvent(AgentStreamEvent):
    message: str = ""
    request_id: str = ""


@dataclass(frozen=True)
class UnknownStreamEvent(AgentStreamEvent):
    def get(self, key: str, default: Any = None) -> Any:
        return self.raw.get(key, default)


def _as_dict(val: Any) -> dict[str, Any]:
    return val if isinstance(val, dict) else {}


def _opt_str(val: Any) -> str | None:
    return val if isinstance(val, str) else None


def _delta(obj: dict[str, Any]) -> AgentStreamEvent:
    delta = _as_dict(obj.get("delta"))
    return ContentBlockDeltaEvent(
        type=CONTENT_BLOCK_DELTA,
        raw=obj,
        delta_type=str(delta.get("type") or ""),
        text=_opt_str(delta.get("text")),
    )


def _start(obj: dict[str, Any]) -> AgentStreamEvent:
    start = _as_dict(obj.get("start"))
    return ContentBlockStartEvent(
        type=CONTENT_BLOCK_START,
        raw=obj,
        start_type=str(start.get("type") or ""),
        tool_name=_opt_str(start.get("name")),
        tool_use_id=_opt_str(start.get("toolUseId")),
    )


def _after_model_call(obj: dict[str, Any]) -> AgentStreamEvent:
    stop_data = _as_dict(obj.get("stopData"))
    message = None
    raw_message = stop_data.get("message")
    if isinstance(raw_message, dict):
        content = raw_message.get("content")
        message = StopMessage(
            type=str(raw_message.get("type") or ""),
            role=str(raw_message.get("role") or ""),
            content=[c for c in content if isinstance(c, dict)] if isinstance(content, list) else [],
        )
    stop_reason = _opt_str(obj.get("stopReason")) or _opt_str(stop_data.get("stopReason"))
    return AfterModelCallEvent(type=AFTER_MODEL_CALL, raw=obj, message=message, stop_reason=stop_reason)


def _completion(obj: dict[str, Any]) -> AgentStreamEvent:
    return ServerCompletionEvent(type=SERVER_COMPLETION, raw=obj, metadata=dict(_as_dict(obj.get("metadata"))))


def _server_error(obj: dict[str, Any]) -> AgentStreamEvent:
    err = obj.get("error")
    if isinstance(err, dict):
        message = str(err.get("message") or "")
        request_id = str(err.get("requestId") or "")
    else:
        message = str(err or "")
        request_id = ""
    return ServerErrorEvent(
        type=SERVER_ERROR,
        raw=obj,
        message=message or "unknown error from agent",
        request_id=request_id,
    )


_PARSERS: dict[str, Callable[[dict[str, Any]], AgentStreamEvent]] = {
    CONTENT_BLOCK_DELTA: _delta,
    CONTENT_BLOCK_START: _start,
    AFTER_MODEL_CALL: _after_model_call,
    SERVER_COMPLETION: _completion,
    SERVER_ERROR: _server_error,
}


def parse_stream_event(obj: Any) -> AgentStreamEvent | None:
    if not isinstance(obj, dict):
        return None
    event_type = str(obj.get("type") or "")
    parser = _PARSERS.get(event_type)
    if parser is None:
        return UnknownStreamEvent(type=event_type, raw=obj)
    return parser(obj)
