from .event_queue import EventQueue
from .events import (
    AfterModelCallEvent,
    AgentStreamEvent,
    ContentBlockDeltaEvent,
    ContentBlockStartEvent,
    ServerCompletionEvent,
    ServerErrorEvent,
    StopMessage,
    UnknownStreamEvent,
    parse_stream_event,
)
from .ndjson import ChunkDecoder

__all__ = [
    "AfterModelCallEvent",
    "AgentStreamEvent",
    "ChunkDecoder",
    "ContentBlockDeltaEvent",
    "ContentBlockStartEvent",
    "EventQueue",
    "ServerCompletionEvent",
    "ServerErrorEvent",
    "StopMessage",
    "UnknownStreamEvent",
    "parse_stream_event",
]
