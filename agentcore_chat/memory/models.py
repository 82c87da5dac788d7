from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Union

MessageType = Literal["user", "assistant"]
ToolStatus = Literal["pending", "running", "completed", "error"]


@dataclass(frozen=True)
class TextContent:
    text: str
    type: str = "text"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "text": self.text}


@dataclass(frozen=True)
class ToolUse:
    id: str
    name: str
    input: Any
    status: ToolStatus = "completed"
    original_tool_use_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "input": self.input,
            "status": self.status,
        }
        if self.original_tool_use_id is not None:
            out["originalToolUseId"] = self.original_tool_use_id
        return out


@dataclass(frozen=True)
class ToolUseContent:
    tool_use: ToolUse
    type: str = "toolUse"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "toolUse": self.tool_use.to_dict()}


@dataclass(frozen=True)
class ToolResult:
    tool_use_id: str
    content: str
    is_error: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"toolUseId": self.tool_use_id, "content": self.content, "isError": self.is_error}


@dataclass(frozen=True)
class ToolResultContent:
    tool_result: ToolResult
    type: str = "toolResult"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "toolResult": self.tool_result.to_dict()}


@dataclass(frozen=True)
class ImageData:
    base64: str
    mime_type: str

    def to_dict(self) -> dict[str, Any]:
        return {"base64": self.base64, "mimeType": self.mime_type}


@dataclass(frozen=True)
class ImageContent:
    image: ImageData
    type: str = "image"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "image": self.image.to_dict()}


MessageContent = Union[TextContent, ToolUseContent, ToolResultContent, ImageContent]


@dataclass(frozen=True)
class ConversationMessage:
    id: str
    type: MessageType
    contents: list[MessageContent]
    timestamp: str

    def first_text(self) -> str:
        for content in self.contents:
            if isinstance(content, TextContent):
                return content.text
        return ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "contents": [c.to_dict() for c in self.contents],
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class BlobData:
    role: str
    content: list[Any]
    message_type: str = "content"


@dataclass(frozen=True)
class ConversationalItem:
    role: str
    text: str


@dataclass(frozen=True)
class BlobItem:
    blob: Any


@dataclass(frozen=True)
class UnrecognizedItem:
    keys: tuple[str, ...]


PayloadItem = Union[ConversationalItem, BlobItem, UnrecognizedItem]


@dataclass(frozen=True)
class RawEventRecord:
    event_id: str | None
    event_timestamp: Any
    payload: list[PayloadItem] = field(default_factory=list)


@dataclass(frozen=True)
class SessionSummary:
    session_id: str
    title: str
    last_message: str
    message_count: int
    created_at: str
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "title": self.title,
            "lastMessage": self.last_message,
            "messageCount": self.message_count,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass(frozen=True)
class MemoryRecord:
    record_id: str
    namespace: str
    content: str
    created_at: str
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "recordId": self.record_id,
            "namespace": self.namespace,
            "content": self.content,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass(frozen=True)
class MemoryRecordList:
    records: list[MemoryRecord]
    next_token: str | None = None


@dataclass(frozen=True)
class DeleteSessionResult:
    session_id: str
    deleted: int
    failed: int

    def to_dict(self) -> dict[str, Any]:
        # Per-event failures are logged; the batch itself always succeeds.
        return {"sessionId": self.session_id, "deleted": self.deleted, "failed": self.failed, "ok": True}
