from .content_blocks import image_mime_type, map_content_blocks
from .models import (
    BlobData,
    ConversationMessage,
    DeleteSessionResult,
    ImageContent,
    ImageData,
    MemoryRecord,
    MemoryRecordList,
    MessageContent,
    RawEventRecord,
    SessionSummary,
    TextContent,
    ToolResult,
    ToolResultContent,
    ToolUse,
    ToolUseContent,
)
from .payloads import BinaryBlob, TextBlob, UnsupportedBlob, classify_blob, decode_blob, decode_payload_blob
from .service import MemoryService, create_memory_service, memory_namespace

__all__ = [
    "BinaryBlob",
    "BlobData",
    "ConversationMessage",
    "DeleteSessionResult",
    "ImageContent",
    "ImageData",
    "MemoryRecord",
    "MemoryRecordList",
    "MemoryService",
    "MessageContent",
    "RawEventRecord",
    "SessionSummary",
    "TextBlob",
    "TextContent",
    "ToolResult",
    "ToolResultContent",
    "ToolUse",
    "ToolUseContent",
    "UnsupportedBlob",
    "classify_blob",
    "create_memory_service",
    "decode_blob",
    "decode_payload_blob",
    "image_mime_type",
    "map_content_blocks",
    "memory_namespace",
]
