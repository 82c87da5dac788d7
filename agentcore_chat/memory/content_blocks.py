from __future__ import annotations

import json
import logging
from typing import Any, Callable

from ..cli_shared import _log_json
from .models import (
    ImageContent,
    ImageData,
    MessageContent,
    TextContent,
    ToolResult,
    ToolResultContent,
    ToolUse,
    ToolUseContent,
)

logger = logging.getLogger(__name__)

IMAGE_MIME_TYPES = {
    "png": "image/png",
    "jpeg": "image/jpeg",
    "jpg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
}
DEFAULT_IMAGE_MIME_TYPE = "image/png"


def image_mime_type(fmt: Any) -> str:
    return IMAGE_MIME_TYPES.get(str(fmt or "").lower(), DEFAULT_IMAGE_MIME_TYPE)


def _text_block(block: dict[str, Any]) -> MessageContent | None:
    text = block.get("text")
    if not isinstance(text, str):
        return None
    return TextContent(text=text)


def _tool_use_block(block: dict[str, Any]) -> MessageContent | None:
    name = block.get("name")
    tool_use_id = block.get("toolUseId")
    if not name or not tool_use_id or block.get("input") is None:
        return None
    return ToolUseContent(
        tool_use=ToolUse(
            id=str(tool_use_id),
            name=str(name),
            input=block["input"],
            status="completed",
            original_tool_use_id=str(tool_use_id),
        )
    )


def _tool_result_block(block: dict[str, Any]) -> MessageContent | None:
    tool_use_id = block.get("toolUseId")
    if not tool_use_id:
        return None
    content = block.get("content")
    if not isinstance(content, str):
        content = json.dumps(content if content else {}, ensure_ascii=False, default=str)
    return ToolResultContent(
        tool_result=ToolResult(
            tool_use_id=str(tool_use_id),
            content=content,
            is_error=block.get("status") == "error",
        )
    )


def _image_block(block: dict[str, Any]) -> MessageContent | None:
    data = block.get("base64")
    fmt = block.get("format")
    if not data or not fmt:
        return None
    return ImageContent(image=ImageData(base64=str(data), mime_type=image_mime_type(fmt)))


_MAPPERS: dict[str, Callable[[dict[str, Any]], MessageContent | None]] = {
    "textBlock": _text_block,
    "toolUseBlock": _tool_use_block,
    "toolResultBlock": _tool_result_block,
    "imageBlock": _image_block,
}


def map_content_blocks(blocks: Any) -> list[MessageContent]:
    """Map persisted content blocks to message contents, preserving order.

    Unknown block types and blocks missing required fields are skipped with
    a warning. Never raises, and never returns more items than it was given.
    """
    if not isinstance(blocks, list):
        return []
    out: list[MessageContent] = []
    for index, block in enumerate(blocks):
        if not isinstance(block, dict):
            _log_json(logger, logging.WARNING, "content_block_not_object", index=index)
            continue
        block_type = str(block.get("type") or "")
        mapper = _MAPPERS.get(block_type)
        if mapper is None:
            _log_json(logger, logging.WARNING, "content_block_unknown_type", index=index, type=block_type)
            continue
        content = mapper(block)
        if content is None:
            _log_json(logger, logging.WARNING, "content_block_incomplete", index=index, type=block_type)
            continue
        out.append(content)
    return out
