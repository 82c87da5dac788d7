from __future__ import annotations

import json
import logging

from agentcore_chat.memory import (
    ImageContent,
    TextContent,
    ToolResultContent,
    ToolUseContent,
    image_mime_type,
    map_content_blocks,
)


def test_maps_every_supported_block_in_order() -> None:
    contents = map_content_blocks(
        [
            {"type": "textBlock", "text": "Looking it up"},
            {"type": "toolUseBlock", "name": "search", "toolUseId": "tu-1", "input": {"q": "x"}},
            {"type": "toolResultBlock", "toolUseId": "tu-1", "content": [{"text": "r"}], "status": "error"},
            {"type": "imageBlock", "base64": "iVBOR", "format": "JPG"},
        ]
    )

    assert [type(c) for c in contents] == [TextContent, ToolUseContent, ToolResultContent, ImageContent]
    assert contents[1].to_dict() == {
        "type": "toolUse",
        "toolUse": {
            "id": "tu-1",
            "name": "search",
            "input": {"q": "x"},
            "status": "completed",
            "originalToolUseId": "tu-1",
        },
    }
    assert contents[2].to_dict() == {
        "type": "toolResult",
        "toolResult": {"toolUseId": "tu-1", "content": '[{"text": "r"}]', "isError": True},
    }
    assert contents[3].to_dict() == {"type": "image", "image": {"base64": "iVBOR", "mimeType": "image/jpeg"}}


def test_string_tool_result_is_kept_verbatim() -> None:
    (content,) = map_content_blocks([{"type": "toolResultBlock", "toolUseId": "t", "content": "plain"}])
    assert content.tool_result.content == "plain"
    assert content.tool_result.is_error is False


def test_tool_use_with_empty_input_is_kept() -> None:
    (content,) = map_content_blocks([{"type": "toolUseBlock", "name": "now", "toolUseId": "t", "input": {}}])
    assert content.tool_use.input == {}


def test_incomplete_and_unknown_blocks_are_skipped(caplog) -> None:
    caplog.set_level(logging.WARNING, logger="agentcore_chat.memory.content_blocks")
    contents = map_content_blocks(
        [
            {"type": "toolUseBlock", "name": "search", "toolUseId": "tu-1"},
            {"type": "imageBlock", "base64": "abc"},
            {"type": "videoBlock"},
            "junk",
            {"type": "textBlock", "text": "kept"},
        ]
    )
    assert contents == [TextContent(text="kept")]
    events = [json.loads(r.getMessage())["event"] for r in caplog.records]
    assert events == [
        "content_block_incomplete",
        "content_block_incomplete",
        "content_block_unknown_type",
        "content_block_not_object",
    ]


def test_non_list_input_yields_nothing() -> None:
    assert map_content_blocks(None) == []
    assert map_content_blocks({"type": "textBlock"}) == []


def test_image_mime_types() -> None:
    assert image_mime_type("png") == "image/png"
    assert image_mime_type("jpeg") == "image/jpeg"
    assert image_mime_type("gif") == "image/gif"
    assert image_mime_type("webp") == "image/webp"
    assert image_mime_type("tiff") == "image/png"
    assert image_mime_type(None) == "image/png"
