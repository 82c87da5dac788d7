from __future__ import annotations

import base64
import json
import logging

import pytest

from agentcore_chat.memory import (
    BinaryBlob,
    TextBlob,
    UnsupportedBlob,
    classify_blob,
    decode_blob,
    decode_payload_blob,
)

RECORD = {
    "messageType": "content",
    "role": "assistant",
    "content": [{"type": "textBlock", "text": "héllo"}],
}


def test_classify_blob_variants() -> None:
    assert classify_blob(b"x") == BinaryBlob(b"x")
    assert classify_blob(bytearray(b"y")) == BinaryBlob(b"y")
    assert classify_blob(memoryview(b"z")) == BinaryBlob(b"z")
    assert classify_blob("t") == TextBlob("t")
    assert classify_blob({"a": 1}) == UnsupportedBlob("dict")
    assert classify_blob(12) == UnsupportedBlob("int")


@pytest.mark.parametrize(
    "raw",
    [
        json.dumps(RECORD).encode("utf-8"),
        base64.b64encode(json.dumps(RECORD).encode("utf-8")).decode("ascii"),
        json.dumps(RECORD),
    ],
    ids=["bytes", "base64", "plain"],
)
def test_every_encoding_decodes_to_the_same_record(raw) -> None:
    decoded = decode_payload_blob(raw)
    assert decoded is not None
    assert decoded.role == "assistant"
    assert decoded.message_type == "content"
    assert decoded.content == RECORD["content"]


def test_non_content_message_type_is_discarded() -> None:
    raw = json.dumps({"messageType": "toolState", "role": "assistant", "content": []})
    assert decode_payload_blob(raw) is None


def test_missing_message_type_is_discarded() -> None:
    assert decode_payload_blob(json.dumps({"role": "user", "content": []})) is None


def test_unsupported_blob_is_logged(caplog) -> None:
    caplog.set_level(logging.WARNING, logger="agentcore_chat.memory.payloads")
    assert decode_blob(UnsupportedBlob("dict")) is None
    assert json.loads(caplog.records[-1].getMessage())["event"] == "blob_type_unsupported"


def test_garbage_never_raises(caplog) -> None:
    caplog.set_level(logging.WARNING, logger="agentcore_chat.memory.payloads")
    assert decode_payload_blob("not json at all") is None
    assert decode_payload_blob(b"\xff\xfe\x00") is None
    assert decode_payload_blob(json.dumps([1, 2, 3])) is None
    events = [json.loads(r.getMessage())["event"] for r in caplog.records]
    assert events == ["blob_parse_failed", "blob_parse_failed", "blob_not_object"]


def test_base64_that_is_not_json_falls_back_to_plain_text() -> None:
    # "abcd" is valid base64 but decodes to non-UTF-8 bytes; the plain text is not JSON either.
    assert decode_payload_blob("abcd") is None


def test_non_list_content_becomes_empty() -> None:
    decoded = decode_payload_blob(json.dumps({"messageType": "content", "role": "user", "content": "x"}))
    assert decoded is not None
    assert decoded.content == []


def test_line_wrapped_base64_decodes() -> None:
    wrapped = base64.encodebytes(json.dumps(RECORD).encode("utf-8")).decode("ascii")
    assert "\n" in wrapped.strip()
    decoded = decode_payload_blob(wrapped)
    assert decoded is not None
    assert decoded.content == RECORD["content"]


def test_url_safe_base64_decodes() -> None:
    record = {"messageType": "content", "role": "user", "content": [{"type": "textBlock", "text": "~~~~~~"}]}
    encoded = base64.urlsafe_b64encode(json.dumps(record).encode("utf-8")).decode("ascii")
    assert "-" in encoded
    decoded = decode_payload_blob(encoded)
    assert decoded is not None
    assert decoded.content == record["content"]
    assert decode_payload_blob(encoded.rstrip("=")) == decoded


def test_deeply_nested_blob_is_dropped(caplog) -> None:
    caplog.set_level(logging.WARNING, logger="agentcore_chat.memory.payloads")
    deep = '{"messageType":"content","role":"user","content":' + "[" * 100000 + "]" * 100000 + "}"
    assert decode_payload_blob(deep) is None
    assert decode_payload_blob(deep.encode("utf-8")) is None
    events = [json.loads(r.getMessage())["event"] for r in caplog.records]
    assert events == ["blob_parse_failed", "blob_parse_failed"]
