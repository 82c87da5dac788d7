"""Decoding of persisted blob payloads.

Blob payloads in the event log have been written in several encodings over
time: raw UTF-8 bytes, base64 text (the usual transport encoding) and plain
JSON text. The raw transport value is first classified into one of the
variants below, then decoded. Decoding never raises; a record that cannot be
decoded contributes no content.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from typing import Any, Union

from ..cli_shared import _clip, _log_json
from .models import BlobData

logger = logging.getLogger(__name__)

CONTENT_MESSAGE_TYPE = "content"

_LOG_SAMPLE_CHARS = 100


@dataclass(frozen=True)
class BinaryBlob:
    data: bytes


@dataclass(frozen=True)
class TextBlob:
    text: str


@dataclass(frozen=True)
class UnsupportedBlob:
    type_name: str


RawBlob = Union[BinaryBlob, TextBlob, UnsupportedBlob]


def classify_blob(raw: Any) -> RawBlob:
    if isinstance(raw, (bytes, bytearray)):
        return BinaryBlob(bytes(raw))
    if isinstance(raw, memoryview):
        return BinaryBlob(raw.tobytes())
    if isinstance(raw, str):
        return TextBlob(raw)
    return UnsupportedBlob(type(raw).__name__)


def _parse_json(text: str) -> Any:
    return json.loads(text)


def _normalize_base64(text: str) -> str:
    # MIME line wrapping and the URL-safe alphabet are both in use.
    cleaned = "".join(text.split()).replace("-", "+").replace("_", "/")
    return cleaned + "=" * (-len(cleaned) % 4)


def _decode_text(text: str) -> Any:
    try:
        decoded = base64.b64decode(_normalize_base64(text), validate=True).decode("utf-8")
        return _parse_json(decoded)
    except (binascii.Error, UnicodeDecodeError, ValueError, RecursionError):
        pass
    _log_json(logger, logging.DEBUG, "blob_not_base64", sample=_clip(text, _LOG_SAMPLE_CHARS))
    return _parse_json(text)


def _to_blob_data(parsed: Any) -> BlobData | None:
    if not isinstance(parsed, dict):
        _log_json(logger, logging.WARNING, "blob_not_object", value_type=type(parsed).__name__)
        return None
    message_type = parsed.get("messageType")
    if message_type != CONTENT_MESSAGE_TYPE:
        _log_json(logger, logging.DEBUG, "blob_discarded", message_type=str(message_type))
        return None
    content = parsed.get("content")
    blocks = list(content) if isinstance(content, list) else []
    return BlobData(role=str(parsed.get("role") or ""), content=blocks, message_type=CONTENT_MESSAGE_TYPE)


def decode_blob(blob: RawBlob) -> BlobData | None:
    try:
        if isinstance(blob, BinaryBlob):
            parsed = _parse_json(blob.data.decode("utf-8"))
        elif isinstance(blob, TextBlob):
            parsed = _decode_text(blob.text)
        else:
            _log_json(logger, logging.WARNING, "blob_type_unsupported", type=blob.type_name)
            return None
    except (UnicodeDecodeError, ValueError, RecursionError) as e:
        sample = blob.text if isinstance(blob, TextBlob) else repr(blob.data[:_LOG_SAMPLE_CHARS])
        _log_json(
            logger,
            logging.WARNING,
            "blob_parse_failed",
            error=str(e),
            sample=_clip(sample, _LOG_SAMPLE_CHARS),
        )
        return None
    return _to_blob_data(parsed)


def decode_payload_blob(raw: Any) -> BlobData | None:
    return decode_blob(classify_blob(raw))
