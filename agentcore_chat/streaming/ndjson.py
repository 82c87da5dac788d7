from __future__ import annotations

import codecs
import json
import logging
from typing import Any

from ..cli_shared import _clip, _log_json

logger = logging.getLogger(__name__)

_LOG_SAMPLE_CHARS = 200


class ChunkDecoder:
    """Turns arbitrarily split NDJSON chunks into parsed JSON values.

    Complete lines are parsed as they arrive; the trailing partial line is
    held until the next chunk or :meth:`flush`. Lines that fail to parse are
    logged and dropped, so a single bad line never stops the stream.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def pending(self) -> str:
        return self._buffer

    def feed(self, chunk: bytes | bytearray | str) -> list[Any]:
        if isinstance(chunk, str):
            text = chunk
        else:
            text = self._utf8.decode(bytes(chunk))
        if not text:
            return []
        self._buffer += text
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        return self._parse_lines(lines, source="line")

    def flush(self) -> list[Any]:
        tail = self._utf8.decode(b"", final=True)
        remainder = self._buffer + tail
        self._buffer = ""
        if not remainder.strip():
            return []
        return self._parse_lines([remainder], source="final_buffer")

    def _parse_lines(self, lines: list[str], *, source: str) -> list[Any]:
        out: list[Any] = []
        for line in lines:
            trimmed = line.strip()
            if not trimmed:
                continue
            try:
                out.append(json.loads(trimmed))
            except (ValueError, RecursionError) as e:
                _log_json(
                    logger,
                    logging.WARNING,
                    "ndjson_parse_failed",
                    source=source,
                    error=str(e),
                    line=_clip(trimmed, _LOG_SAMPLE_CHARS),
                )
        return out
