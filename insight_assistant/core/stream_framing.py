"""Marker protocol for the hybrid text + metadata chat stream.

Wire format per response::

    <prose bytes ...>__METADATA__<json>__END_METADATA__

Neither marker may occur anywhere else on the wire:

- prose from the model passes through ``ProseGuard``, which rewrites any
  marker into its markdown-escaped form (renders identically);
- the JSON payload emits the first underscore of an embedded marker as the
  ``\\u005f`` escape, which decodes to the same string.

``MetadataStreamParser`` is the client half: it accepts chunks split at any
byte and releases prose as soon as it cannot be part of the open marker.
"""

import codecs
import json
from dataclasses import dataclass
from typing import Any

METADATA_OPEN = "__METADATA__"
METADATA_CLOSE = "__END_METADATA__"
MARKERS = (METADATA_OPEN, METADATA_CLOSE)

_PROSE_ESCAPES = {marker: marker.replace("_", "\\_") for marker in MARKERS}


def _contains_marker(text: str) -> bool:
    return any(marker in text for marker in MARKERS)


def _partial_marker_suffix(text: str, markers: tuple[str, ...] = MARKERS) -> int:
    """Length of the longest suffix of ``text`` that is a proper prefix of a marker."""
    longest = 0
    for marker in markers:
        for size in range(min(len(marker) - 1, len(text)), longest, -1):
            if text.endswith(marker[:size]):
                longest = size
                break
    return longest


def escape_prose(text: str) -> str:
    """Rewrite every marker occurrence so the text can never open or close a frame."""
    while _contains_marker(text):
        for marker, escaped in _PROSE_ESCAPES.items():
            text = text.replace(marker, escaped)
    return text


class ProseGuard:
    """Streaming marker escaper for model-generated text.

    Holds back only a trailing fragment that could still grow into a marker,
    so every other character is released on the call that delivered it.
    """

    def __init__(self) -> None:
        self._pending = ""

    def feed(self, text: str) -> str:
        buffer = escape_prose(self._pending + text)
        hold = _partial_marker_suffix(buffer)
        if hold:
            self._pending = buffer[-hold:]
            return buffer[:-hold]
        self._pending = ""
        return buffer

    def flush(self) -> str:
        """Release the held fragment with its underscores escaped.

        The fragment is a marker prefix and the frame that follows it starts
        with a marker, so releasing it verbatim could complete one.
        """
        remainder, self._pending = self._pending, ""
        return remainder.replace("_", "\\_")


def encode_metadata_payload(payload: dict[str, Any]) -> str:
    """Serialize a payload to JSON that cannot contain either marker."""
    body = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    while _contains_marker(body):
        for marker in MARKERS:
            body = body.replace(marker, "\\u005f" + marker[1:])
    return body


def encode_metadata_frame(payload: dict[str, Any]) -> str:
    """Open marker, JSON body and close marker as one string."""
    return f"{METADATA_OPEN}{encode_metadata_payload(payload)}{METADATA_CLOSE}"


# =============================================================================
# Client-side parser
# =============================================================================


@dataclass
class ParsedStream:
    """Reassembled response."""

    text: str = ""
    metadata: dict[str, Any] | None = None
    raw_metadata: str | None = None
    truncated: bool = False


class MetadataStreamParser:
    """Incremental decoder for chunked responses.

    ``feed`` returns the prose that is safe to display; ``finish`` returns the
    complete ParsedStream. A response that opens a frame without closing it is
    reported as truncated.
    """

    def __init__(self) -> None:
        self._state = "text"
        self._buffer = ""
        self._text_parts: list[str] = []
        self._result = ParsedStream()
        self._decoder = codecs.getincrementaldecoder("utf-8")()

    def feed(self, chunk: str | bytes) -> str:
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        self._buffer += chunk
        released = ""

        if self._state == "text":
            start = self._buffer.find(METADATA_OPEN)
            if start == -1:
                hold = _partial_marker_suffix(self._buffer, (METADATA_OPEN,))
                cut = len(self._buffer) - hold
                released, self._buffer = self._buffer[:cut], self._buffer[cut:]
            else:
                released = self._buffer[:start]
                self._buffer = self._buffer[start + len(METADATA_OPEN) :]
                self._state = "metadata"

        if self._state == "metadata":
            end = self._buffer.find(METADATA_CLOSE)
            if end != -1:
                raw = self._buffer[:end]
                self._result.raw_metadata = raw
                self._result.metadata = json.loads(raw)
                self._buffer = self._buffer[end + len(METADATA_CLOSE) :]
                self._state = "closed"

        if self._state == "closed" and self._buffer:
            released += self._buffer
            self._buffer = ""

        if released:
            self._text_parts.append(released)
        return released

    def finish(self) -> ParsedStream:
        tail = self._decoder.decode(b"", final=True)
        if tail:
            self.feed(tail)
        if self._state == "metadata":
            self._result.truncated = True
        elif self._buffer:
            self._text_parts.append(self._buffer)
        self._buffer = ""
        self._result.text = "".join(self._text_parts)
        return self._result


def parse_stream(chunks: list[str | bytes]) -> ParsedStream:
    """Parse a fully received response split into arbitrary chunks."""
    parser = MetadataStreamParser()
    for chunk in chunks:
        parser.feed(chunk)
    return parser.finish()
