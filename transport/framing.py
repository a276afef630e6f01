"""Length-prefixed JSON frames used by browser native messaging.

Each frame is a 4-byte little-endian unsigned length followed by that many
bytes of UTF-8 JSON.
"""
from __future__ import annotations

import json
import re
import struct
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from common.errors import ProtocolError

HEADER = struct.Struct("<I")
# Largest message a browser will send to a native host.
MAX_FRAME_LENGTH = 64 * 1024 * 1024

_REQUEST_ID = re.compile(rb'"requestId"\s*:\s*("(?:[^"\\]|\\.)*"|-?\d+)')


class DecoderState(Enum):
    AWAITING_LENGTH = "awaiting_length"
    AWAITING_BODY = "awaiting_body"


def encode_frame(message: Dict[str, Any]) -> bytes:
    body = json.dumps(message, ensure_ascii=True, separators=(",", ":")).encode("utf-8")
    return HEADER.pack(len(body)) + body


def decode_message(body: bytes) -> Dict[str, Any]:
    try:
        message = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ProtocolError(f"Frame body is not valid JSON: {exc}") from exc
    if not isinstance(message, dict):
        raise ProtocolError("Frame body must be a JSON object")
    return message


def recover_request_id(body: bytes) -> Optional[Union[str, int]]:
    """Best-effort search for ``requestId`` in a body that failed to parse."""
    match = _REQUEST_ID.search(body)
    if match is None:
        return None
    try:
        return json.loads(match.group(1))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None


class FrameDecoder:
    """Incremental frame parser.

    Bytes may arrive in chunks of any size; :meth:`feed` returns the bodies
    of every frame completed by the chunk, in order, and keeps the remainder
    for the next call.
    """

    def __init__(self, max_length: int = MAX_FRAME_LENGTH) -> None:
        self.max_length = max_length
        self.state = DecoderState.AWAITING_LENGTH
        self._buffer = bytearray()
        self._expected = 0
        self._error: Optional[ProtocolError] = None

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    @property
    def error(self) -> Optional[ProtocolError]:
        """Framing error found after the last returned body, if any."""
        return self._error

    def feed(self, chunk: bytes) -> List[bytes]:
        if self._error is not None:
            raise self._error
        self._buffer.extend(chunk)
        bodies: List[bytes] = []

        while True:
            if self.state is DecoderState.AWAITING_LENGTH:
                if len(self._buffer) < HEADER.size:
                    break
                (length,) = HEADER.unpack_from(self._buffer)
                if length > self.max_length:
                    self._error = ProtocolError(
                        f"Frame length {length} exceeds limit of {self.max_length} bytes"
                    )
                    # bodies completed before the bad header are still handed out
                    if not bodies:
                        raise self._error
                    break
                del self._buffer[:HEADER.size]
                self._expected = length
                self.state = DecoderState.AWAITING_BODY

            if len(self._buffer) < self._expected:
                break
            bodies.append(bytes(self._buffer[:self._expected]))
            del self._buffer[:self._expected]
            self._expected = 0
            self.state = DecoderState.AWAITING_LENGTH

        return bodies


__all__ = [
    "DecoderState",
    "FrameDecoder",
    "MAX_FRAME_LENGTH",
    "decode_message",
    "encode_frame",
    "recover_request_id",
]
