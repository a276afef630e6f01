"""Native-messaging host: framed JSON commands over stdin/stdout."""
from __future__ import annotations

import logging
import sys
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, BinaryIO, Dict, Optional

from common.errors import ProtocolError
from transport.dispatcher import PrintService
from transport.framing import FrameDecoder, decode_message, encode_frame, recover_request_id

LOGGER = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class NativeMessagingHost:
    """Reads frames from ``reader`` and answers on ``writer``.

    Commands run on a small thread pool, so responses can leave in a
    different order than requests arrived; callers match them by
    ``requestId``. ``stdout`` carries frames only, logging goes elsewhere.
    """

    def __init__(
        self,
        service: PrintService,
        reader: Optional[BinaryIO] = None,
        writer: Optional[BinaryIO] = None,
        max_workers: int = 4,
    ) -> None:
        self.service = service
        self.reader = reader if reader is not None else sys.stdin.buffer
        self.writer = writer if writer is not None else sys.stdout.buffer
        self.decoder = FrameDecoder()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="print-cmd")
        self._write_lock = threading.Lock()
        self._closed = threading.Event()

    def _read_chunk(self) -> bytes:
        read = getattr(self.reader, "read1", None) or self.reader.read
        return read(CHUNK_SIZE)

    def send(self, message: Dict[str, Any]) -> None:
        try:
            frame = encode_frame(message)
        except (TypeError, ValueError):
            LOGGER.exception("Response for request %s is not serialisable", message.get("requestId"))
            frame = encode_frame({
                "requestId": None,
                "success": False,
                "error": "Response could not be encoded",
            })
        with self._write_lock:
            if self._closed.is_set():
                return
            try:
                self.writer.write(frame)
                self.writer.flush()
            except (OSError, ValueError):
                LOGGER.exception("Output stream failed; closing connection")
                self._closed.set()

    def _dispatch(self, body: bytes) -> None:
        try:
            message = decode_message(body)
        except ProtocolError as exc:
            request_id = recover_request_id(body)
            if request_id is None:
                LOGGER.error("Dropping malformed frame (%d bytes): %s", len(body), exc)
                return
            LOGGER.error("Malformed frame for request %s: %s", request_id, exc)
            self.send({"requestId": request_id, "success": False, "error": "Malformed request"})
            return

        future = self._executor.submit(self.service.handle, message)
        future.add_done_callback(self._on_done)

    def _on_done(self, future: Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:  # pragma: no cover - handle() answers every command
            LOGGER.error("Command worker crashed", exc_info=exc)
            return
        self.send(future.result())

    def serve(self) -> int:
        """Process frames until EOF. Returns a process exit code."""
        LOGGER.info("Native messaging host started")
        exit_code = 0
        try:
            while not self._closed.is_set():
                try:
                    chunk = self._read_chunk()
                except OSError:
                    LOGGER.exception("Input stream failed; closing connection")
                    exit_code = 1
                    break
                if not chunk:
                    LOGGER.info("stdin closed, shutting down")
                    break
                try:
                    bodies = self.decoder.feed(chunk)
                except ProtocolError:
                    # the stream cannot be resynchronised after a bad length
                    LOGGER.exception("Unrecoverable framing error")
                    exit_code = 1
                    break
                for body in bodies:
                    self._dispatch(body)
                if self.decoder.error is not None:
                    LOGGER.error("Unrecoverable framing error: %s", self.decoder.error)
                    exit_code = 1
                    break
        finally:
            self._executor.shutdown(wait=True)
        if self._closed.is_set() and exit_code == 0:
            exit_code = 1
        return exit_code


__all__ = ["NativeMessagingHost"]
