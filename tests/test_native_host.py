import io
import struct

from transport.dispatcher import PrintService
from transport.framing import FrameDecoder, decode_message, encode_frame
from transport.native_host import NativeMessagingHost


class TrickleReader:
    """Hands out the input a few bytes at a time."""

    def __init__(self, data, size):
        self.data = data
        self.size = size
        self.offset = 0

    def read(self, _size):
        chunk = self.data[self.offset:self.offset + self.size]
        self.offset += len(chunk)
        return chunk


class BrokenWriter(io.BytesIO):
    def write(self, data):
        raise OSError("pipe closed")


def responses(writer):
    return [decode_message(body) for body in FrameDecoder().feed(writer.getvalue())]


def run_host(service, data, reader=None):
    writer = io.BytesIO()
    host = NativeMessagingHost(service, reader=reader or io.BytesIO(data), writer=writer)
    return host.serve(), responses(writer)


def test_eof_ends_cleanly(memory_transport):
    exit_code, replies = run_host(PrintService(memory_transport), b"")

    assert exit_code == 0
    assert replies == []


def test_answers_every_request_by_id(memory_transport, sale_payload):
    stream = (
        encode_frame({"requestId": "a", "command": "status"})
        + encode_frame({"requestId": "b", "command": "print", "data": {"sale": sale_payload, "template": "legal"}})
        + encode_frame({"requestId": "c", "command": "listPrinters"})
    )

    exit_code, replies = run_host(PrintService(memory_transport), stream)

    assert exit_code == 0
    by_id = {reply["requestId"]: reply for reply in replies}
    assert set(by_id) == {"a", "b", "c"}
    assert by_id["a"]["printerName"] == "POS-80"
    assert by_id["b"] == {"requestId": "b", "success": True, "message": "Printed successfully", "printer": "POS-80"}
    assert by_id["c"]["printers"][0]["Name"] == "POS-80"
    assert len(memory_transport.jobs) == 1


def test_frames_split_across_reads(memory_transport):
    stream = encode_frame({"requestId": 1, "command": "status"}) + encode_frame({"requestId": 2, "command": "status"})

    exit_code, replies = run_host(PrintService(memory_transport), None, reader=TrickleReader(stream, 3))

    assert exit_code == 0
    assert sorted(reply["requestId"] for reply in replies) == [1, 2]


def test_failed_command_keeps_the_connection(make_transport, sale_payload):
    stream = (
        encode_frame({"requestId": "p", "command": "print", "data": {"sale": sale_payload}})
        + encode_frame({"requestId": "s", "command": "status"})
    )

    exit_code, replies = run_host(PrintService(make_transport(printers=[])), stream)

    by_id = {reply["requestId"]: reply for reply in replies}
    assert exit_code == 0
    assert by_id["p"]["success"] is False
    assert by_id["s"]["success"] is True


def test_malformed_body_with_request_id_gets_an_error(memory_transport):
    body = b'{"requestId": "bad-1", "command": "print", '
    stream = struct.pack("<I", len(body)) + body + encode_frame({"requestId": "ok", "command": "status"})

    exit_code, replies = run_host(PrintService(memory_transport), stream)

    by_id = {reply["requestId"]: reply for reply in replies}
    assert exit_code == 0
    assert by_id["bad-1"] == {"requestId": "bad-1", "success": False, "error": "Malformed request"}
    assert by_id["ok"]["success"] is True


def test_malformed_body_without_request_id_is_dropped(memory_transport):
    body = b"not json at all"
    stream = struct.pack("<I", len(body)) + body + encode_frame({"requestId": "ok", "command": "status"})

    exit_code, replies = run_host(PrintService(memory_transport), stream)

    assert exit_code == 0
    assert [reply["requestId"] for reply in replies] == ["ok"]


def test_oversized_frame_closes_the_connection(memory_transport):
    stream = encode_frame({"requestId": "first", "command": "status"}) + struct.pack("<I", 0xFFFFFFFF) + b"{}"

    exit_code, replies = run_host(PrintService(memory_transport), stream)

    assert exit_code == 1
    assert [reply["requestId"] for reply in replies] == ["first"]


def test_broken_output_stream_is_a_failure(memory_transport):
    host = NativeMessagingHost(
        PrintService(memory_transport),
        reader=io.BytesIO(encode_frame({"requestId": 1, "command": "status"})),
        writer=BrokenWriter(),
    )

    assert host.serve() == 1


def test_malformed_body_with_surrogate_request_id_is_answered(memory_transport):
    body = b'{"requestId": "\\ud800", "command": '
    stream = struct.pack("<I", len(body)) + body + encode_frame({"requestId": "ok", "command": "status"})

    exit_code, replies = run_host(PrintService(memory_transport), stream)

    by_id = {reply["requestId"]: reply for reply in replies}
    assert exit_code == 0
    assert by_id["\ud800"] == {"requestId": "\ud800", "success": False, "error": "Malformed request"}
    assert by_id["ok"]["success"] is True


def test_surrogate_in_command_is_echoed_back(memory_transport):
    body = b'{"requestId":"a","command":"\\ud800"}'
    stream = struct.pack("<I", len(body)) + body + encode_frame({"requestId": "ok", "command": "status"})

    exit_code, replies = run_host(PrintService(memory_transport), stream)

    by_id = {reply["requestId"]: reply for reply in replies}
    assert exit_code == 0
    assert by_id["a"] == {"requestId": "a", "success": False, "error": "Unknown command: \ud800"}
    assert by_id["ok"]["success"] is True


def test_frames_before_an_oversized_length_are_answered_in_the_same_read(memory_transport):
    stream = (
        encode_frame({"requestId": "one", "command": "status"})
        + encode_frame({"requestId": "two", "command": "status"})
        + struct.pack("<I", 0xFFFFFFFF)
    )

    exit_code, replies = run_host(PrintService(memory_transport), stream)

    assert exit_code == 1
    assert sorted(reply["requestId"] for reply in replies) == ["one", "two"]
