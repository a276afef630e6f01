import struct

import pytest

from common.errors import ProtocolError
from transport.framing import (
    DecoderState,
    FrameDecoder,
    decode_message,
    encode_frame,
    recover_request_id,
)

MESSAGE = {"requestId": "req-1", "command": "print", "data": {"sale": {"totalAmount": 12.5, "customer": "Nuñez"}}}


def feed_in_chunks(data, size):
    decoder = FrameDecoder()
    bodies = []
    for offset in range(0, len(data), size):
        bodies.extend(decoder.feed(data[offset:offset + size]))
    return decoder, bodies


def test_frame_layout():
    frame = encode_frame({"a": 1})

    assert frame == struct.pack("<I", 7) + b'{"a":1}'


def test_non_ascii_is_escaped():
    frame = encode_frame({"name": "ñ"})

    assert struct.unpack("<I", frame[:4])[0] == len(frame) - 4
    assert frame[4:] == b'{"name":"\\u00f1"}'
    assert decode_message(frame[4:]) == {"name": "ñ"}


def test_lone_surrogate_can_be_framed():
    frame = encode_frame({"requestId": "\ud800"})

    assert decode_message(frame[4:]) == {"requestId": "\ud800"}


@pytest.mark.parametrize("size", [1, 2, 3, 5, 7, 1000])
def test_chunk_boundaries_do_not_matter(size):
    frame = encode_frame(MESSAGE)

    decoder, bodies = feed_in_chunks(frame, size)

    assert [decode_message(body) for body in bodies] == [MESSAGE]
    assert decoder.state is DecoderState.AWAITING_LENGTH
    assert decoder.buffered == 0


def test_length_header_split_across_chunks():
    frame = encode_frame(MESSAGE)
    decoder = FrameDecoder()

    assert decoder.feed(frame[:2]) == []
    assert decoder.state is DecoderState.AWAITING_LENGTH
    assert decoder.feed(frame[2:10]) == []
    assert decoder.state is DecoderState.AWAITING_BODY
    bodies = decoder.feed(frame[10:])

    assert decode_message(bodies[0]) == MESSAGE


def test_several_frames_in_one_chunk():
    first = {"requestId": 1, "command": "status"}
    second = {"requestId": 2, "command": "listPrinters"}
    stream = encode_frame(first) + encode_frame(second) + encode_frame(first)[:3]

    decoder = FrameDecoder()
    bodies = decoder.feed(stream)

    assert [decode_message(body) for body in bodies] == [first, second]
    assert decoder.buffered == 3


def test_empty_body_frame():
    decoder = FrameDecoder()

    assert decoder.feed(struct.pack("<I", 0)) == [b""]


def test_oversized_length_is_a_protocol_error():
    decoder = FrameDecoder(max_length=16)

    with pytest.raises(ProtocolError):
        decoder.feed(struct.pack("<I", 17))


@pytest.mark.parametrize("body", [b"{not json", b"[1, 2]", b"\xff\xfe", b""])
def test_decode_message_rejects_bad_bodies(body):
    with pytest.raises(ProtocolError):
        decode_message(body)


@pytest.mark.parametrize(
    "body, expected",
    [
        (b'{"requestId": "abc", "command": ', "abc"),
        (b'{"command":"print","requestId":42,', 42),
        (b'{"command": "print"', None),
        (b"garbage", None),
    ],
)
def test_recover_request_id(body, expected):
    assert recover_request_id(body) == expected


def test_bodies_before_an_oversized_length_are_returned():
    decoder = FrameDecoder(max_length=64)
    stream = encode_frame({"requestId": 1}) + struct.pack("<I", 65) + b"{}"

    bodies = decoder.feed(stream)

    assert [decode_message(body) for body in bodies] == [{"requestId": 1}]
    assert isinstance(decoder.error, ProtocolError)
    with pytest.raises(ProtocolError):
        decoder.feed(b"")
