"""
Unit tests for length-prefixed framing.

Tests:
- Header encoding
- Reassembly across partial reads
- Oversized headers rejected before the body is touched
- Torn frames vs clean EOF
- Skipping a refused body
"""

import asyncio
import struct

import pytest
from hypothesis import given, settings
import hypothesis.strategies as st

from boxline.errors import IncompleteFrame, LengthLimitExceeded, PeerClosed
from boxline.framing import (
    DISCARD_CHUNK, HEADER_SIZE, FrameCodec, discard_exactly, encode_frame, read_exactly,
)

from conftest import ChunkedReader


class RecordingWriter:
    def __init__(self):
        self.data = bytearray()
        self.writes = 0
        self.drains = 0

    def write(self, data):
        self.data += data
        self.writes += 1

    async def drain(self):
        self.drains += 1


class FailingReader:
    def __init__(self, first: bytes):
        self.first = first

    async def read(self, n):
        if self.first:
            out, self.first = self.first[:n], self.first[n:]
            return out
        raise ConnectionResetError("reset by peer")


class TestEncode:

    def test_little_endian_header(self):
        assert encode_frame(b"abc") == b"\x03\x00\x00\x00abc"

    def test_empty_payload(self):
        assert encode_frame(b"") == b"\x00\x00\x00\x00"

    def test_no_configured_bound_on_write(self):
        payload = b"x" * 5000
        frame = encode_frame(payload)
        assert struct.unpack("<I", frame[:4])[0] == 5000


class TestReadExactly:

    @pytest.mark.asyncio
    async def test_collects_across_reads(self):
        reader = ChunkedReader(b"abcdef", chunk=2)
        assert await read_exactly(reader, 6) == b"abcdef"
        assert reader.requests == [6, 4, 2]

    @pytest.mark.asyncio
    async def test_eof_raises(self):
        with pytest.raises(IncompleteFrame) as info:
            await read_exactly(ChunkedReader(b"abc"), 5)
        assert info.value.expected == 5
        assert info.value.received == 3

    @pytest.mark.asyncio
    async def test_stream_error_raises_incomplete(self):
        with pytest.raises(IncompleteFrame) as info:
            await read_exactly(FailingReader(b"ab"), 4)
        assert info.value.received == 2
        assert isinstance(info.value.__cause__, ConnectionResetError)

    @pytest.mark.asyncio
    async def test_incomplete_is_connection_error(self):
        with pytest.raises(ConnectionError):
            await read_exactly(ChunkedReader(b""), 1)


class TestDiscardExactly:

    @pytest.mark.asyncio
    async def test_skips_in_bounded_reads(self):
        body = b"\x00" * (DISCARD_CHUNK * 2 + 10)
        reader = ChunkedReader(body + b"next")
        await discard_exactly(reader, len(body))
        assert reader.requests == [DISCARD_CHUNK, DISCARD_CHUNK, 10]
        assert reader.remaining == 4

    @pytest.mark.asyncio
    async def test_eof_raises(self):
        with pytest.raises(IncompleteFrame) as info:
            await discard_exactly(ChunkedReader(b"abc", chunk=2), 10)
        assert info.value.expected == 10
        assert info.value.received == 3

    @pytest.mark.asyncio
    async def test_stream_error_raises_incomplete(self):
        with pytest.raises(IncompleteFrame) as info:
            await discard_exactly(FailingReader(b"ab"), 4)
        assert isinstance(info.value.__cause__, ConnectionResetError)


class TestFrameCodec:

    @pytest.mark.asyncio
    async def test_read_single_frame(self):
        codec = FrameCodec(max_length=100)
        reader = ChunkedReader(encode_frame(b"payload") + encode_frame(b"next"))
        assert await codec.read_frame(reader) == b"payload"
        assert await codec.read_frame(reader) == b"next"

    @pytest.mark.asyncio
    async def test_one_byte_at_a_time(self):
        codec = FrameCodec(max_length=100)
        payload = bytes(range(64))
        reader = ChunkedReader(encode_frame(payload), chunk=1)
        assert await codec.read_frame(reader) == payload
        assert len(reader.requests) == HEADER_SIZE + len(payload)

    @pytest.mark.asyncio
    async def test_length_at_limit_accepted(self):
        codec = FrameCodec(max_length=8)
        assert await codec.read_frame(ChunkedReader(encode_frame(b"12345678"))) == b"12345678"

    @pytest.mark.asyncio
    async def test_oversized_header_rejected_before_body(self):
        codec = FrameCodec(max_length=8)
        body = b"123456789"
        reader = ChunkedReader(encode_frame(body))
        with pytest.raises(LengthLimitExceeded) as info:
            await codec.read_frame(reader)
        assert info.value.length == 9
        assert info.value.limit == 8
        # Only the header was consumed; the body stays on the stream.
        assert reader.remaining == len(body)
        assert reader.requests == [HEADER_SIZE]

    @pytest.mark.asyncio
    async def test_torn_body(self):
        codec = FrameCodec(max_length=100)
        reader = ChunkedReader(encode_frame(b"abcdef")[:-2])
        with pytest.raises(IncompleteFrame) as info:
            await codec.read_frame(reader)
        assert not isinstance(info.value, PeerClosed)
        assert info.value.expected == 6
        assert info.value.received == 4

    @pytest.mark.asyncio
    async def test_torn_header(self):
        codec = FrameCodec(max_length=100)
        with pytest.raises(IncompleteFrame) as info:
            await codec.read_frame(ChunkedReader(b"\x05\x00"))
        assert not isinstance(info.value, PeerClosed)

    @pytest.mark.asyncio
    async def test_clean_eof(self):
        codec = FrameCodec(max_length=100)
        with pytest.raises(PeerClosed):
            await codec.read_frame(ChunkedReader(b""))

    @pytest.mark.asyncio
    async def test_reset_before_header_is_not_clean(self):
        codec = FrameCodec(max_length=100)
        with pytest.raises(IncompleteFrame) as info:
            await codec.read_frame(FailingReader(b""))
        assert not isinstance(info.value, PeerClosed)

    @pytest.mark.asyncio
    async def test_write_frame_single_write_then_drain(self):
        codec = FrameCodec(max_length=100)
        writer = RecordingWriter()
        await codec.write_frame(writer, b"hi")
        assert bytes(writer.data) == b"\x02\x00\x00\x00hi"
        assert writer.writes == 1
        assert writer.drains == 1

    def test_bad_max_length(self):
        with pytest.raises(ValueError):
            FrameCodec(max_length=-1)
        with pytest.raises(ValueError):
            FrameCodec(max_length=1 << 32)


@given(payload=st.binary(max_size=512), chunk=st.integers(min_value=1, max_value=64))
@settings(max_examples=100, deadline=None)
def test_chunking_does_not_change_result(payload, chunk):
    codec = FrameCodec(max_length=512)
    frame = encode_frame(payload)

    async def read_both():
        whole = await codec.read_frame(ChunkedReader(frame))
        pieces = await codec.read_frame(ChunkedReader(frame, chunk=chunk))
        return whole, pieces

    whole, pieces = asyncio.run(read_both())
    assert whole == pieces == payload
