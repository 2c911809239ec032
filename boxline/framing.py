import logging

from .config import LENGTH_STRUCT, MAX_WIRE_LENGTH
from .errors import IncompleteFrame, LengthLimitExceeded, PeerClosed
from .streams import ByteReader, ByteWriter

"""
framing.py — tiny length-prefixed framing for byte streams.

Protocol (simple on purpose):
- Each frame = 4-byte little-endian unsigned length (N) + N bytes of payload.
- The reader has a hard cap so a hostile peer can't make us allocate silly
  amounts of memory: an oversized header is rejected before the body is read.
- Payload bytes are opaque here; the secure layer puts nonce + box inside.

Streams may hand us any number of bytes per read, so everything goes
through read_exactly().
"""

logger = logging.getLogger(__name__)

HEADER_SIZE = LENGTH_STRUCT.size
DISCARD_CHUNK = 64 * 1024


async def read_exactly(reader: ByteReader, n: int) -> bytes:
    """
    Read exactly n bytes, however many reads that takes.

    Raises:
        IncompleteFrame: the stream hit EOF or errored before n bytes came in.
    """
    buf = bytearray(n)
    view = memoryview(buf)
    filled = 0
    while filled < n:
        try:
            chunk = await reader.read(n - filled)
        except IncompleteFrame:
            raise
        except OSError as exc:
            raise IncompleteFrame(n, filled) from exc
        if not chunk:
            raise IncompleteFrame(n, filled)
        view[filled:filled + len(chunk)] = chunk
        filled += len(chunk)
    return bytes(buf)


async def discard_exactly(reader: ByteReader, n: int) -> None:
    """
    Pull n bytes off the stream and throw them away, DISCARD_CHUNK at a time.

    Used to step over a frame body we refused, without ever holding it.
    """
    remaining = n
    while remaining:
        try:
            chunk = await reader.read(min(remaining, DISCARD_CHUNK))
        except IncompleteFrame:
            raise
        except OSError as exc:
            raise IncompleteFrame(n, n - remaining) from exc
        if not chunk:
            raise IncompleteFrame(n, n - remaining)
        remaining -= len(chunk)


def encode_frame(payload: bytes) -> bytes:
    """Prefix payload with its 4-byte little-endian length."""
    if len(payload) > MAX_WIRE_LENGTH:
        raise LengthLimitExceeded(len(payload), MAX_WIRE_LENGTH)
    return LENGTH_STRUCT.pack(len(payload)) + bytes(payload)


class FrameCodec:
    """Reads and writes frames, refusing anything longer than max_length."""

    def __init__(self, max_length: int) -> None:
        if not 0 <= max_length <= MAX_WIRE_LENGTH:
            raise ValueError(f"max_length must be between 0 and {MAX_WIRE_LENGTH}")
        self.max_length = max_length

    async def read_frame(self, reader: ByteReader) -> bytes:
        """
        Read one frame and return its payload.

        Raises:
            PeerClosed: EOF before the first header byte (a clean close).
            IncompleteFrame: EOF or stream error partway through a frame.
            LengthLimitExceeded: declared length is over max_length. The body
                is left unread; exc.length says how much to discard_exactly()
                before the next frame.
        """
        # 1) Read the 4-byte length prefix.
        try:
            header = await read_exactly(reader, HEADER_SIZE)
        except IncompleteFrame as exc:
            if exc.received == 0 and not isinstance(exc.__cause__, OSError):
                raise PeerClosed(HEADER_SIZE, 0) from None
            raise
        (length,) = LENGTH_STRUCT.unpack(header)

        # Sanity check before allocating/reading the body.
        if length > self.max_length:
            logger.debug("Rejecting frame of %d bytes (limit %d)", length, self.max_length)
            raise LengthLimitExceeded(length, self.max_length)

        # 2) Read the payload exactly as long as the prefix said.
        return await read_exactly(reader, length)

    async def write_frame(self, writer: ByteWriter, payload: bytes) -> None:
        """Write one frame (header + payload in a single write) and drain."""
        writer.write(encode_frame(payload))
        await writer.drain()  # Let the transport flush; important under backpressure.
