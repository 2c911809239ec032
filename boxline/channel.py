import logging
from typing import AsyncIterator, Optional

from . import crypto
from .config import ChannelLimits
from .errors import LengthLimitExceeded, PeerClosed
from .framing import FrameCodec, discard_exactly
from .secure import SecureCodec
from .streams import ByteReader, ByteStream, ByteWriter

"""
channel.py — secure, framed messages over one byte stream.

Outbound: plaintext → SecureCodec.seal → FrameCodec → stream.
Inbound:  stream → FrameCodec → SecureCodec.open → plaintext.

One write() is one frame and one read() is one frame; nothing is buffered
between calls, so close() has nothing to flush.

Not safe for concurrent use: at most one read and one write in flight.
"""

logger = logging.getLogger(__name__)


class SecureWriter:
    """Write half: seals each message and sends it as one frame."""

    def __init__(self, writer: ByteWriter, codec: SecureCodec, frames: FrameCodec) -> None:
        self._writer = writer
        self._codec = codec
        self._frames = frames

    async def write(self, plaintext: bytes) -> int:
        """Send one message. Returns the number of plaintext bytes sent."""
        unit = self._codec.seal(plaintext)
        await self._frames.write_frame(self._writer, unit)
        return len(plaintext)


class SecureReader:
    """Read half: reads one frame per call and opens it."""

    def __init__(self, reader: ByteReader, codec: SecureCodec, frames: FrameCodec) -> None:
        self._reader = reader
        self._codec = codec
        self._frames = frames
        self._unread = 0  # body bytes of a refused frame still on the stream

    async def read(self) -> bytes:
        """
        Receive one whole message.

        An oversized frame raises LengthLimitExceeded; its body is skipped at
        the start of the next read so the stream stays in step.
        """
        if self._unread:
            logger.debug("Skipping %d bytes of a refused frame", self._unread)
            await discard_exactly(self._reader, self._unread)
            self._unread = 0
        try:
            unit = await self._frames.read_frame(self._reader)
        except LengthLimitExceeded as exc:
            self._unread = exc.length
            raise
        return self._codec.open(unit)

    async def readinto(self, buffer) -> int:
        """
        Receive one message into `buffer`.

        If the message is longer than the buffer, only len(buffer) bytes are
        delivered and the rest of that message is thrown away. Use read() when
        the whole message matters.
        """
        message = await self.read()
        n = min(len(buffer), len(message))
        memoryview(buffer)[:n] = message[:n]
        if n < len(message):
            logger.debug("Discarded %d bytes that did not fit the read buffer", len(message) - n)
        return n


class SecureChannel:
    """
    Drop-in secure replacement for a byte stream.

    Built fully keyed: there is no "constructed but not initialized" state.
    The channel owns the stream; closing one closes the other.

    Example:
        channel = SecureChannel.from_keys(stream, mine.private, theirs_public)
        await channel.write(b"hello")
        reply = await channel.read()
        await channel.aclose()
    """

    def __init__(self, stream: ByteStream, shared_secret: bytes,
                 limits: Optional[ChannelLimits] = None,
                 random_source: crypto.RandomSource = crypto.system_random) -> None:
        self.limits = limits or ChannelLimits()
        codec = SecureCodec(shared_secret, self.limits, random_source)
        frames = FrameCodec(self.limits.max_frame_size)
        self.stream = stream
        self._reader = SecureReader(stream, codec, frames)
        self._writer = SecureWriter(stream, codec, frames)
        self._closed = False

    @classmethod
    def from_keys(cls, stream: ByteStream, own_private: bytes, peer_public: bytes,
                  limits: Optional[ChannelLimits] = None,
                  random_source: crypto.RandomSource = crypto.system_random) -> "SecureChannel":
        """Precompute the shared secret from our private key and their public key."""
        secret = crypto.derive_shared_secret(own_private, peer_public)
        return cls(stream, secret, limits, random_source)

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise ConnectionError("Channel is closed")

    async def write(self, plaintext: bytes) -> int:
        self._check_open()
        return await self._writer.write(plaintext)

    async def read(self) -> bytes:
        self._check_open()
        return await self._reader.read()

    async def readinto(self, buffer) -> int:
        self._check_open()
        return await self._reader.readinto(buffer)

    def close(self) -> None:
        """Close the underlying stream. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self.stream.close()

    async def wait_closed(self) -> None:
        await self.stream.wait_closed()

    async def aclose(self) -> None:
        self.close()
        await self.wait_closed()

    async def __aenter__(self) -> "SecureChannel":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._messages()

    async def _messages(self) -> AsyncIterator[bytes]:
        """Yield messages until the peer closes cleanly between frames."""
        while True:
            try:
                message = await self.read()
            except PeerClosed:
                return
            yield message
