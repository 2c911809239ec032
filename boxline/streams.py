import asyncio
from typing import Optional, Protocol, Tuple

"""
streams.py — the byte-stream seam everything else is written against.

The framing and secure layers only ever call `read`, `write`, `drain`,
`close` and `wait_closed`. Anything that offers those can carry a channel:

- AsyncioStream wraps an asyncio (reader, writer) pair, i.e. a TCP socket.
- memory_pipe() gives two connected in-process ends; handy in tests, and it
  can be told to hand out at most N bytes per read to exercise reassembly.
"""


class ByteReader(Protocol):
    async def read(self, n: int) -> bytes:
        """Return 1..n bytes, or b"" once the stream has ended."""
        ...


class ByteWriter(Protocol):
    def write(self, data: bytes) -> None:
        ...

    async def drain(self) -> None:
        ...


class ByteStream(ByteReader, ByteWriter, Protocol):
    def close(self) -> None:
        ...

    async def wait_closed(self) -> None:
        ...


class AsyncioStream:
    """ByteStream over an asyncio StreamReader/StreamWriter pair."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.reader = reader
        self.writer = writer

    @property
    def peername(self):
        return self.writer.get_extra_info("peername")

    async def read(self, n: int) -> bytes:
        return await self.reader.read(n)

    def write(self, data: bytes) -> None:
        self.writer.write(data)

    async def drain(self) -> None:
        await self.writer.drain()

    def close(self) -> None:
        self.writer.close()

    async def wait_closed(self) -> None:
        try:
            await self.writer.wait_closed()
        except ConnectionError:
            # Peer already reset the socket; it is closed either way.
            pass


async def open_tcp(host: str, port: int) -> AsyncioStream:
    """Plain TCP connect, wrapped as a ByteStream."""
    reader, writer = await asyncio.open_connection(host, port)
    return AsyncioStream(reader, writer)


class MemoryStream:
    """One end of an in-process pipe. Build pairs with memory_pipe()."""

    def __init__(self, chunk_size: Optional[int] = None) -> None:
        self._incoming = asyncio.StreamReader()
        self._peer: Optional["MemoryStream"] = None
        self._chunk_size = chunk_size
        self.closed = False
        self.reads = 0  # number of read() calls served; lets tests see reassembly

    async def read(self, n: int) -> bytes:
        if self._chunk_size is not None:
            n = min(n, self._chunk_size)
        data = await self._incoming.read(n)
        self.reads += 1
        return data

    def write(self, data: bytes) -> None:
        if self.closed:
            raise BrokenPipeError("Write on closed stream")
        if self._peer is None or self._peer.closed:
            raise BrokenPipeError("Peer has closed the stream")
        self._peer._incoming.feed_data(bytes(data))

    async def drain(self) -> None:
        return None

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        # Our pending reads see EOF, and so does the peer.
        self._incoming.feed_eof()
        if self._peer is not None and not self._peer.closed:
            self._peer._incoming.feed_eof()

    async def wait_closed(self) -> None:
        return None


def memory_pipe(chunk_size: Optional[int] = None) -> Tuple[MemoryStream, MemoryStream]:
    """
    Two connected MemoryStreams: bytes written to one are read from the other.

    chunk_size caps how many bytes a single read() returns on both ends.
    Call from inside a running event loop.
    """
    left = MemoryStream(chunk_size)
    right = MemoryStream(chunk_size)
    left._peer = right
    right._peer = left
    return left, right
