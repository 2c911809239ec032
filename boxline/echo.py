import logging
from typing import Optional

from .channel import SecureChannel
from .config import ChannelLimits
from .errors import AuthenticationFailed, ChannelError
from .handshake import dial, serve

"""
echo.py — the demo pair: a secure echo server and a one-shot client.

Server: every accepted connection gets a fresh key pair, does the responder
side of the handshake, then echoes each message back until the peer leaves.
Client: dial, send one message, wait for the echo.
"""

logger = logging.getLogger(__name__)


class EchoServer:
    """Echoes every message on every connection back to its sender."""

    def __init__(self, host: Optional[str], port: int, limits: Optional[ChannelLimits] = None) -> None:
        self.host = host
        self.port = port
        self.limits = limits or ChannelLimits()
        self.server = None

    async def start(self) -> None:
        """Bind and begin accepting; returns once the socket is listening."""
        self.server = await serve(self.handle_channel, self.host, self.port, self.limits)
        addrs = ", ".join(str(sock.getsockname()) for sock in self.server.sockets or [])
        logger.info("Echo server listening on %s", addrs)

    async def serve_forever(self) -> None:
        if self.server is None:
            await self.start()
        async with self.server:
            await self.server.serve_forever()

    async def handle_channel(self, channel: SecureChannel) -> None:
        """Per-connection loop: read a message, write it back."""
        echoed = 0
        try:
            async for message in channel:
                await channel.write(message)
                echoed += 1
        except AuthenticationFailed:
            # Tampering or corruption; drop the connection.
            logger.warning("Closing connection after authentication failure")
        except (ChannelError, ConnectionError) as exc:
            logger.info("Connection ended: %s", exc)
        logger.debug("Echoed %d message(s)", echoed)


async def echo_once(host: str, port: int, message: bytes,
                    limits: Optional[ChannelLimits] = None) -> bytes:
    """Dial the echo server, send one message, return the reply."""
    async with await dial(host, port, limits) as channel:
        await channel.write(message)
        return await channel.read()
