import asyncio
import enum
import logging
from typing import Awaitable, Callable, Optional

from nacl.exceptions import CryptoError

from . import crypto
from .channel import SecureChannel
from .config import KEY_SIZE, ChannelLimits
from .errors import ChannelError, HandshakeFailed, IncompleteFrame
from .framing import read_exactly
from .streams import AsyncioStream, ByteStream, open_tcp

"""
handshake.py — swap raw public keys, derive the shared secret, get a channel.

Wire (unframed, unencrypted, 32 bytes each):
    responder → initiator : responder public key
    initiator → responder : initiator public key

Nobody is authenticated here: whatever key the peer sends is trusted as-is.
The dialing side is the initiator, the accepting side the responder.
"""

logger = logging.getLogger(__name__)

ChannelHandler = Callable[[SecureChannel], Awaitable[None]]


class Role(enum.Enum):
    INITIATOR = "initiator"
    RESPONDER = "responder"


class HandshakeState(enum.Enum):
    START = "start"
    KEYS_EXCHANGED = "keys_exchanged"
    READY = "ready"


class Handshake:
    """
    One side of the key exchange.

    START → KEYS_EXCHANGED once both keys have crossed the wire, then READY
    once the shared secret is derived. Runs exactly once.
    """

    def __init__(self, stream: ByteStream, role: Role,
                 keypair: Optional[crypto.KeyPair] = None,
                 random_source: crypto.RandomSource = crypto.system_random) -> None:
        self.stream = stream
        self.role = role
        self.random_source = random_source
        self.keypair = keypair or crypto.KeyPair.generate(random_source)
        self.state = HandshakeState.START
        self.peer_public: Optional[bytes] = None
        self.shared_secret: Optional[bytes] = None

    async def run(self) -> bytes:
        """
        Exchange keys and derive the shared secret.

        Raises:
            HandshakeFailed: a key could not be sent or fully received, or the
                peer's key was rejected.
        """
        if self.state is not HandshakeState.START:
            raise RuntimeError(f"Handshake already ran (state {self.state.value})")

        if self.role is Role.INITIATOR:
            self.peer_public = await self._receive_key()
            await self._send_key()
        else:
            await self._send_key()
            self.peer_public = await self._receive_key()
        self.state = HandshakeState.KEYS_EXCHANGED

        try:
            self.shared_secret = crypto.derive_shared_secret(self.keypair.private, self.peer_public)
        except CryptoError as exc:
            raise HandshakeFailed("Peer public key rejected") from exc
        self.state = HandshakeState.READY
        logger.debug("Handshake complete as %s", self.role.value)
        return self.shared_secret

    async def _send_key(self) -> None:
        try:
            self.stream.write(self.keypair.public)
            await self.stream.drain()
        except OSError as exc:
            raise HandshakeFailed(f"Could not send public key: {exc}") from exc

    async def _receive_key(self) -> bytes:
        try:
            return await read_exactly(self.stream, KEY_SIZE)
        except IncompleteFrame as exc:
            raise HandshakeFailed(
                f"Peer sent {exc.received} of {KEY_SIZE} public key bytes"
            ) from exc

    def channel(self, limits: Optional[ChannelLimits] = None) -> SecureChannel:
        """The secure channel for this connection. Only valid once READY."""
        if self.state is not HandshakeState.READY:
            raise RuntimeError("Handshake has not completed")
        return SecureChannel(self.stream, self.shared_secret, limits, self.random_source)


async def establish(stream: ByteStream, role: Role,
                    limits: Optional[ChannelLimits] = None,
                    keypair: Optional[crypto.KeyPair] = None,
                    random_source: crypto.RandomSource = crypto.system_random) -> SecureChannel:
    """Run the handshake on `stream`; close the stream if it fails."""
    try:
        handshake = Handshake(stream, role, keypair, random_source)
        await handshake.run()
    except BaseException:
        stream.close()
        raise
    return handshake.channel(limits)


async def dial(host: str, port: int,
               limits: Optional[ChannelLimits] = None,
               keypair: Optional[crypto.KeyPair] = None) -> SecureChannel:
    """Connect over TCP and handshake as the initiator."""
    stream = await open_tcp(host, port)
    return await establish(stream, Role.INITIATOR, limits, keypair)


async def serve(handler: ChannelHandler, host: Optional[str], port: int,
                limits: Optional[ChannelLimits] = None,
                keypair: Optional[crypto.KeyPair] = None) -> asyncio.Server:
    """
    Accept TCP connections, handshake each as the responder, and hand the
    channel to `handler` in its own task. The channel is closed when the
    handler returns or raises.

    With no keypair, every connection gets a fresh one.
    """

    async def handle_conn(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        stream = AsyncioStream(reader, writer)
        try:
            channel = await establish(stream, Role.RESPONDER, limits, keypair)
        except ChannelError as exc:
            # HandshakeFailed, or e.g. RandomSourceFailure while generating keys.
            logger.info("Handshake with %s failed: %s", stream.peername, exc)
            await stream.wait_closed()
            return
        async with channel:
            await handler(channel)

    return await asyncio.start_server(handle_conn, host, port)
