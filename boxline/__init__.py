"""
boxline — secure, length-framed messages over a plain byte stream.

Two peers swap raw X25519 public keys, precompute a NaCl box key, and from
then on every message travels as:

    length (u32 LE) | nonce (24 bytes) | box (plaintext + 16-byte tag)

What it does NOT do:
- Authenticate the peer (keys are trusted as received).
- Forward secrecy, replay protection, or multiplexing.
"""
__all__ = [
    "config", "crypto", "errors", "framing", "secure", "channel", "handshake",
    "streams", "echo", "run",
    "ChannelLimits", "KeyPair", "derive_shared_secret", "FrameCodec",
    "SecureCodec", "SecureChannel", "Handshake", "Role", "HandshakeState",
    "establish", "dial", "serve", "memory_pipe",
    "ChannelError", "RandomSourceFailure", "LengthLimitExceeded",
    "IncompleteFrame", "PeerClosed", "HandshakeFailed", "AuthenticationFailed",
]

from .config import ChannelLimits
from .crypto import KeyPair, derive_shared_secret
from .errors import (
    AuthenticationFailed,
    ChannelError,
    HandshakeFailed,
    IncompleteFrame,
    LengthLimitExceeded,
    PeerClosed,
    RandomSourceFailure,
)
from .framing import FrameCodec
from .secure import SecureCodec
from .channel import SecureChannel
from .handshake import Handshake, HandshakeState, Role, dial, establish, serve
from .streams import memory_pipe
