"""
secure.py — turn plaintext into sealed units and back.

A unit is `nonce (24 bytes) || box (plaintext + 16-byte tag)`. The codec
doesn't touch the stream; the channel hands units to the framing layer.

Nonces are drawn fresh from the random source for every seal. There is no
counter: with 24 random bytes a collision under one key is negligible for
any realistic message count, and it keeps the codec stateless.
"""

import logging
from typing import Optional

from . import crypto
from .config import KEY_SIZE, NONCE_SIZE, TAG_SIZE, ChannelLimits
from .errors import AuthenticationFailed, LengthLimitExceeded

logger = logging.getLogger(__name__)

OVERHEAD = NONCE_SIZE + TAG_SIZE


class SecureCodec:
    """Seals and opens messages under one precomputed shared secret."""

    def __init__(self, shared_secret: bytes,
                 limits: Optional[ChannelLimits] = None,
                 random_source: crypto.RandomSource = crypto.system_random) -> None:
        if len(shared_secret) != KEY_SIZE:
            raise ValueError(f"Shared secret must be {KEY_SIZE} bytes")
        self._shared_secret = bytes(shared_secret)
        self._random_source = random_source
        self.limits = limits or ChannelLimits()

    @classmethod
    def from_keys(cls, own_private: bytes, peer_public: bytes,
                  limits: Optional[ChannelLimits] = None,
                  random_source: crypto.RandomSource = crypto.system_random) -> "SecureCodec":
        """Derive the shared secret once and build a codec around it."""
        secret = crypto.derive_shared_secret(own_private, peer_public)
        return cls(secret, limits, random_source)

    def seal(self, plaintext: bytes) -> bytes:
        """
        Seal one message into `nonce || box`.

        Raises:
            LengthLimitExceeded: plaintext is over max_message_size. Checked
                before any randomness or crypto work.
            RandomSourceFailure: no nonce could be drawn.
        """
        if len(plaintext) > self.limits.max_message_size:
            raise LengthLimitExceeded(len(plaintext), self.limits.max_message_size)
        nonce = crypto.random_bytes(self._random_source, NONCE_SIZE)
        return nonce + crypto.seal(plaintext, nonce, self._shared_secret)

    def open(self, unit: bytes) -> bytes:
        """
        Open one `nonce || box` unit and return the plaintext.

        Raises:
            LengthLimitExceeded: unit is larger than any sealed message allowed
                by the limits could be.
            AuthenticationFailed: too short, or the box does not verify.
        """
        if len(unit) > self.limits.max_frame_size:
            raise LengthLimitExceeded(len(unit), self.limits.max_frame_size)
        if len(unit) < OVERHEAD:
            raise AuthenticationFailed(f"Sealed unit too short: {len(unit)} bytes")
        nonce, sealed = unit[:NONCE_SIZE], unit[NONCE_SIZE:]
        try:
            return crypto.open_sealed(sealed, nonce, self._shared_secret)
        except AuthenticationFailed:
            logger.warning("Dropping message that failed authentication (%d bytes)", len(unit))
            raise
