import os
import struct
from dataclasses import dataclass
from typing import Mapping, Optional

"""
config.py — wire constants and the one length bound both peers must agree on.

The frame bound is derived from the message bound instead of being set on
its own, so a writer can never be allowed to send a frame its reader would
refuse.
"""

KEY_SIZE = 32                        # X25519 public/private key and shared key
NONCE_SIZE = 24                      # XSalsa20 nonce
TAG_SIZE = 16                        # Poly1305 tag added by sealing
LENGTH_STRUCT = struct.Struct("<I")  # little-endian unsigned 32-bit length
MAX_WIRE_LENGTH = 0xFFFFFFFF         # largest length a u32 header can declare

DEFAULT_MAX_MESSAGE_SIZE = 32 * 1024  # 32 KiB of plaintext per message
MAX_MESSAGE_ENV = "BOXLINE_MAX_MESSAGE_SIZE"


@dataclass(frozen=True)
class ChannelLimits:
    """Per-message size bounds shared by the reading and the writing side."""

    max_message_size: int = DEFAULT_MAX_MESSAGE_SIZE

    def __post_init__(self) -> None:
        if self.max_message_size < 0:
            raise ValueError("max_message_size must not be negative")
        if self.max_frame_size > MAX_WIRE_LENGTH:
            raise ValueError(
                f"max_message_size {self.max_message_size} does not fit a u32 frame"
            )

    @property
    def max_frame_size(self) -> int:
        """Largest frame body a sealed message of max_message_size turns into."""
        return NONCE_SIZE + self.max_message_size + TAG_SIZE

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ChannelLimits":
        """
        Build limits from BOXLINE_MAX_MESSAGE_SIZE, falling back to the default.

        Both peers need the same value; there is no negotiation on the wire.
        """
        environ = os.environ if environ is None else environ
        raw = environ.get(MAX_MESSAGE_ENV)
        if raw is None or not raw.strip():
            return cls()
        try:
            value = int(raw)
        except ValueError as exc:
            raise ValueError(f"{MAX_MESSAGE_ENV} must be an integer, got {raw!r}") from exc
        return cls(max_message_size=value)
