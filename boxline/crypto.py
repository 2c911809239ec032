"""
crypto.py — tiny NaCl box helpers.

Why this exists:
- Keep all key handling and sealing in one place so the codec and the
  handshake can call `generate/derive/seal/open` without caring which
  library does what.
- Key pairs come from `cryptography` (X25519); the precomputed box key and
  XSalsa20-Poly1305 sealing come from PyNaCl (libsodium).
- Everything is raw bytes: 32-byte keys, 24-byte nonces, 16-byte tags.

Notes:
- The random source is injectable so tests can pin key generation and
  nonces. Production code should leave it at `system_random`.
"""

import os
from dataclasses import dataclass, field
from typing import Callable

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import x25519
from nacl import bindings
from nacl.exceptions import CryptoError

from .config import KEY_SIZE, NONCE_SIZE, TAG_SIZE
from .errors import AuthenticationFailed, RandomSourceFailure

RandomSource = Callable[[int], bytes]


# -----------------------------
# Random bytes
# -----------------------------

def system_random(n: int) -> bytes:
    """The OS CSPRNG. Default source for keys and nonces."""
    return os.urandom(n)


def random_bytes(source: RandomSource, n: int) -> bytes:
    """
    Pull exactly n bytes from `source`.

    A source that errors or hands back the wrong amount is a hard failure;
    we never pad or reuse old randomness.
    """
    try:
        data = source(n)
    except OSError as exc:
        raise RandomSourceFailure(f"Random source failed: {exc}") from exc
    if len(data) != n:
        raise RandomSourceFailure(f"Random source returned {len(data)} of {n} bytes")
    return bytes(data)


# -------------
# Key pairs
# -------------

@dataclass(frozen=True)
class KeyPair:
    """X25519 key pair as raw bytes. The private half is kept out of repr."""

    public: bytes
    private: bytes = field(repr=False)

    @classmethod
    def generate(cls, random_source: RandomSource = system_random) -> "KeyPair":
        """Fresh key pair; the private key is 32 bytes straight from the source."""
        return cls.from_private(random_bytes(random_source, KEY_SIZE))

    @classmethod
    def from_private(cls, private: bytes) -> "KeyPair":
        """Rebuild the pair for a persisted private key."""
        if len(private) != KEY_SIZE:
            raise ValueError(f"Private key must be {KEY_SIZE} bytes")
        key = x25519.X25519PrivateKey.from_private_bytes(bytes(private))
        public = key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        return cls(public=public, private=bytes(private))


# ---------------------------
# Shared secret (precompute)
# ---------------------------

def derive_shared_secret(own_private: bytes, peer_public: bytes) -> bytes:
    """
    Precompute the box key for (our private, their public).

    Symmetric: derive(privA, pubB) == derive(privB, pubA). Done once per
    channel so every message afterwards only pays for the cheap symmetric part.

    Raises nacl's CryptoError if libsodium refuses the peer key (e.g. a
    low-order point); the handshake turns that into HandshakeFailed.
    """
    if len(own_private) != KEY_SIZE or len(peer_public) != KEY_SIZE:
        raise ValueError(f"Keys must be {KEY_SIZE} bytes")
    return bindings.crypto_box_beforenm(bytes(peer_public), bytes(own_private))


# ---------------------------
# Seal & Open
# ---------------------------

def seal(plaintext: bytes, nonce: bytes, shared_secret: bytes) -> bytes:
    """Encrypt + authenticate. Output is len(plaintext) + TAG_SIZE bytes."""
    return bindings.crypto_box_afternm(bytes(plaintext), nonce, shared_secret)


def open_sealed(sealed: bytes, nonce: bytes, shared_secret: bytes) -> bytes:
    """
    Reverse of seal().

    Raises AuthenticationFailed on any mismatch: wrong key, wrong nonce,
    flipped bits, truncation. Never returns partial or empty output instead.
    """
    if len(nonce) != NONCE_SIZE or len(sealed) < TAG_SIZE:
        raise AuthenticationFailed("Sealed message is malformed")
    try:
        return bindings.crypto_box_open_afternm(bytes(sealed), bytes(nonce), shared_secret)
    except CryptoError as exc:
        raise AuthenticationFailed("Failed to open sealed message") from exc
