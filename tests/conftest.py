# boxline test configuration
# Shared fixtures: key pairs, deterministic random sources, small limits.

import os
import random
import sys

import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from boxline.config import ChannelLimits
from boxline.crypto import KeyPair, derive_shared_secret


def seeded_source(seed: int):
    """Deterministic stand-in for the OS random source."""
    rng = random.Random(seed)
    return rng.randbytes


class ChunkedReader:
    """
    ByteReader over a fixed byte string that serves at most `chunk` bytes
    per read and records every request it was asked to satisfy.
    """

    def __init__(self, data: bytes, chunk: int = 1 << 30) -> None:
        self.data = data
        self.pos = 0
        self.chunk = chunk
        self.requests = []

    async def read(self, n: int) -> bytes:
        self.requests.append(n)
        take = min(n, self.chunk)
        out = self.data[self.pos:self.pos + take]
        self.pos += len(out)
        return out

    @property
    def remaining(self) -> int:
        return len(self.data) - self.pos


@pytest.fixture
def alice():
    return KeyPair.generate()


@pytest.fixture
def bob():
    return KeyPair.generate()


@pytest.fixture
def shared_secret(alice, bob):
    return derive_shared_secret(alice.private, bob.public)


@pytest.fixture
def limits():
    return ChannelLimits(max_message_size=1024)
