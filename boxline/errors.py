"""
errors.py — everything the channel can raise.

Rules of thumb:
- Every error here derives from ChannelError so callers can catch "anything
  the channel complained about" in one place.
- Stream-level failures (torn frames, failed handshakes) are also
  ConnectionError, so code written against plain sockets still catches them.
- Nothing in boxline retries or swallows these; they go straight to whoever
  called read/write/handshake.
"""


class ChannelError(Exception):
    """Base class for all boxline errors."""


class RandomSourceFailure(ChannelError):
    """The secure random source could not produce the bytes we asked for."""


class LengthLimitExceeded(ChannelError):
    """
    A declared or requested length is over the configured maximum.

    Fatal to the current message only. On the read side the offending frame
    body is never held in memory: the secure reader skips over it in small
    chunks before reading the next frame.
    """

    def __init__(self, length: int, limit: int) -> None:
        super().__init__(f"Length {length} exceeds limit {limit}")
        self.length = length
        self.limit = limit


class IncompleteFrame(ChannelError, ConnectionError):
    """The stream ended or failed before a whole frame arrived."""

    def __init__(self, expected: int, received: int) -> None:
        super().__init__(f"Stream ended after {received} of {expected} bytes")
        self.expected = expected
        self.received = received


class PeerClosed(IncompleteFrame):
    """Clean EOF: the peer closed the stream between two frames."""


class HandshakeFailed(ChannelError, ConnectionError):
    """The public-key exchange did not complete."""


class AuthenticationFailed(ChannelError):
    """
    A sealed message did not open.

    Either the bytes were corrupted or someone tampered with them; either
    way the channel should be closed.
    """
