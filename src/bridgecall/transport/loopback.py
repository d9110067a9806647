"""In-memory loopback transport.

Connects two channels living in the same process. Delivery is scheduled on
the running event loop, so a send never re-enters the peer synchronously and
envelopes arrive in send order.

Usage:
    left, right = LoopbackTransport.pair()
    a = create(left)
    b = create(right)

    b.answer("ping", lambda _: "pong")
    assert await a.call("ping") == "pong"
"""

from __future__ import annotations

import asyncio
import logging

from ..protocol import Envelope
from .base import BaseTransport

logger = logging.getLogger(__name__)


class LoopbackTransport(BaseTransport):
    """One endpoint of an in-memory point-to-point link.

    Records every envelope it sends, which tests use to inspect the wire.
    No actual I/O - everything is in-memory.
    """

    def __init__(self, name: str = "loopback") -> None:
        super().__init__()
        self.name = name
        self._peer: LoopbackTransport | None = None
        self._connected = False
        self._sent: list[Envelope] = []

    @classmethod
    def pair(cls) -> tuple[LoopbackTransport, LoopbackTransport]:
        """Create two endpoints wired to each other."""
        left = cls("left")
        right = cls("right")
        left._peer = right
        right._peer = left
        left._connected = right._connected = True
        return left, right

    @property
    def sent(self) -> list[Envelope]:
        """Get all envelopes sent through this endpoint."""
        return self._sent.copy()

    @property
    def is_connected(self) -> bool:
        return self._connected

    def send(self, envelope: Envelope) -> None:
        """Schedule delivery of `envelope` to the peer endpoint."""
        self._sent.append(envelope)
        if not self._connected or self._peer is None:
            # Best effort: a vanished peer just never answers
            logger.debug(f"{self.name}: not connected, dropping envelope id={envelope.id}")
            return
        asyncio.get_running_loop().call_soon(self._peer._deliver, envelope)

    def inject(self, envelope: Envelope) -> None:
        """Deliver an envelope to the local receiver as if it came from the peer."""
        self._deliver(envelope)

    def disconnect(self) -> None:
        """Stop delivering in both directions."""
        self._connected = False
        if self._peer is not None:
            self._peer._connected = False
