"""Transport contract consumed by a Channel.

A transport moves envelopes between two isolated contexts. It promises
nothing beyond "eventually delivered or never delivered": no ordering
across messages, no acknowledgement, no retry.

Architecture:
- Transport is the PROTOCOL (interface) every adapter satisfies
- BaseTransport holds the single inbound-callback slot and the
  delivery helper shared by the bundled adapters
- The Channel accepts any Transport via constructor injection
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol, runtime_checkable

from ..protocol import Envelope

logger = logging.getLogger(__name__)

# Inbound callback installed by the channel
Receiver = Callable[[Envelope], None]


@runtime_checkable
class Transport(Protocol):
    """Protocol for envelope transports.

    All transports must implement:
    - send: Hand an envelope to the underlying mechanism (non-blocking)
    - on_receive: Install the single inbound callback (None detaches)

    The transport must invoke the callback once per delivered envelope,
    in the order it received them, on the channel's event loop thread.
    """

    def send(self, envelope: Envelope) -> None:
        """Send an envelope to the peer, best effort.

        Raises:
            ConnectionError: If the transport can no longer send
        """
        ...

    def on_receive(self, callback: Receiver | None) -> None:
        """Install the inbound callback, replacing any previous one."""
        ...


class BaseTransport:
    """Base class for transports with common receiver handling."""

    def __init__(self) -> None:
        self._receiver: Receiver | None = None

    @property
    def has_receiver(self) -> bool:
        """Check if an inbound callback is installed."""
        return self._receiver is not None

    def on_receive(self, callback: Receiver | None) -> None:
        if callback is not None and self._receiver is not None:
            # One channel per endpoint; a second one silently steals the slot
            logger.warning(f"{self.__class__.__name__} receiver replaced")
        self._receiver = callback

    def send(self, envelope: Envelope) -> None:
        raise NotImplementedError

    def _deliver(self, envelope: Envelope) -> None:
        """Hand an inbound envelope to the installed receiver, if any."""
        receiver = self._receiver
        if receiver is None:
            logger.debug(f"No receiver, dropping envelope id={envelope.id} ({envelope.kind.value})")
            return
        receiver(envelope)
