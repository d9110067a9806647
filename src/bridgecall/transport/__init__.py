"""Transport abstraction layer.

Provides the interface a Channel consumes plus two reference adapters:
- LoopbackTransport - In-memory pair, for same-process contexts and tests
- StreamTransport - JSON lines over asyncio streams (pipes, sockets, stdio)

Any other mechanism (extension messaging, worker messaging) only needs to
satisfy the Transport protocol.
"""

from .base import BaseTransport, Receiver, Transport
from .loopback import LoopbackTransport
from .stream import StreamTransport

__all__ = [
    "BaseTransport",
    "LoopbackTransport",
    "Receiver",
    "StreamTransport",
    "Transport",
]
