"""bridgecall - request/response calls between isolated execution contexts.

Builds correlated, error-propagating calls on top of any fire-and-forget
message transport.

Public API:
- create, Channel: call/answer endpoint over one transport
- ChannelConfig: channel settings (default timeout, name)
- Envelope, EnvelopeKind: wire types
- Transport: protocol transports must satisfy
- LoopbackTransport, StreamTransport: bundled transports
- Error taxonomy: NoHandlerError, HandlerError, CallTimeoutError,
  ChannelClosedError, SendError (plus RemoteError, InvariantError,
  BridgeError)
"""

from .channel import Channel, create
from .config import ChannelConfig
from .errors import (
    BridgeError,
    CallTimeoutError,
    ChannelClosedError,
    HandlerError,
    InvariantError,
    NoHandlerError,
    RemoteError,
    SendError,
)
from .protocol import Envelope, EnvelopeKind
from .transport import LoopbackTransport, StreamTransport, Transport

__all__ = [
    # Channel
    "Channel",
    "ChannelConfig",
    "create",
    # Wire types
    "Envelope",
    "EnvelopeKind",
    # Transports
    "LoopbackTransport",
    "StreamTransport",
    "Transport",
    # Errors
    "BridgeError",
    "CallTimeoutError",
    "ChannelClosedError",
    "HandlerError",
    "InvariantError",
    "NoHandlerError",
    "RemoteError",
    "SendError",
]

__version__ = "0.1.0"
