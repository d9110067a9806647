"""Transport-agnostic wire protocol.

Defines the envelope shape that works identically across all transports
(in-memory loopback, pipes, sockets, subprocess stdio).

Key concepts:
- Request: caller → answerer, carries a fresh correlation id
- Response: answerer → caller, echoes the id with the handler's result
- Error: answerer → caller, echoes the id with a failure description
"""

from .envelope import Envelope, EnvelopeKind

__all__ = [
    "Envelope",
    "EnvelopeKind",
]
