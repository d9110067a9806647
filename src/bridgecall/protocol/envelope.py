"""Envelope definitions for the wire protocol.

An envelope is the only thing that crosses the context boundary. Requests
carry a fresh correlation id; responses and errors echo the id of the
request they answer.

Example exchange:
    → {"id": 1, "event": "ping", "kind": "request", "payload": null}
    ← {"id": 1, "event": "ping", "kind": "response", "payload": "pong"}

    → {"id": 2, "event": "missing", "kind": "request", "payload": null}
    ← {"id": 2, "event": "missing", "kind": "error",
       "payload": {"error": "No handler registered for event: missing",
                   "code": "no_handler", "details": {"event": "missing"}}}
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel

from ..errors import RemoteError


class EnvelopeKind(str, Enum):
    """Envelope kinds on the wire."""

    REQUEST = "request"
    RESPONSE = "response"
    ERROR = "error"


class Envelope(BaseModel):
    """Unit of wire exchange between two channels.

    The `id` is an integer so it survives any JSON round trip unchanged.
    The `payload` is opaque to the protocol and must be serializable by
    whatever format the transport uses.
    """

    id: int
    event: str
    kind: EnvelopeKind
    payload: Any = None

    def is_request(self) -> bool:
        return self.kind == EnvelopeKind.REQUEST

    def is_response(self) -> bool:
        return self.kind == EnvelopeKind.RESPONSE

    def is_error(self) -> bool:
        return self.kind == EnvelopeKind.ERROR

    @classmethod
    def request(cls, correlation_id: int, event: str, payload: Any = None) -> Envelope:
        """Create a request envelope."""
        return cls(id=correlation_id, event=event, kind=EnvelopeKind.REQUEST, payload=payload)

    @classmethod
    def response(cls, request: Envelope, result: Any) -> Envelope:
        """Create a successful response to `request`."""
        return cls(id=request.id, event=request.event, kind=EnvelopeKind.RESPONSE, payload=result)

    @classmethod
    def error(cls, request: Envelope, error: RemoteError) -> Envelope:
        """Create an error response to `request`."""
        return cls(
            id=request.id,
            event=request.event,
            kind=EnvelopeKind.ERROR,
            payload=error.to_payload(),
        )
