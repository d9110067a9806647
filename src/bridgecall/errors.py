"""Error taxonomy for cross-context calls.

Every caller-visible failure arrives as a rejected future carrying one of
these exceptions:

- NoHandlerError: the peer had no handler bound for the event
- HandlerError: the peer's handler raised
- CallTimeoutError: a local deadline elapsed before settlement
- ChannelClosedError: the channel was closed before or during the call
- SendError: the transport could not send the request

RemoteError subclasses travel over the wire as error payloads:
    {"error": "<description>", "code": "<code>", "details": {...}}
"""

from __future__ import annotations

from typing import Any, ClassVar


class BridgeError(Exception):
    """Base class for all bridgecall errors."""


class RemoteError(BridgeError):
    """A failure reported by the peer in an error envelope.

    Attributes:
        description: Human-readable failure description from the peer
        code: Wire code identifying the failure kind
        details: Optional extra data attached by the peer
    """

    code: ClassVar[str] = "remote_error"

    def __init__(self, description: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(description)
        self.description = description
        self.details = details or {}

    def to_payload(self) -> dict[str, Any]:
        """Build the error envelope payload for this error."""
        payload: dict[str, Any] = {"error": self.description, "code": self.code}
        if self.details:
            payload["details"] = self.details
        return payload

    @classmethod
    def from_payload(cls, payload: Any) -> RemoteError:
        """Rebuild the matching error from an error envelope payload.

        Unknown codes and malformed payloads produce a plain RemoteError so
        a misbehaving peer can never leave a call unsettled.
        """
        if not isinstance(payload, dict):
            return RemoteError(f"Malformed error payload: {payload!r}")

        description = str(payload.get("error", "Unknown error"))
        details = payload.get("details")
        if not isinstance(details, dict):
            details = None

        code = payload.get("code")
        error_cls = _REMOTE_ERRORS.get(code, RemoteError) if isinstance(code, str) else RemoteError
        return error_cls(description, details)


class NoHandlerError(RemoteError):
    """No handler was registered for the event when the request was routed."""

    code = "no_handler"

    @classmethod
    def for_event(cls, event: str) -> NoHandlerError:
        return cls(f"No handler registered for event: {event}", {"event": event})


class HandlerError(RemoteError):
    """The peer's handler raised while processing the request."""

    code = "handler_error"

    @classmethod
    def from_exception(cls, event: str, exc: BaseException) -> HandlerError:
        message = str(exc)
        description = f"{type(exc).__name__}: {message}" if message else type(exc).__name__
        return cls(description, {"event": event})


class CallTimeoutError(BridgeError, TimeoutError):
    """A caller-configured deadline elapsed before the call settled."""

    def __init__(self, event: str, timeout: float) -> None:
        super().__init__(f"Call to '{event}' timed out after {timeout}s")
        self.event = event
        self.timeout = timeout


class ChannelClosedError(BridgeError):
    """The call was issued after, or was still pending at, channel close."""

    def __init__(self, message: str = "Channel is closed") -> None:
        super().__init__(message)


class SendError(BridgeError):
    """The transport raised while sending the request.

    The transport's exception is kept as __cause__.
    """

    def __init__(self, event: str, cause: BaseException) -> None:
        super().__init__(f"Failed to send '{event}': {cause}")
        self.event = event
        self.__cause__ = cause


class InvariantError(BridgeError, RuntimeError):
    """Internal logic defect (duplicate id, double settlement).

    Never expected in correct operation. Always propagated.
    """


_REMOTE_ERRORS: dict[str, type[RemoteError]] = {
    NoHandlerError.code: NoHandlerError,
    HandlerError.code: HandlerError,
}
