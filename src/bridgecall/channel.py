"""Channel - call/answer façade over one transport endpoint.

A Channel composes the answer registry, the call dispatcher and the message
router for a single transport endpoint, and owns their combined lifetime.
There is no default or global channel: each boundary pair constructs its
own, and nothing is shared between channels.

Usage:
    left, right = LoopbackTransport.pair()
    page = create(left)
    background = create(right)

    background.answer("ping", lambda _: "pong")
    page.answer("echo", lambda value: value)

    assert await page.call("ping") == "pong"
    assert await background.call("echo", "hi") == "hi"

    page.close()
    background.close()
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .config import ChannelConfig
from .dispatcher import CallDispatcher
from .registry import AnswerRegistry, Handler
from .router import MessageRouter
from .transport import Transport

logger = logging.getLogger(__name__)


class Channel:
    """Bidirectional request/response endpoint.

    Either side may call and either side may answer. Inbound envelopes
    are routed in arrival order on the event loop; handlers run as
    independent tasks and may themselves issue calls.
    """

    def __init__(self, transport: Transport, config: ChannelConfig | None = None) -> None:
        """Create a channel and attach it to `transport`.

        Args:
            transport: Endpoint this channel owns exclusively
            config: Channel settings (defaults: no timeout)
        """
        self.config = config or ChannelConfig()
        self._transport = transport
        self._registry = AnswerRegistry()
        self._dispatcher = CallDispatcher(transport.send, self.config.name)
        self._router = MessageRouter(
            self._registry, self._dispatcher, transport.send, self.config.name
        )
        self._closed = False

        transport.on_receive(self._router.handle_inbound)
        logger.info(f"Channel '{self.config.name}' attached to {type(transport).__name__}")

    @property
    def transport(self) -> Transport:
        """Access the underlying transport."""
        return self._transport

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_count(self) -> int:
        """Number of calls still waiting for settlement."""
        return self._dispatcher.pending_count

    @property
    def answers(self) -> list[str]:
        """Event names this channel currently answers."""
        return self._registry.events()

    def call(
        self,
        event: str,
        payload: Any = None,
        *,
        timeout: float | None = None,
    ) -> asyncio.Future[Any]:
        """Call the peer's handler for `event`.

        The request is sent before this method returns. Must be called
        from a running event loop.

        Args:
            event: Event name bound on the peer via answer()
            payload: Opaque, serializable request payload
            timeout: Seconds before rejecting with CallTimeoutError
                     (default: config.default_timeout, None = wait indefinitely)

        Returns:
            Future resolving to the handler's result. It is rejected with
            NoHandlerError, HandlerError, CallTimeoutError or
            ChannelClosedError on failure.

        Raises:
            ValueError: If event is empty or timeout is not positive
        """
        if not isinstance(event, str) or not event:
            raise ValueError("Event name must be a non-empty string")
        if timeout is None:
            timeout = self.config.default_timeout
        elif timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")

        return self._dispatcher.call(event, payload, timeout)

    def answer(self, event: str, handler: Handler) -> None:
        """Bind `handler` to `event`, replacing any previous handler.

        The handler receives the request payload and may be a plain
        function or a coroutine function.
        """
        if self._closed:
            logger.warning(f"Channel '{self.config.name}' closed, ignoring answer for '{event}'")
            return
        self._registry.register(event, handler)

    def unanswer(self, event: str) -> bool:
        """Remove the handler for `event`. Returns True if one was bound."""
        return self._registry.unregister(event)

    def close(self) -> None:
        """Tear the channel down. Safe to call more than once.

        Detaches from the transport, cancels running handlers, clears the
        answer table and rejects every pending call with ChannelClosedError.
        """
        if self._closed:
            return
        self._closed = True

        self._transport.on_receive(None)
        self._router.close()
        self._registry.clear()
        self._dispatcher.close()
        logger.info(f"Channel '{self.config.name}' closed")

    async def aclose(self) -> None:
        """Close and wait for cancelled handlers to unwind."""
        self.close()
        await self._router.wait_closed()

    async def __aenter__(self) -> Channel:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()


def create(transport: Transport, config: ChannelConfig | None = None) -> Channel:
    """Create a channel bound to `transport`.

    Args:
        transport: Endpoint the channel owns exclusively
        config: Channel settings

    Returns:
        A new Channel registered as the transport's inbound handler
    """
    return Channel(transport, config)
