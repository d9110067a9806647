"""Message router - classifies inbound envelopes and dispatches them.

Requests go to the answer registry, responses and errors go to the call
dispatcher. Routing is synchronous and never waits on a handler: each
handler runs in its own task, so a slow or reentrant handler (one that
itself awaits a call to the peer) never stalls later envelopes.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable

from .dispatcher import CallDispatcher
from .errors import HandlerError, NoHandlerError, RemoteError
from .protocol import Envelope, EnvelopeKind
from .registry import AnswerEntry, AnswerRegistry

logger = logging.getLogger(__name__)


class MessageRouter:
    """Routes every inbound envelope, in arrival order, one at a time.

    Handler failures are converted into error envelopes here and never
    propagate to the transport.
    """

    def __init__(
        self,
        registry: AnswerRegistry,
        dispatcher: CallDispatcher,
        send: Callable[[Envelope], None],
        name: str = "channel",
    ) -> None:
        self._registry = registry
        self._dispatcher = dispatcher
        self._send = send
        self._name = name
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def active_handlers(self) -> int:
        """Number of handler tasks still running."""
        return len(self._tasks)

    def handle_inbound(self, envelope: Envelope) -> None:
        """Classify and dispatch one inbound envelope."""
        if self._closed:
            logger.debug(f"[{self._name}] closed, ignoring envelope id={envelope.id}")
            return

        match envelope.kind:
            case EnvelopeKind.REQUEST:
                self._handle_request(envelope)

            case EnvelopeKind.RESPONSE:
                if not self._dispatcher.resolve(envelope.id, envelope.payload):
                    logger.debug(f"[{self._name}] discarding orphaned response id={envelope.id}")

            case EnvelopeKind.ERROR:
                error = RemoteError.from_payload(envelope.payload)
                if not self._dispatcher.reject(envelope.id, error):
                    logger.debug(f"[{self._name}] discarding orphaned error id={envelope.id}")

    def close(self) -> None:
        """Stop routing and cancel in-flight handlers."""
        self._closed = True
        for task in list(self._tasks):
            task.cancel()

    async def wait_closed(self) -> None:
        """Wait for cancelled handler tasks to finish unwinding."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _handle_request(self, request: Envelope) -> None:
        entry = self._registry.lookup(request.event)
        if entry is None:
            logger.debug(f"[{self._name}] no handler for '{request.event}' (id={request.id})")
            self._reply(request, Envelope.error(request, NoHandlerError.for_event(request.event)))
            return

        task = asyncio.create_task(
            self._run_handler(entry, request),
            name=f"bridgecall:{request.event}#{request.id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_handler(self, entry: AnswerEntry, request: Envelope) -> None:
        try:
            result = entry.handler(request.payload)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            logger.warning(f"[{self._name}] handler for '{request.event}' failed: {e!r}")
            reply = Envelope.error(request, HandlerError.from_exception(request.event, e))
        else:
            reply = Envelope.response(request, result)

        if self._closed:
            logger.debug(f"[{self._name}] closed, dropping reply for id={request.id}")
            return
        self._reply(request, reply)

    def _reply(self, request: Envelope, reply: Envelope) -> None:
        try:
            self._send(reply)
        except Exception as e:
            if reply.is_response():
                # Typically an unserializable result; report it to the caller instead
                logger.warning(f"[{self._name}] could not send result for '{request.event}': {e}")
                error = HandlerError(f"Unsendable result: {e}", {"event": request.event})
                self._reply(request, Envelope.error(request, error))
            else:
                logger.exception(f"[{self._name}] could not send error reply id={request.id}")
