"""Call dispatcher - outbound calls and their pending bookkeeping.

Every outbound call gets a fresh integer id from a per-dispatcher counter
and a PendingCall entry keyed by that id. The entry is removed exactly once:
on response, error, timeout, channel close, or caller cancellation. Whoever
removes the entry is the only one allowed to complete its future.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import partial
from typing import Any

from .errors import CallTimeoutError, ChannelClosedError, InvariantError, SendError
from .protocol import Envelope

logger = logging.getLogger(__name__)


@dataclass
class PendingCall:
    """Bookkeeping for one outstanding call."""

    id: int
    event: str
    future: asyncio.Future[Any]
    created_at: float
    deadline: float | None = None
    timer: asyncio.TimerHandle | None = field(default=None, repr=False)

    def resolve(self, value: Any) -> None:
        """Complete the call successfully."""
        if self._prepare_settle():
            self.future.set_result(value)

    def reject(self, exc: BaseException) -> None:
        """Complete the call with a failure."""
        if self._prepare_settle():
            self.future.set_exception(exc)

    def _prepare_settle(self) -> bool:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None
        if self.future.cancelled():
            # Caller gave up; nothing left to deliver to
            return False
        if self.future.done():
            raise InvariantError(f"Call {self.id} ('{self.event}') settled twice")
        return True


class CallDispatcher:
    """Issues calls and settles them when matching envelopes arrive.

    Usage:
        dispatcher = CallDispatcher(transport.send)
        future = dispatcher.call("ping", None)
        ...
        dispatcher.resolve(envelope.id, envelope.payload)
    """

    def __init__(self, send: Callable[[Envelope], None], name: str = "channel") -> None:
        self._send = send
        self._name = name
        self._pending: dict[int, PendingCall] = {}
        self._ids = itertools.count(1)
        self._closed = False

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def is_pending(self, correlation_id: int) -> bool:
        return correlation_id in self._pending

    def call(self, event: str, payload: Any = None, timeout: float | None = None) -> asyncio.Future[Any]:
        """Send a request and return a future for its outcome.

        Args:
            event: Event name the peer's handler is bound to
            payload: Opaque request payload
            timeout: Seconds to wait before rejecting with CallTimeoutError
                     (None waits indefinitely)

        Returns:
            Future resolved with the peer's result or rejected with an error
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()

        if self._closed:
            future.set_exception(ChannelClosedError())
            return future

        correlation_id = next(self._ids)
        if correlation_id in self._pending:
            raise InvariantError(f"Correlation id {correlation_id} already pending")

        now = loop.time()
        pending = PendingCall(
            id=correlation_id,
            event=event,
            future=future,
            created_at=now,
            deadline=now + timeout if timeout is not None else None,
        )
        self._pending[correlation_id] = pending

        if timeout is not None:
            pending.timer = loop.call_later(timeout, self._expire, correlation_id, timeout)
        future.add_done_callback(partial(self._forget_cancelled, correlation_id))

        logger.debug(f"[{self._name}] call '{event}' (id={correlation_id})")
        try:
            self._send(Envelope.request(correlation_id, event, payload))
        except Exception as e:
            logger.warning(f"[{self._name}] failed to send '{event}' (id={correlation_id}): {e}")
            self.reject(correlation_id, SendError(event, e))

        return future

    def resolve(self, correlation_id: int, value: Any) -> bool:
        """Settle a pending call successfully.

        Returns:
            False if no call with that id is pending (orphaned response)
        """
        pending = self._pending.pop(correlation_id, None)
        if pending is None:
            return False
        pending.resolve(value)
        return True

    def reject(self, correlation_id: int, exc: BaseException) -> bool:
        """Settle a pending call as failed.

        Returns:
            False if no call with that id is pending (orphaned error)
        """
        pending = self._pending.pop(correlation_id, None)
        if pending is None:
            return False
        pending.reject(exc)
        return True

    def close(self) -> None:
        """Reject every pending call with ChannelClosedError and stop issuing."""
        self._closed = True
        pending_calls = list(self._pending.values())
        self._pending.clear()

        for pending in pending_calls:
            pending.reject(ChannelClosedError(f"Channel closed while '{pending.event}' was pending"))

        if pending_calls:
            logger.info(f"[{self._name}] rejected {len(pending_calls)} pending call(s) on close")

    def _expire(self, correlation_id: int, timeout: float) -> None:
        pending = self._pending.pop(correlation_id, None)
        if pending is None:
            return
        # The timer is firing right now; don't cancel it again
        pending.timer = None
        logger.debug(f"[{self._name}] call '{pending.event}' (id={correlation_id}) timed out")
        pending.reject(CallTimeoutError(pending.event, timeout))

    def _forget_cancelled(self, correlation_id: int, future: asyncio.Future[Any]) -> None:
        if not future.cancelled():
            return
        pending = self._pending.get(correlation_id)
        if pending is not None and pending.future is future:
            del self._pending[correlation_id]
            if pending.timer is not None:
                pending.timer.cancel()
            logger.debug(f"[{self._name}] call '{pending.event}' (id={correlation_id}) cancelled")
