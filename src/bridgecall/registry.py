"""Answer registry - event name to handler bindings."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

# A handler takes the request payload and returns a result or an awaitable of one
Handler = Callable[[Any], Any]


@dataclass(frozen=True)
class AnswerEntry:
    """One handler bound to an event name."""

    event: str
    handler: Handler


class AnswerRegistry:
    """Per-channel table of answer entries.

    At most one entry per event name. Registering a name again replaces
    the previous handler (last write wins).
    """

    def __init__(self) -> None:
        self._entries: dict[str, AnswerEntry] = {}

    def register(self, event: str, handler: Handler) -> None:
        """Bind `handler` to `event`, replacing any existing binding.

        Raises:
            ValueError: If event is empty
            TypeError: If handler is not callable
        """
        if not isinstance(event, str) or not event:
            raise ValueError("Event name must be a non-empty string")
        if not callable(handler):
            raise TypeError(f"Handler for '{event}' is not callable: {handler!r}")

        if event in self._entries:
            logger.debug(f"Replacing handler for event: {event}")
        self._entries[event] = AnswerEntry(event=event, handler=handler)

    def unregister(self, event: str) -> bool:
        """Remove the binding for `event`. Returns True if one existed."""
        return self._entries.pop(event, None) is not None

    def lookup(self, event: str) -> AnswerEntry | None:
        return self._entries.get(event)

    def clear(self) -> None:
        self._entries.clear()

    def events(self) -> list[str]:
        """Names of all bound events, in registration order."""
        return list(self._entries)

    def __contains__(self, event: object) -> bool:
        return event in self._entries

    def __len__(self) -> int:
        return len(self._entries)
