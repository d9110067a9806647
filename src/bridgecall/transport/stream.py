"""Newline-delimited JSON transport over asyncio streams.

Works with anything that yields an asyncio StreamReader/StreamWriter pair:
pipes, TCP or Unix sockets, subprocess stdin/stdout.

Wire format (newline-delimited JSON, UTF-8 encoded):
    {"id": 1, "event": "ping", "kind": "request", "payload": null}\\n
    {"id": 1, "event": "ping", "kind": "response", "payload": "pong"}\\n

Cross-platform considerations:
- All JSON is UTF-8 encoded (no BOM)
- Newlines are always LF (\\n), never CRLF
- Input accepts both LF and CRLF, and a leading BOM is stripped
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

from pydantic import ValidationError

from ..protocol import Envelope
from .base import BaseTransport

logger = logging.getLogger(__name__)

# UTF-8 encoding for all JSON operations
ENCODING = "utf-8"

# Newline character (always LF for cross-platform consistency)
NEWLINE = "\n"

# Largest accepted inbound line; longer lines are discarded
DEFAULT_MAX_LINE_SIZE = 16 * 1024 * 1024


class StreamTransport(BaseTransport):
    """Transport over an asyncio StreamReader/StreamWriter pair.

    Usage:
        reader, writer = await asyncio.open_connection(host, port)
        transport = StreamTransport(reader, writer)
        channel = create(transport)
        transport.start()
        ...
        channel.close()
        await transport.aclose()

    Sends are written without draining: the transport has no backpressure,
    matching the fire-and-forget contract.

    Inbound lines may exceed the reader's buffer limit; they are reassembled
    up to `max_line_size` bytes. Longer lines are discarded with a warning.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        max_line_size: int = DEFAULT_MAX_LINE_SIZE,
    ) -> None:
        if max_line_size <= 0:
            raise ValueError(f"max_line_size must be positive, got {max_line_size}")
        super().__init__()
        self._reader = reader
        self._writer = writer
        self._max_line_size = max_line_size
        self._reader_task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def is_running(self) -> bool:
        """Check if the background reader is active."""
        return self._reader_task is not None and not self._reader_task.done()

    def start(self) -> None:
        """Start the background reader task."""
        if self._closed:
            raise ConnectionError("Transport closed")
        if self.is_running:
            return
        self._reader_task = asyncio.create_task(self._read_loop())
        logger.info(f"{self.__class__.__name__} started")

    def send(self, envelope: Envelope) -> None:
        """Write the envelope as a JSON line."""
        if self._closed or self._writer.is_closing():
            raise ConnectionError("Stream not writable")

        line = envelope.model_dump_json() + NEWLINE
        self._writer.write(line.encode(ENCODING))

    async def drain(self) -> None:
        """Wait until buffered output has been flushed."""
        await self._writer.drain()

    async def aclose(self) -> None:
        """Stop reading and close the writer."""
        if self._closed:
            return
        self._closed = True

        if self._reader_task:
            self._reader_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task
            self._reader_task = None

        self._writer.close()
        with contextlib.suppress(ConnectionError):
            await self._writer.wait_closed()
        logger.info(f"{self.__class__.__name__} closed")

    async def _read_loop(self) -> None:
        """Background task reading envelopes and delivering them in order."""
        try:
            while True:
                line = await self._read_line()
                if line is None:
                    continue
                if not line:
                    # EOF - peer went away
                    logger.info(f"{self.__class__.__name__} reached EOF")
                    break

                envelope = self._parse_line(line)
                if envelope is None:
                    continue

                try:
                    self._deliver(envelope)
                except Exception:
                    logger.exception(f"Receiver failed on envelope id={envelope.id}")
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error(f"Read loop error: {e}")

    async def _read_line(self) -> bytes | None:
        """Read one LF-terminated line of any length up to max_line_size.

        Returns b"" at EOF, and None when an oversized line was discarded.
        """
        buffer = bytearray()
        discarding = False
        while True:
            try:
                chunk = await self._reader.readuntil(NEWLINE.encode(ENCODING))
            except asyncio.IncompleteReadError as e:
                # EOF, possibly after a final unterminated line
                if discarding:
                    return None
                buffer += e.partial
                return bytes(buffer)
            except asyncio.LimitOverrunError as e:
                # Separator not within the reader's limit; take what is buffered
                chunk = await self._reader.readexactly(e.consumed)
                complete = False
            else:
                complete = True

            if not discarding:
                buffer += chunk
                if len(buffer) > self._max_line_size:
                    logger.warning(
                        f"Discarding inbound line longer than {self._max_line_size} bytes"
                    )
                    buffer.clear()
                    discarding = True

            if complete:
                return None if discarding else bytes(buffer)

    def _parse_line(self, line: bytes) -> Envelope | None:
        """Decode one raw line, or None if it is not a valid envelope."""
        try:
            line_str = line.decode(ENCODING).strip()
        except UnicodeDecodeError as e:
            logger.debug(f"Skipping line that is not valid {ENCODING}: {e}")
            return None

        # Skip UTF-8 BOM if present at start
        if line_str.startswith("\ufeff"):
            line_str = line_str[1:]
        if not line_str:
            return None

        # Skip non-JSON lines (e.g., log messages that leaked to the stream)
        if not line_str.startswith("{"):
            logger.debug(f"Skipping non-JSON line: {line_str[:50]}")
            return None

        try:
            return Envelope.model_validate_json(line_str)
        except ValidationError as e:
            logger.debug(f"Failed to parse envelope: {e} (line: {line_str[:50]})")
            return None
