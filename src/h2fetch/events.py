"""
Event adapters for h2fetch.

``TransportEventAdapter`` turns transport events (connected, readable,
writable, closed) into session actions. ``ProtocolEventAdapter`` receives
the protocol engine callbacks and turns them into output and session
actions for the connection's single stream.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from .engine import Frame, FrameType, HeadersCategory
from .exceptions import ConnectionError, ProtocolError, TimeoutError
from .output import OutputSink, write_headers
from .state import CloseReason

if TYPE_CHECKING:
    from .session import SessionContext  # Forward reference

logger = logging.getLogger(__name__)


class TransportEventKind(Enum):
    """Kinds of events a transport reports."""
    CONNECTED = "connected"
    READABLE = "readable"
    WRITABLE = "writable"
    EOF = "eof"
    ERROR = "error"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class TransportEvent:
    """A single transport event, with inbound bytes or an error attached."""

    kind: TransportEventKind
    data: bytes = b""
    error: Optional[BaseException] = None

    @classmethod
    def connected(cls) -> "TransportEvent":
        return cls(TransportEventKind.CONNECTED)

    @classmethod
    def readable(cls, data: bytes) -> "TransportEvent":
        return cls(TransportEventKind.READABLE, data=data)

    @classmethod
    def writable(cls) -> "TransportEvent":
        return cls(TransportEventKind.WRITABLE)

    @classmethod
    def eof(cls) -> "TransportEvent":
        return cls(TransportEventKind.EOF)

    @classmethod
    def failed(cls, error: BaseException) -> "TransportEvent":
        return cls(TransportEventKind.ERROR, error=error)

    @classmethod
    def timeout(cls, seconds: Optional[float] = None) -> "TransportEvent":
        error = TimeoutError("No data received from the remote host", timeout=seconds)
        return cls(TransportEventKind.TIMEOUT, error=error)

    @property
    def is_terminal(self) -> bool:
        return self.kind in (
            TransportEventKind.EOF,
            TransportEventKind.ERROR,
            TransportEventKind.TIMEOUT,
        )


class TransportEventAdapter:
    """
    Applies transport events to a session.

    After every write that hands bytes to the transport, a WRITABLE event is
    queued; processing it is the only place where a graceful close is
    decided.
    """

    def __init__(self, session: "SessionContext", events: "asyncio.Queue[TransportEvent]"):
        self._session = session
        self._events = events

    async def dispatch(self, event: TransportEvent) -> None:
        """Handle one transport event."""
        if self._session.closed:
            logger.debug(f"Ignoring {event.kind.value} event on closed session")
            return

        if event.kind is TransportEventKind.CONNECTED:
            await self.on_connected()
        elif event.kind is TransportEventKind.READABLE:
            await self.on_readable(event.data)
        elif event.kind is TransportEventKind.WRITABLE:
            await self.on_writable()
        else:
            await self.on_closed(event)

    async def on_connected(self) -> None:
        logger.info("Connected")
        await self._session.initialize()
        await self._write_outbound()

    async def on_readable(self, data: bytes) -> None:
        session = self._session
        try:
            consumed = session.receive(data)
        except ProtocolError as e:
            logger.error(f"Fatal error: {e.message}")
            await session.teardown(CloseReason.PROTOCOL_ERROR, e)
            return

        logger.debug(f"Engine consumed {consumed} of {len(data)} bytes")
        session.flush()
        await self._write_outbound()

    async def on_writable(self) -> None:
        session = self._session
        if session.is_drained():
            logger.debug("Exchange drained, closing connection")
            await session.teardown(CloseReason.COMPLETED)

    async def on_closed(self, event: TransportEvent) -> None:
        if event.kind is TransportEventKind.EOF:
            logger.warning("Disconnected from the remote host")
            reason = CloseReason.PEER_CLOSED
            error = ConnectionError("Disconnected from the remote host")
        elif event.kind is TransportEventKind.TIMEOUT:
            logger.warning("Timeout")
            reason = CloseReason.TIMEOUT
            error = event.error or TimeoutError("No data received from the remote host")
        else:
            logger.warning(f"Network error: {event.error}")
            reason = CloseReason.NETWORK_ERROR
            error = ConnectionError(f"Network error: {event.error}", event.error)
        await self._session.teardown(reason, error)

    async def _write_outbound(self) -> None:
        session = self._session
        if session.closed or session.transport is None:
            return

        data = session.take_outbound()
        if not data:
            return

        try:
            await session.transport.write(data)
        except OSError as e:
            await self.on_closed(TransportEvent.failed(e))
            return

        logger.debug(f"Wrote {len(data)} bytes")
        self._events.put_nowait(TransportEvent.writable())


class ProtocolEventAdapter:
    """
    Engine callbacks for a session.

    Only frames belonging to the session's stream descriptor produce
    output; everything else is ignored.
    """

    def __init__(self, session: "SessionContext", output: OutputSink, diagnostics: OutputSink):
        self._session = session
        self._output = output
        self._diagnostics = diagnostics

    def _is_tracked(self, stream_id: int) -> bool:
        descriptor = self._session.lookup_stream(stream_id)
        return descriptor is not None and descriptor is self._session.stream

    def send_bytes(self, data: bytes) -> None:
        self._session.append_outbound(data)

    def before_frame_send(self, frame: Frame, context: Any) -> None:
        if (
            frame.type is FrameType.HEADERS
            and frame.category is HeadersCategory.REQUEST
            and context is not None
            and context is self._session.stream
        ):
            self._session.register_stream(frame.stream_id, context)

    def on_frame_recv(self, frame: Frame) -> None:
        if (
            frame.type is FrameType.HEADERS
            and frame.category is HeadersCategory.RESPONSE
            and self._is_tracked(frame.stream_id)
        ):
            write_headers(self._diagnostics, "Response headers", frame.headers)

    def on_data_chunk_recv(self, stream_id: int, data: bytes) -> None:
        if self._is_tracked(stream_id):
            self._output.write(data)

    def on_stream_close(self, stream_id: int, error_code: int) -> None:
        if not self._is_tracked(stream_id):
            return
        logger.info(f"Stream {stream_id} closed with error_code={error_code}")
        self._session.request_termination(error_code)
