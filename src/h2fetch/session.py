"""
Session context for h2fetch.

The ``SessionContext`` owns the transport, the protocol engine and the
resolver of one connection, together with the single stream descriptor the
connection exists for. Every transport and protocol event goes through it,
and its teardown releases all of those handles at once.
"""

import logging
from typing import Dict, Optional

from h2.errors import ErrorCodes
from h2.settings import SettingCodes

from .engine import CONNECTION_PREFACE, H2Engine
from .events import ProtocolEventAdapter
from .exceptions import H2FetchError, NegotiationError, StreamError
from .network.resolver import Resolver
from .network.stream import NetworkStream
from .network.utils import set_tcp_nodelay
from .output import OutputSink, write_headers
from .state import CloseReason, ConnectionState
from .target import StreamDescriptor

logger = logging.getLogger(__name__)


class SessionContext:
    """
    State of a single HTTP/2 connection carrying a single stream.

    The session is only ever driven by one coroutine at a time, so it holds
    no locks. Teardown is guarded by a one-shot flag and may be requested
    from any number of places.
    """

    ALPN_PROTOCOL = "h2"

    def __init__(
        self,
        stream: StreamDescriptor,
        output: OutputSink,
        diagnostics: OutputSink,
        resolver: Optional[Resolver] = None,
        max_concurrent_streams: Optional[int] = None,
    ):
        """
        Initialize the session.

        Args:
            stream: Descriptor of the request this connection carries
            output: Sink receiving the response body
            diagnostics: Sink receiving request and response headers
            resolver: Resolver used while connecting, released on teardown
            max_concurrent_streams: Value advertised in the initial SETTINGS
        """
        self.stream: Optional[StreamDescriptor] = stream
        self.resolver: Optional[Resolver] = resolver if resolver is not None else Resolver()
        self.transport: Optional[NetworkStream] = None
        self.engine: Optional[H2Engine] = None
        self.diagnostics = diagnostics
        self.protocol = ProtocolEventAdapter(self, output, diagnostics)

        self._max_concurrent_streams = (
            max_concurrent_streams or H2Engine.DEFAULT_MAX_CONCURRENT_STREAMS
        )
        self._streams: Dict[int, StreamDescriptor] = {}
        self._outbound = bytearray()
        self._state = ConnectionState.IDLE
        self._closed = False

        self.close_reason: Optional[CloseReason] = None
        self.stream_error_code: Optional[int] = None
        self.error: Optional[H2FetchError] = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def transition(self, state: ConnectionState) -> None:
        """
        Move the session to a later state.

        Raises:
            StreamError: If ``state`` is not later than the current state
        """
        if state.rank <= self._state.rank:
            raise StreamError(
                f"Illegal transition {self._state.value} -> {state.value}"
            )
        logger.debug(f"Session state {self._state.value} -> {state.value}")
        self._state = state

    def attach_transport(self, transport: NetworkStream) -> None:
        """Take ownership of the connected transport."""
        if self._closed:
            raise StreamError("Session already closed")
        self.transport = transport

    async def initialize(self) -> None:
        """
        Start HTTP/2 on a freshly connected transport.

        Checks the negotiated protocol, creates the engine, queues the
        connection preface, the initial SETTINGS and the request, and
        serializes them into the outbound buffer.

        Raises:
            NegotiationError: If the peer did not select h2. The session is
                torn down before this is raised.
        """
        if self._closed or self.transport is None:
            raise StreamError("Session has no open transport")

        selected = self.transport.get_extra_info("selected_alpn_protocol")
        if selected != self.ALPN_PROTOCOL:
            error = NegotiationError(
                f"Server did not advertise {self.ALPN_PROTOCOL}",
                selected_protocol=selected,
            )
            await self.teardown(CloseReason.NEGOTIATION_FAILED, error)
            raise error

        self.transition(ConnectionState.ACTIVE)
        self._configure_transport()

        self.engine = H2Engine(self.protocol)
        self._outbound += CONNECTION_PREFACE
        self.engine.submit_settings({
            SettingCodes.MAX_CONCURRENT_STREAMS: self._max_concurrent_streams,
        })
        self.submit_request()
        self.flush()

    def _configure_transport(self) -> None:
        sock = self.transport.get_extra_info("socket")
        try:
            set_tcp_nodelay(sock)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not disable Nagle's algorithm: {e}")

    def submit_request(self) -> None:
        """Queue the GET request for the session's stream descriptor."""
        headers = self.stream.request_headers()
        write_headers(self.diagnostics, "Request headers", headers)
        self.engine.submit_request(headers, context=self.stream)

    def register_stream(self, stream_id: int, descriptor: StreamDescriptor) -> None:
        """Associate an engine stream id with a descriptor."""
        descriptor.assign_stream_id(stream_id)
        self._streams[stream_id] = descriptor

    def lookup_stream(self, stream_id: int) -> Optional[StreamDescriptor]:
        """Return the descriptor registered for ``stream_id``, if any."""
        return self._streams.get(stream_id)

    def append_outbound(self, data: bytes) -> None:
        self._outbound += data

    def take_outbound(self) -> bytes:
        """Remove and return everything waiting in the outbound buffer."""
        data = bytes(self._outbound)
        self._outbound.clear()
        return data

    @property
    def outbound_pending(self) -> int:
        return len(self._outbound)

    def flush(self) -> int:
        """Serialize every frame the engine has queued into the outbound buffer."""
        if self.engine is None:
            return 0
        sent = self.engine.send()
        if sent:
            logger.debug(f"Engine emitted {sent} bytes")
        return sent

    def receive(self, data: bytes) -> int:
        """
        Feed inbound transport bytes to the engine.

        Raises:
            ProtocolError: If the engine rejects the bytes
        """
        return self.engine.receive(data)

    def request_termination(self, error_code: int) -> None:
        """
        Record how the stream ended and queue a GOAWAY.

        The session stays open until the GOAWAY has been written out.
        """
        self.stream_error_code = error_code
        self.engine.submit_goaway(ErrorCodes.NO_ERROR)
        if self._state is ConnectionState.ACTIVE:
            self.transition(ConnectionState.DRAINING)

    def is_drained(self) -> bool:
        """Check whether there is nothing left to read or write."""
        if self.engine is None:
            return False
        return (
            not self.engine.want_read
            and not self.engine.want_write
            and not self._outbound
        )

    async def teardown(
        self,
        reason: CloseReason,
        error: Optional[H2FetchError] = None,
    ) -> None:
        """
        Release the transport, the engine, the resolver and the stream.

        Only the first call has any effect; ``reason`` and ``error`` of later
        calls are discarded.
        """
        if self._closed:
            return
        self._closed = True
        self.close_reason = reason
        self.error = error
        self.transition(ConnectionState.CLOSED)

        transport, self.transport = self.transport, None
        resolver, self.resolver = self.resolver, None
        self.engine = None
        self.stream = None
        self._streams.clear()
        self._outbound.clear()

        if resolver is not None:
            resolver.close()
        if transport is not None:
            await transport.aclose()

        logger.debug(f"Session closed ({reason.value})")
