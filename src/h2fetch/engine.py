"""
HTTP/2 protocol engine for h2fetch.

``H2Engine`` wraps ``h2.connection.H2Connection`` behind a byte-in /
byte-out interface with five callbacks, so the session never looks at the
HTTP/2 state machine directly:

- ``send_bytes``: serialized frames ready for the transport
- ``before_frame_send``: a frame is about to be serialized
- ``on_frame_recv``: a complete frame was received
- ``on_data_chunk_recv``: a chunk of DATA payload was received
- ``on_stream_close``: a stream was closed, with its error code

Requests are queued by ``submit_request`` and only get a stream id when
``send`` serializes them.
"""

import logging
from collections import deque
from enum import Enum
from typing import Any, Deque, Dict, List, NamedTuple, Optional, Set, Tuple

import h2.config
import h2.connection
import h2.events
import h2.exceptions
from h2.errors import ErrorCodes
from h2.settings import SettingCodes, Settings
from typing_extensions import Protocol

from .exceptions import ProtocolError

logger = logging.getLogger(__name__)

Headers = List[Tuple[bytes, bytes]]

CONNECTION_PREFACE = b"PRI * HTTP/2.0\r\n\r\nSM\r\n\r\n"


class FrameType(Enum):
    """HTTP/2 frame types reported to callbacks."""
    DATA = 0x0
    HEADERS = 0x1
    PRIORITY = 0x2
    RST_STREAM = 0x3
    SETTINGS = 0x4
    PUSH_PROMISE = 0x5
    PING = 0x6
    GOAWAY = 0x7
    WINDOW_UPDATE = 0x8


class HeadersCategory(Enum):
    """Role of a HEADERS frame within its stream."""
    REQUEST = "request"
    RESPONSE = "response"
    PUSH_RESPONSE = "push_response"
    HEADERS = "headers"  # trailers and other non-initial header blocks


class Frame(NamedTuple):
    """Description of a frame handed to engine callbacks."""
    type: FrameType
    stream_id: int
    category: Optional[HeadersCategory] = None
    headers: Tuple[Tuple[bytes, bytes], ...] = ()
    error_code: Optional[int] = None


class EngineCallbacks(Protocol):
    """Callbacks the engine invokes while sending and receiving."""

    def send_bytes(self, data: bytes) -> None: ...

    def before_frame_send(self, frame: Frame, context: Any) -> None: ...

    def on_frame_recv(self, frame: Frame) -> None: ...

    def on_data_chunk_recv(self, stream_id: int, data: bytes) -> None: ...

    def on_stream_close(self, stream_id: int, error_code: int) -> None: ...


class _PendingRequest(NamedTuple):
    headers: Headers
    context: Any


class _GracefulH2Connection(h2.connection.H2Connection):
    """
    H2Connection that keeps reading the streams a peer GOAWAY still covers.

    h2 closes its connection state machine on any received GOAWAY, after
    which frames for streams at or below the peer's last stream id would be
    rejected. The open state is kept while such a stream is still open; our
    own GOAWAY closes it later.
    """

    def _receive_goaway_frame(self, frame):
        previous = self.state_machine.state
        frames, events = super()._receive_goaway_frame(frame)
        if previous is h2.connection.ConnectionState.CLIENT_OPEN and any(
            stream_id <= frame.last_stream_id and not stream.closed
            for stream_id, stream in self.streams.items()
        ):
            self.state_machine.state = previous
        return frames, events


class H2Engine:
    """
    Client-side HTTP/2 engine.

    The engine owns every protocol state transition: settings negotiation,
    stream states and flow-control windows. Received DATA is acknowledged
    immediately so the peer's window never stalls.
    """

    DEFAULT_MAX_CONCURRENT_STREAMS = 100

    def __init__(self, callbacks: EngineCallbacks) -> None:
        config = h2.config.H2Configuration(
            client_side=True,
            header_encoding=None,
        )
        self._conn = _GracefulH2Connection(config=config)
        self._callbacks = callbacks
        self._pending_requests: Deque[_PendingRequest] = deque()
        self._open_streams: Set[int] = set()
        self._initiated = False
        self._initial_output = b""
        self._output_pending = False
        self._terminated = False
        self._goaway_sent = False
        self._goaway_received = False
        self._bytes_sent = 0
        self._bytes_received = 0

        logger.debug("HTTP/2 engine initialized")

    def submit_settings(self, settings: Optional[Dict[int, int]] = None) -> None:
        """
        Queue the initial SETTINGS frame.

        The connection preface is not part of the queued bytes; the caller
        writes it to the transport first.

        Args:
            settings: Mapping of SettingCodes to values, applied on top of
                      MAX_CONCURRENT_STREAMS=100 and the protocol defaults.
        """
        if self._initiated:
            self._conn.update_settings(settings or {})
            self._output_pending = True
            return

        initial_values = {
            SettingCodes.MAX_CONCURRENT_STREAMS: self.DEFAULT_MAX_CONCURRENT_STREAMS,
            SettingCodes.MAX_HEADER_LIST_SIZE: self._conn.DEFAULT_MAX_HEADER_LIST_SIZE,
        }
        initial_values.update(settings or {})
        self._conn.local_settings = Settings(client=True, initial_values=initial_values)
        self._conn.initiate_connection()
        self._initiated = True

        # h2 always queues the client preface ahead of SETTINGS
        queued = self._conn.data_to_send()
        if queued.startswith(CONNECTION_PREFACE):
            queued = queued[len(CONNECTION_PREFACE):]
        self._initial_output = queued
        self._output_pending = True

    def submit_request(self, headers: Headers, context: Any = None) -> None:
        """
        Queue a body-less request.

        The stream id is chosen when the HEADERS frame is serialized by
        ``send``; ``before_frame_send`` receives ``context`` at that point.
        """
        if not self._initiated:
            raise ProtocolError("Request submitted before SETTINGS")
        if self._goaway_sent or self._goaway_received:
            raise ProtocolError("Request submitted after GOAWAY")
        self._pending_requests.append(_PendingRequest(list(headers), context))

    def submit_goaway(self, error_code: int = ErrorCodes.NO_ERROR) -> None:
        """Queue a GOAWAY frame terminating the connection."""
        self._conn.close_connection(error_code=error_code)
        self._goaway_sent = True
        self._output_pending = True

    def send(self) -> int:
        """
        Serialize all queued frames and pass them to ``send_bytes``.

        Returns:
            The number of bytes emitted
        """
        chunks = [self._initial_output]
        self._initial_output = b""

        while self._pending_requests:
            request = self._pending_requests.popleft()
            # flush what is queued so far to keep emission order
            chunks.append(self._conn.data_to_send())
            stream_id = self._conn.get_next_available_stream_id()
            frame = Frame(
                type=FrameType.HEADERS,
                stream_id=stream_id,
                category=HeadersCategory.REQUEST,
                headers=tuple(request.headers),
            )
            self._callbacks.before_frame_send(frame, request.context)
            self._conn.send_headers(stream_id, request.headers, end_stream=True)
            self._open_streams.add(stream_id)

        chunks.append(self._conn.data_to_send())
        self._output_pending = False

        data = b"".join(chunks)
        if data:
            self._bytes_sent += len(data)
            self._callbacks.send_bytes(data)
        return len(data)

    def receive(self, data: bytes) -> int:
        """
        Feed inbound bytes to the engine.

        Partial frames are buffered by the engine. Callbacks fire for every
        complete frame before this returns. Once our GOAWAY is queued and no
        stream is left open, inbound bytes are discarded unread.

        Returns:
            The number of bytes consumed

        Raises:
            ProtocolError: If the bytes violate the protocol. The engine is
                unusable afterwards.
        """
        if self._terminated:
            raise ProtocolError("Engine already failed")

        if self._goaway_sent and not self._open_streams:
            logger.debug(f"Discarding {len(data)} bytes received after GOAWAY")
            self._bytes_received += len(data)
            return len(data)

        try:
            events = self._conn.receive_data(data)
        except h2.exceptions.ProtocolError as e:
            self._terminated = True
            raise ProtocolError(str(e) or type(e).__name__, cause=e)

        self._bytes_received += len(data)
        self._output_pending = True

        for event in events:
            self._dispatch(event)
        return len(data)

    def _dispatch(self, event: h2.events.Event) -> None:
        callbacks = self._callbacks

        if isinstance(event, (h2.events.ResponseReceived, h2.events.InformationalResponseReceived)):
            callbacks.on_frame_recv(Frame(
                type=FrameType.HEADERS,
                stream_id=event.stream_id,
                category=HeadersCategory.RESPONSE,
                headers=tuple(event.headers),
            ))

        elif isinstance(event, h2.events.TrailersReceived):
            callbacks.on_frame_recv(Frame(
                type=FrameType.HEADERS,
                stream_id=event.stream_id,
                category=HeadersCategory.HEADERS,
                headers=tuple(event.headers),
            ))

        elif isinstance(event, h2.events.DataReceived):
            if event.flow_controlled_length:
                self._conn.acknowledge_received_data(
                    event.flow_controlled_length, event.stream_id
                )
            callbacks.on_data_chunk_recv(event.stream_id, event.data)
            callbacks.on_frame_recv(Frame(type=FrameType.DATA, stream_id=event.stream_id))

        elif isinstance(event, h2.events.StreamEnded):
            # requests are sent with END_STREAM, so the stream is now closed
            self._close_stream(event.stream_id, ErrorCodes.NO_ERROR)

        elif isinstance(event, h2.events.StreamReset):
            callbacks.on_frame_recv(Frame(
                type=FrameType.RST_STREAM,
                stream_id=event.stream_id,
                error_code=int(event.error_code),
            ))
            self._close_stream(event.stream_id, int(event.error_code))

        elif isinstance(event, (h2.events.RemoteSettingsChanged, h2.events.SettingsAcknowledged)):
            callbacks.on_frame_recv(Frame(type=FrameType.SETTINGS, stream_id=0))

        elif isinstance(event, (h2.events.PingReceived, h2.events.PingAckReceived)):
            callbacks.on_frame_recv(Frame(type=FrameType.PING, stream_id=0))

        elif isinstance(event, h2.events.WindowUpdated):
            callbacks.on_frame_recv(Frame(
                type=FrameType.WINDOW_UPDATE, stream_id=event.stream_id
            ))

        elif isinstance(event, h2.events.PriorityUpdated):
            callbacks.on_frame_recv(Frame(type=FrameType.PRIORITY, stream_id=event.stream_id))

        elif isinstance(event, h2.events.PushedStreamReceived):
            # only the requested stream is of interest
            if self._conn.state_machine.state is not h2.connection.ConnectionState.CLOSED:
                self._conn.reset_stream(event.pushed_stream_id, ErrorCodes.REFUSED_STREAM)
            callbacks.on_frame_recv(Frame(
                type=FrameType.PUSH_PROMISE,
                stream_id=event.parent_stream_id,
                headers=tuple(event.headers),
            ))

        elif isinstance(event, h2.events.ConnectionTerminated):
            self._goaway_received = True
            error_code = int(event.error_code) if event.error_code is not None else 0
            callbacks.on_frame_recv(Frame(
                type=FrameType.GOAWAY, stream_id=0, error_code=error_code
            ))
            last_stream_id = event.last_stream_id
            for stream_id in sorted(self._open_streams):
                if last_stream_id is None or stream_id > last_stream_id:
                    self._close_stream(stream_id, ErrorCodes.REFUSED_STREAM)

        else:
            logger.debug(f"Ignoring engine event {type(event).__name__}")

    def _close_stream(self, stream_id: int, error_code: int) -> None:
        if stream_id not in self._open_streams:
            return
        self._open_streams.discard(stream_id)
        self._callbacks.on_stream_close(stream_id, int(error_code))

    @property
    def want_read(self) -> bool:
        """Whether the engine still expects bytes from the peer."""
        if self._terminated:
            return False
        if self._open_streams:
            return True
        return self._conn.state_machine.state is not h2.connection.ConnectionState.CLOSED

    @property
    def want_write(self) -> bool:
        """Whether the engine has frames waiting for ``send``."""
        if self._terminated:
            return False
        return bool(self._pending_requests) or self._output_pending

    @property
    def open_streams(self) -> Set[int]:
        return set(self._open_streams)

    @property
    def metrics(self) -> Dict[str, Any]:
        """
        Get engine metrics.

        Returns:
            Dictionary with byte counters and stream state
        """
        return {
            "bytes_sent": self._bytes_sent,
            "bytes_received": self._bytes_received,
            "open_streams": len(self._open_streams),
            "pending_requests": len(self._pending_requests),
            "terminated": self._terminated,
        }
