"""
Connection driver for h2fetch.

The driver resolves the target, opens the TLS connection and then runs a
single-consumer loop over transport events until the session is closed.
A reader task only turns transport reads into events; the session itself
is only ever touched by the loop.
"""

import asyncio
import logging
from typing import NamedTuple, Optional, Union

from .events import TransportEvent, TransportEventAdapter
from .exceptions import ConnectionError, H2FetchError, TimeoutError
from .network.asyncio_backend import AsyncioNetworkBackend
from .network.backend import NetworkBackend
from .network.resolver import Resolver
from .network.stream import NetworkStream
from .output import OutputSink
from .session import SessionContext
from .state import CloseReason, ConnectionState
from .target import StreamDescriptor

logger = logging.getLogger(__name__)


class FetchResult(NamedTuple):
    """Outcome of a completed run."""
    close_reason: Optional[CloseReason]
    stream_id: Optional[int]
    stream_error_code: Optional[int]
    body_bytes: int
    error: Optional[H2FetchError] = None

    @property
    def completed(self) -> bool:
        return self.close_reason is CloseReason.COMPLETED


class ConnectionDriver:
    """
    Fetches one resource over one HTTP/2 connection.

    Transport failures end the run normally and are reported through the
    returned ``FetchResult``; only configuration and negotiation errors are
    raised.
    """

    # Default configuration
    DEFAULT_CONNECT_TIMEOUT = 30.0  # 30 seconds
    DEFAULT_READ_TIMEOUT = 60.0  # 1 minute without inbound bytes
    DEFAULT_READ_SIZE = 65536  # 64KB chunks
    ALPN_PROTOCOLS = ["h2"]

    def __init__(
        self,
        target: Union[str, StreamDescriptor],
        output: OutputSink,
        diagnostics: OutputSink,
        backend: Optional[NetworkBackend] = None,
        resolver: Optional[Resolver] = None,
        connect_timeout: Optional[float] = None,
        read_timeout: Optional[float] = None,
        read_size: Optional[int] = None,
        verify: bool = True,
    ):
        """
        Initialize the driver.

        Args:
            target: Target URI or an already built stream descriptor
            output: Sink receiving the response body
            diagnostics: Sink receiving request and response headers
            backend: Network backend, asyncio based by default
            resolver: Resolver used while connecting
            connect_timeout: Timeout for resolution, connect and handshake
            read_timeout: Longest wait for inbound bytes
            read_size: Maximum bytes per transport read
            verify: Whether to verify the peer certificate

        Raises:
            ConfigurationError: If ``target`` cannot be used
        """
        if isinstance(target, StreamDescriptor):
            self._descriptor = target
        else:
            self._descriptor = StreamDescriptor.from_target(target)

        self._output = output
        self._diagnostics = diagnostics
        self._backend = backend or AsyncioNetworkBackend(verify=verify)
        self._resolver = resolver
        self._connect_timeout = connect_timeout or self.DEFAULT_CONNECT_TIMEOUT
        self._read_timeout = read_timeout or self.DEFAULT_READ_TIMEOUT
        self._read_size = read_size or self.DEFAULT_READ_SIZE

        self.session: Optional[SessionContext] = None

    @property
    def descriptor(self) -> StreamDescriptor:
        return self._descriptor

    async def run(self) -> FetchResult:
        """
        Fetch the target.

        Returns:
            How the connection ended

        Raises:
            NegotiationError: If the peer does not speak h2
        """
        descriptor = self._descriptor
        session = SessionContext(
            descriptor,
            output=self._output,
            diagnostics=self._diagnostics,
            resolver=self._resolver,
        )
        self.session = session
        events: "asyncio.Queue[TransportEvent]" = asyncio.Queue()
        adapter = TransportEventAdapter(session, events)

        try:
            transport = await self._connect(session)
        except asyncio.TimeoutError:
            logger.warning("Timeout")
            error = TimeoutError(
                f"Connecting to {descriptor.host}", timeout=self._connect_timeout
            )
            await session.teardown(CloseReason.TIMEOUT, error)
            return self._result(session)
        except OSError as e:
            logger.warning(f"Could not connect to the remote host {descriptor.host}: {e}")
            error = ConnectionError(
                f"Could not connect to the remote host {descriptor.host}", e
            )
            await session.teardown(CloseReason.NETWORK_ERROR, error)
            return self._result(session)
        except BaseException:
            await session.teardown(CloseReason.ABORTED)
            raise

        session.attach_transport(transport)
        events.put_nowait(TransportEvent.connected())
        reader = asyncio.create_task(self._read_loop(transport, events))

        try:
            while not session.closed:
                event = await events.get()
                await adapter.dispatch(event)
        finally:
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass
            await session.teardown(CloseReason.ABORTED)

        return self._result(session)

    async def _connect(self, session: SessionContext) -> NetworkStream:
        descriptor = session.stream
        host, port = descriptor.host, descriptor.port

        session.transition(ConnectionState.RESOLVING)
        addresses = await asyncio.wait_for(
            session.resolver.resolve(host, port), self._connect_timeout
        )

        session.transition(ConnectionState.CONNECTING)
        stream = await self._backend.connect_tcp(
            host, port, timeout=self._connect_timeout, addresses=addresses
        )
        try:
            return await self._backend.connect_tls(
                stream,
                host,
                port,
                timeout=self._connect_timeout,
                alpn_protocols=list(self.ALPN_PROTOCOLS),
            )
        except BaseException:
            await stream.aclose()
            raise

    async def _read_loop(
        self,
        transport: NetworkStream,
        events: "asyncio.Queue[TransportEvent]",
    ) -> None:
        """Turn transport reads into events until the stream ends."""
        while True:
            try:
                data = await asyncio.wait_for(
                    transport.read(self._read_size), self._read_timeout
                )
            except asyncio.TimeoutError:
                events.put_nowait(TransportEvent.timeout(self._read_timeout))
                return
            except OSError as e:
                events.put_nowait(TransportEvent.failed(e))
                return
            except RuntimeError:
                if transport.is_closed:
                    return
                raise

            if not data:
                events.put_nowait(TransportEvent.eof())
                return
            events.put_nowait(TransportEvent.readable(data))

    def _result(self, session: SessionContext) -> FetchResult:
        return FetchResult(
            close_reason=session.close_reason,
            stream_id=self._descriptor.stream_id,
            stream_error_code=session.stream_error_code,
            body_bytes=self._output.bytes_written,
            error=session.error,
        )
