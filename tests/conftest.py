"""
Pytest configuration for h2fetch tests.

This file contains shared fixtures, including an in-memory HTTP/2 server
peer that answers the client's request through a mock network stream.
"""

import io
from typing import Iterable, List, Optional, Tuple

import h2.config
import h2.connection
import h2.events
import pytest

from h2fetch.network.mock import MockNetworkBackend, MockNetworkStream
from h2fetch.network.resolver import StaticResolver
from h2fetch.output import OutputSink


class H2PeerStream(MockNetworkStream):
    """
    Mock stream with an h2 server on the other end.

    Every byte the client writes is fed to the server connection; whatever
    the server produces becomes readable by the client.
    """

    def __init__(
        self,
        status: bytes = b"200",
        headers: Optional[List[Tuple[bytes, bytes]]] = None,
        body_chunks: Iterable[bytes] = (b"hello world",),
        reset_code: Optional[int] = None,
        respond: bool = True,
        goaway_last_stream_id: Optional[int] = None,
    ):
        super().__init__()
        config = h2.config.H2Configuration(client_side=False, header_encoding=None)
        self.server = h2.connection.H2Connection(config=config)
        self.server.initiate_connection()
        self.status = status
        self.response_headers = list(headers or [(b"content-type", b"text/plain")])
        self.body_chunks = list(body_chunks)
        self.reset_code = reset_code
        self.respond = respond
        self.goaway_last_stream_id = goaway_last_stream_id
        self.requests: List[List[Tuple[bytes, bytes]]] = []
        self.received_events: List[h2.events.Event] = []
        self.goaway_received = False

    def on_write(self, data: bytes) -> None:
        for event in self.server.receive_data(data):
            self.received_events.append(event)
            if isinstance(event, h2.events.RequestReceived):
                self.requests.append([tuple(header) for header in event.headers])
                if self.respond:
                    self._respond(event.stream_id)
            elif isinstance(event, h2.events.ConnectionTerminated):
                self.goaway_received = True

        outbound = self.server.data_to_send()
        if outbound:
            self.add_data(outbound)

    def _respond(self, stream_id: int) -> None:
        if self.reset_code is not None:
            self.server.reset_stream(stream_id, self.reset_code)
            return

        preamble = self.server.data_to_send()
        headers = [(b":status", self.status)] + self.response_headers
        self.server.send_headers(stream_id, headers, end_stream=not self.body_chunks)
        for index, chunk in enumerate(self.body_chunks):
            last = index == len(self.body_chunks) - 1
            self.server.send_data(stream_id, chunk, end_stream=last)
        response = self.server.data_to_send()

        if self.goaway_last_stream_id is not None:
            # shutdown announced ahead of the response it still covers
            self.server.close_connection(last_stream_id=self.goaway_last_stream_id)
            response = self.server.data_to_send() + response
        self.add_data(preamble + response)


@pytest.fixture
def output_buffer():
    """Buffer standing in for stdout."""
    return io.BytesIO()


@pytest.fixture
def diagnostics_buffer():
    """Buffer standing in for stderr."""
    return io.BytesIO()


@pytest.fixture
def output(output_buffer):
    return OutputSink(output_buffer, "output")


@pytest.fixture
def diagnostics(diagnostics_buffer):
    return OutputSink(diagnostics_buffer, "diagnostic")


@pytest.fixture
def resolver():
    """Resolver that knows the test hosts."""
    return StaticResolver({"example.test": "192.0.2.10"})


@pytest.fixture
def peer_factory():
    """Create an h2 server peer stream."""
    def _create(**kwargs) -> H2PeerStream:
        return H2PeerStream(**kwargs)
    return _create


@pytest.fixture
def backend_for():
    """Create a mock backend that serves every connection with ``stream``."""
    def _create(stream: MockNetworkStream, **kwargs) -> MockNetworkBackend:
        return MockNetworkBackend(stream_factory=lambda: stream, **kwargs)
    return _create


@pytest.fixture
def negotiated_stream():
    """Create a mock stream that already negotiated ``protocol``."""
    def _create(protocol: Optional[str] = "h2", stream: Optional[MockNetworkStream] = None):
        stream = stream if stream is not None else MockNetworkStream()
        stream.set_extra_info("selected_alpn_protocol", protocol)
        return stream
    return _create
