"""
Mock network implementations for testing.

This module provides in-memory implementations of NetworkStream and
NetworkBackend so sessions can be driven without real sockets.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple

from .backend import NetworkBackend
from .resolver import Address
from .stream import NetworkStream


class MockNetworkStream(NetworkStream):
    """
    Mock network stream for testing.

    Reads wait until data has been added with ``add_data`` or the peer side
    has been closed with ``feed_eof``, mirroring a real socket.
    """

    def __init__(self, data: bytes = b"", eof: bool = False):
        """
        Initialize the mock stream.

        Args:
            data: Initial data to be available for reading.
            eof: Whether the peer has already closed its side.
        """
        self._data = bytearray(data)
        self._eof = eof
        self._closed = False
        self._close_calls = 0
        self._read_error: Optional[Exception] = None
        self._write_error: Optional[Exception] = None
        self._extra_info: Dict[str, Any] = {}
        self._write_buffer: List[bytes] = []
        self._data_available = asyncio.Event()

    async def read(self, max_bytes: Optional[int] = None) -> bytes:
        """
        Read data from the mock stream.

        Raises:
            RuntimeError: If the stream is closed.
            Exception: The error installed with ``set_read_error``.
        """
        while True:
            if self._closed:
                raise RuntimeError("Stream is closed")
            if self._read_error is not None:
                error, self._read_error = self._read_error, None
                raise error
            if self._data or self._eof:
                break
            self._data_available.clear()
            await self._data_available.wait()

        if max_bytes is None:
            max_bytes = len(self._data)
        result = bytes(self._data[:max_bytes])
        del self._data[:max_bytes]
        return result

    async def write(self, data: bytes) -> None:
        """
        Write data to the mock stream.

        Raises:
            RuntimeError: If the stream is closed.
            Exception: The error installed with ``set_write_error``.
        """
        if self._closed:
            raise RuntimeError("Stream is closed")
        if self._write_error is not None:
            raise self._write_error

        self._write_buffer.append(bytes(data))
        self.on_write(bytes(data))

    def on_write(self, data: bytes) -> None:
        """Hook for subclasses that react to written bytes."""

    async def aclose(self) -> None:
        """Close the mock stream."""
        self._close_calls += 1
        self._closed = True
        self._data_available.set()

    def get_extra_info(self, name: str) -> Optional[Any]:
        return self._extra_info.get(name)

    @property
    def is_closed(self) -> bool:
        """Check if the mock stream is closed."""
        return self._closed

    @property
    def close_calls(self) -> int:
        """Number of times ``aclose`` was called."""
        return self._close_calls

    @property
    def written_data(self) -> bytes:
        """Get all data that was written to the stream."""
        return b"".join(self._write_buffer)

    @property
    def writes(self) -> List[bytes]:
        """Get the individual writes, in order."""
        return list(self._write_buffer)

    def set_extra_info(self, name: str, value: Any) -> None:
        self._extra_info[name] = value

    def add_data(self, data: bytes) -> None:
        """
        Add data to be available for reading.

        Args:
            data: The data to add.
        """
        self._data += data
        self._data_available.set()

    def feed_eof(self) -> None:
        """Signal that the peer closed its side of the connection."""
        self._eof = True
        self._data_available.set()

    def set_read_error(self, error: Exception) -> None:
        """Make the next read raise ``error``."""
        self._read_error = error
        self._data_available.set()

    def set_write_error(self, error: Exception) -> None:
        """Make every following write raise ``error``."""
        self._write_error = error


class MockNetworkBackend(NetworkBackend):
    """
    Mock network backend for testing.

    Every TCP connection is served by a stream produced by
    ``stream_factory``; the TLS upgrade reports ``alpn_protocol`` as the
    negotiated protocol.
    """

    def __init__(
        self,
        stream_factory: Optional[Callable[[], MockNetworkStream]] = None,
        alpn_protocol: Optional[str] = "h2",
        connect_error: Optional[Exception] = None,
        tls_error: Optional[Exception] = None,
    ):
        self._stream_factory = stream_factory or MockNetworkStream
        self._alpn_protocol = alpn_protocol
        self._connect_error = connect_error
        self._tls_error = tls_error
        self._connections: Dict[Tuple[str, int], MockNetworkStream] = {}
        self._tls_connections: Dict[Tuple[str, int], MockNetworkStream] = {}
        self._connection_count = 0
        self.offered_alpn: Optional[List[str]] = None

    async def connect_tcp(
        self,
        host: str,
        port: int,
        timeout: Optional[float] = None,
        addresses: Optional[List[Address]] = None,
    ) -> MockNetworkStream:
        if self._connect_error is not None:
            raise self._connect_error

        stream = self._stream_factory()
        peer = addresses[0][1] if addresses else (host, port)
        stream.set_extra_info("socket", None)
        stream.set_extra_info("peername", peer)
        stream.set_extra_info("sockname", ("127.0.0.1", 12345))
        self._connections[(host, port)] = stream
        self._connection_count += 1
        return stream

    async def connect_tls(
        self,
        stream: NetworkStream,
        host: str,
        port: int,
        timeout: Optional[float] = None,
        alpn_protocols: Optional[List[str]] = None,
    ) -> MockNetworkStream:
        self.offered_alpn = list(alpn_protocols) if alpn_protocols else None
        if self._tls_error is not None:
            raise self._tls_error

        assert isinstance(stream, MockNetworkStream)
        stream.set_extra_info("ssl_object", True)
        stream.set_extra_info("selected_alpn_protocol", self._alpn_protocol)
        self._tls_connections[(host, port)] = stream
        return stream

    def get_connection(self, host: str, port: int) -> Optional[MockNetworkStream]:
        """Get the mock TCP connection opened for ``host:port``."""
        return self._connections.get((host, port))

    def get_tls_connection(self, host: str, port: int) -> Optional[MockNetworkStream]:
        """Get the mock TLS connection opened for ``host:port``."""
        return self._tls_connections.get((host, port))

    @property
    def connection_count(self) -> int:
        return self._connection_count
