"""
asyncio based network backend for h2fetch.

Connections are opened with ``asyncio.open_connection`` and upgraded in
place with ``StreamWriter.start_tls``.
"""

import asyncio
import logging
import ssl
from typing import Any, List, Optional

from .backend import NetworkBackend
from .resolver import Address
from .stream import NetworkStream
from .utils import create_ssl_context

logger = logging.getLogger(__name__)


class AsyncioNetworkStream(NetworkStream):
    """Network stream over an asyncio StreamReader/StreamWriter pair."""

    DEFAULT_READ_SIZE = 65536

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._reader = reader
        self._writer = writer
        self._closed = False

    async def read(self, max_bytes: Optional[int] = None) -> bytes:
        if self._closed:
            raise RuntimeError("Stream is closed")
        return await self._reader.read(max_bytes or self.DEFAULT_READ_SIZE)

    async def write(self, data: bytes) -> None:
        if self._closed:
            raise RuntimeError("Stream is closed")
        self._writer.write(data)
        await self._writer.drain()

    async def start_tls(
        self,
        context: ssl.SSLContext,
        server_hostname: str,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Perform the TLS handshake on this stream.

        Raises:
            asyncio.TimeoutError: If the handshake does not finish in time
        """
        if self._closed:
            raise RuntimeError("Stream is closed")
        # asyncio's own handshake timeout surfaces as ConnectionAbortedError,
        # so it is kept behind wait_for
        handshake_timeout = timeout + 1.0 if timeout is not None else None
        await asyncio.wait_for(
            self._writer.start_tls(
                context,
                server_hostname=server_hostname,
                ssl_handshake_timeout=handshake_timeout,
            ),
            timeout,
        )

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except OSError as e:
            # the peer may already have reset the connection
            logger.debug(f"Error while closing stream: {e}")

    def get_extra_info(self, name: str) -> Optional[Any]:
        if name == "selected_alpn_protocol":
            ssl_object = self._writer.get_extra_info("ssl_object")
            if ssl_object is None:
                return None
            return ssl_object.selected_alpn_protocol()
        return self._writer.get_extra_info(name)

    @property
    def is_closed(self) -> bool:
        return self._closed


class AsyncioNetworkBackend(NetworkBackend):
    """Network backend using asyncio streams and the ``ssl`` module."""

    def __init__(
        self,
        ssl_context: Optional[ssl.SSLContext] = None,
        verify: bool = True,
    ) -> None:
        self._ssl_context = ssl_context
        self._verify = verify

    async def connect_tcp(
        self,
        host: str,
        port: int,
        timeout: Optional[float] = None,
        addresses: Optional[List[Address]] = None,
    ) -> AsyncioNetworkStream:
        if not addresses:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port), timeout
            )
            return AsyncioNetworkStream(reader, writer)

        last_error: Optional[OSError] = None
        for family, sockaddr in addresses:
            try:
                reader, writer = await asyncio.wait_for(
                    asyncio.open_connection(sockaddr[0], sockaddr[1], family=family),
                    timeout,
                )
            except OSError as e:
                logger.debug(f"Connecting to {sockaddr[0]}:{sockaddr[1]} failed: {e}")
                last_error = e
                continue
            return AsyncioNetworkStream(reader, writer)

        assert last_error is not None
        raise last_error

    async def connect_tls(
        self,
        stream: NetworkStream,
        host: str,
        port: int,
        timeout: Optional[float] = None,
        alpn_protocols: Optional[List[str]] = None,
    ) -> NetworkStream:
        if not isinstance(stream, AsyncioNetworkStream):
            raise TypeError("AsyncioNetworkBackend can only upgrade its own streams")

        context = self._ssl_context
        if context is None:
            context = create_ssl_context(alpn_protocols=alpn_protocols, verify=self._verify)
        elif alpn_protocols:
            context.set_alpn_protocols(alpn_protocols)

        await stream.start_tls(context, server_hostname=host, timeout=timeout)
        logger.debug(
            f"TLS established with {host}:{port}, "
            f"ALPN={stream.get_extra_info('selected_alpn_protocol')}"
        )
        return stream
