"""
Network stream interface for h2fetch.

This module defines the NetworkStream interface the session uses as its
transport: an ordered, encrypted byte stream with a negotiated protocol.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


class NetworkStream(ABC):
    """
    Interface for transport streams with async I/O operations.

    Implementations must deliver inbound bytes in the order the peer sent
    them and transmit outbound bytes in the order they were written.
    """

    @abstractmethod
    async def read(self, max_bytes: Optional[int] = None) -> bytes:
        """
        Read the bytes currently available from the stream.

        Waits until at least one byte is available or the peer closes
        its side.

        Args:
            max_bytes: Maximum number of bytes to return.

        Returns:
            The data read, or ``b""`` once the peer has closed the stream.

        Raises:
            RuntimeError: If the stream is closed.
            OSError: If a network error occurs.
        """

    @abstractmethod
    async def write(self, data: bytes) -> None:
        """
        Write data to the stream and wait until it has been handed off.

        Args:
            data: The data to write to the stream.

        Raises:
            RuntimeError: If the stream is closed.
            OSError: If a network error occurs.
        """

    @abstractmethod
    async def aclose(self) -> None:
        """
        Close the stream and release the underlying connection.

        Closing an already closed stream is a no-op.
        """

    @abstractmethod
    def get_extra_info(self, name: str) -> Optional[Any]:
        """
        Get extra information about the stream.

        Args:
            name: The name of the information to retrieve. Common values include:
                 - "socket": The underlying socket object
                 - "peername": The remote endpoint address
                 - "sockname": The local endpoint address
                 - "ssl_object": The SSL object when the stream is encrypted
                 - "selected_alpn_protocol": The ALPN result of the handshake

        Returns:
            The requested information or None if not available.
        """

    @property
    @abstractmethod
    def is_closed(self) -> bool:
        """
        Check if the stream is closed.

        Returns:
            True if the stream is closed, False otherwise.
        """
