"""
Network backend interface for h2fetch.

This module defines the NetworkBackend interface that opens the TCP
connection and upgrades it to TLS with ALPN.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from .resolver import Address
from .stream import NetworkStream


class NetworkBackend(ABC):
    """
    Interface for network backend implementations.

    A backend opens a TCP connection to one of the resolved addresses of a
    host and performs the TLS handshake on it.
    """

    @abstractmethod
    async def connect_tcp(
        self,
        host: str,
        port: int,
        timeout: Optional[float] = None,
        addresses: Optional[List[Address]] = None,
    ) -> NetworkStream:
        """
        Connect to a TCP endpoint.

        Args:
            host: The hostname or IP address to connect to.
            port: The port number to connect to.
            timeout: Optional timeout in seconds for the connection.
            addresses: Pre-resolved addresses to try in order. When omitted
                       the backend resolves ``host`` itself.

        Returns:
            A NetworkStream representing the TCP connection.

        Raises:
            OSError: If the connection fails.
            asyncio.TimeoutError: If the connection times out.
        """

    @abstractmethod
    async def connect_tls(
        self,
        stream: NetworkStream,
        host: str,
        port: int,
        timeout: Optional[float] = None,
        alpn_protocols: Optional[List[str]] = None,
    ) -> NetworkStream:
        """
        Upgrade a TCP stream to TLS.

        Args:
            stream: The existing TCP NetworkStream to upgrade.
            host: The hostname for SNI and certificate verification.
            port: The port number (used for logging).
            timeout: Optional timeout in seconds for the TLS handshake.
            alpn_protocols: Optional list of ALPN protocols to offer.

        Returns:
            A NetworkStream representing the TLS connection. Its
            ``selected_alpn_protocol`` extra info holds the ALPN result.

        Raises:
            OSError: If the TLS handshake fails.
            asyncio.TimeoutError: If the TLS handshake times out.
        """
