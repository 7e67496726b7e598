"""
Name resolution for h2fetch.

The resolver is only used while connecting. It is owned by the session and
released together with the transport.
"""

import asyncio
import logging
import socket
from typing import Any, List, Optional, Tuple

logger = logging.getLogger(__name__)

Address = Tuple[int, Tuple[Any, ...]]  # (family, sockaddr)


class Resolver:
    """Asynchronous host name resolver backed by the event loop's getaddrinfo."""

    def __init__(self, family: int = socket.AF_UNSPEC) -> None:
        self._family = family
        self._closed = False
        self._lookups = 0

    async def resolve(self, host: str, port: int) -> List[Address]:
        """
        Resolve ``host`` to the stream socket addresses it is reachable at.

        Args:
            host: Host name or IP literal
            port: TCP port

        Returns:
            A non-empty list of (family, sockaddr) tuples in resolver order

        Raises:
            RuntimeError: If the resolver has been closed
            OSError: If resolution fails or yields no addresses
        """
        if self._closed:
            raise RuntimeError("Resolver is closed")

        loop = asyncio.get_running_loop()
        self._lookups += 1
        infos = await loop.getaddrinfo(
            host, port, family=self._family, type=socket.SOCK_STREAM
        )

        addresses: List[Address] = []
        for family, _, _, _, sockaddr in infos:
            if (family, sockaddr) not in addresses:
                addresses.append((family, sockaddr))

        if not addresses:
            raise OSError(f"No addresses found for {host}")

        logger.debug(f"Resolved {host}:{port} to {len(addresses)} address(es)")
        return addresses

    def close(self) -> None:
        """Release the resolver. Further lookups fail."""
        self._closed = True

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def lookups(self) -> int:
        """Number of lookups started through this resolver."""
        return self._lookups


class StaticResolver(Resolver):
    """Resolver that answers from a fixed table, for tests and pinned hosts."""

    def __init__(self, table: Optional[dict] = None) -> None:
        super().__init__()
        self._table = dict(table or {})

    async def resolve(self, host: str, port: int) -> List[Address]:
        if self._closed:
            raise RuntimeError("Resolver is closed")
        self._lookups += 1
        if host not in self._table:
            raise OSError(f"No addresses found for {host}")
        return [(socket.AF_INET, (self._table[host], port))]
