"""
Network backend components for h2fetch.

This module provides the transport abstractions: network streams, the
backends that open them, and the resolver used while connecting.
"""

from .backend import NetworkBackend
from .stream import NetworkStream
from .resolver import Address, Resolver, StaticResolver
from .asyncio_backend import AsyncioNetworkBackend, AsyncioNetworkStream
from .mock import MockNetworkBackend, MockNetworkStream
from .utils import (
    create_ssl_context,
    is_ipv6_address,
    set_tcp_nodelay,
    validate_port,
)

__all__ = [
    "NetworkBackend",
    "NetworkStream",
    "Address",
    "Resolver",
    "StaticResolver",
    "AsyncioNetworkBackend",
    "AsyncioNetworkStream",
    "MockNetworkBackend",
    "MockNetworkStream",
    "create_ssl_context",
    "is_ipv6_address",
    "set_tcp_nodelay",
    "validate_port",
]
