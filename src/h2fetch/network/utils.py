"""
Network utilities for h2fetch.

This module provides helpers for socket tuning, SSL context setup and
host/port validation.
"""

import socket
import ssl
from typing import Any, List, Optional, Union


def set_tcp_nodelay(sock: Any) -> None:
    """
    Disable Nagle's algorithm on a socket.

    Args:
        sock: Socket object (or a transport socket wrapper)

    Raises:
        OSError: If the option cannot be set
        ValueError: If ``sock`` is not a socket
    """
    if sock is None or not hasattr(sock, "setsockopt"):
        raise ValueError("No socket available")
    sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)


def create_ssl_context(
    alpn_protocols: Optional[List[str]] = None,
    verify: bool = True,
    cafile: Optional[str] = None,
) -> ssl.SSLContext:
    """
    Create an SSL context suitable for HTTP/2.

    Args:
        alpn_protocols: Optional list of ALPN protocols to negotiate
        verify: Whether to verify the peer certificate and hostname
        cafile: Optional path to a CA bundle

    Returns:
        Configured SSL context

    Raises:
        ssl.SSLError: If SSL context creation fails
    """
    context = ssl.create_default_context(cafile=cafile)
    if not verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

    # Set ALPN protocols if provided
    if alpn_protocols:
        context.set_alpn_protocols(alpn_protocols)

    context.options |= ssl.OP_NO_COMPRESSION
    context.options |= ssl.OP_NO_RENEGOTIATION

    # HTTP/2 forbids anything older than TLS 1.2
    context.minimum_version = ssl.TLSVersion.TLSv1_2

    # RFC 7540 section 9.2.2 blocklists the non-AEAD suites
    context.set_ciphers('ECDHE+AESGCM:ECDHE+CHACHA20:DHE+AESGCM:DHE+CHACHA20')

    return context


def is_ipv6_address(host: str) -> bool:
    """
    Check if a host string is an IPv6 address.

    Args:
        host: Host string to check

    Returns:
        True if the host is an IPv6 address
    """
    try:
        socket.inet_pton(socket.AF_INET6, host)
        return True
    except (OSError, ValueError):
        return False


def validate_port(port: Union[int, str]) -> int:
    """
    Validate and convert port to integer.

    Args:
        port: Port number (int or string)

    Returns:
        Port as integer

    Raises:
        ValueError: If port is invalid
    """
    try:
        port_int = int(port)
    except (ValueError, TypeError):
        raise ValueError(f"Invalid port: {port}")

    if not (1 <= port_int <= 65535):
        raise ValueError(f"Port must be between 1 and 65535, got {port_int}")

    return port_int
