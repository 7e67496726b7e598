"""
Custom exceptions for h2fetch.

This module defines the exception hierarchy used by the client.
Configuration and negotiation errors are fatal to the process, while
connection, timeout and protocol errors only end the current session.
"""

from typing import Optional


class H2FetchError(Exception):
    """Base exception for all h2fetch errors."""

    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class ConfigurationError(H2FetchError):
    """Raised when the target or the command line cannot be used."""

    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(f"Configuration error: {message}", cause)


class NegotiationError(H2FetchError):
    """Raised when the peer does not agree on the h2 application protocol."""

    def __init__(
        self,
        message: str,
        selected_protocol: Optional[str] = None,
    ) -> None:
        super().__init__(f"Negotiation error: {message}")
        self.selected_protocol = selected_protocol


class ConnectionError(H2FetchError):
    """Raised when there's an error with the network connection."""

    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(f"Connection error: {message}", cause)


class ProtocolError(H2FetchError):
    """Raised when the protocol engine rejects inbound bytes."""

    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(f"Protocol error: {message}", cause)


class TimeoutError(H2FetchError):
    """Raised when connecting or reading stalls."""

    def __init__(self, message: str, timeout: Optional[float] = None) -> None:
        if timeout is not None:
            message = f"{message} (timeout: {timeout}s)"
        super().__init__(f"Timeout error: {message}")
        self.timeout = timeout


class StreamError(H2FetchError):
    """Raised when a stream descriptor or session is used out of order."""

    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(f"Stream error: {message}", cause)
