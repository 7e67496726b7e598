"""
Target parsing and the stream descriptor for h2fetch.

A target URI is split into its components by ``parse_target`` and turned
into a ``StreamDescriptor``, which carries everything the session needs to
issue the single request of a connection: the derived ``:authority`` and
``:path`` values and, once the request HEADERS frame is sent, the stream
identifier assigned by the protocol engine.
"""

from dataclasses import dataclass, field
from typing import List, NamedTuple, Optional, Tuple
from urllib.parse import urlsplit

from .exceptions import ConfigurationError, StreamError
from .network.utils import is_ipv6_address, validate_port

# Type aliases for better readability
Headers = List[Tuple[bytes, bytes]]

DEFAULT_PORT = 443
SUPPORTED_SCHEMES = ("https",)
REQUEST_METHOD = b"GET"


class TargetComponents(NamedTuple):
    """Immutable decomposition of a target URI."""
    scheme: str
    host: Optional[str]
    port: Optional[int]
    path: Optional[str]
    query: Optional[str]


def parse_target(uri: str) -> TargetComponents:
    """
    Split a target URI into scheme, host, port, path and query.

    Components missing from the URI are returned as ``None``; an empty query
    (a bare ``?``) counts as missing.

    Args:
        uri: The target URI as given on the command line

    Returns:
        The parsed components

    Raises:
        ConfigurationError: If the URI cannot be parsed
    """
    if not uri:
        raise ConfigurationError("Could not parse URI: empty target")

    try:
        parsed = urlsplit(uri)
        port = parsed.port
    except ValueError as e:
        raise ConfigurationError(f"Could not parse URI {uri}", cause=e)

    if not parsed.scheme or not parsed.netloc:
        raise ConfigurationError(f"Could not parse URI {uri}")

    if port is not None:
        try:
            port = validate_port(port)
        except ValueError as e:
            raise ConfigurationError(f"Could not parse URI {uri}", cause=e)

    return TargetComponents(
        scheme=parsed.scheme.lower(),
        host=parsed.hostname or None,
        port=port,
        path=parsed.path or None,
        query=parsed.query or None,
    )


def format_authority(host: str, port: Optional[int]) -> str:
    """
    Build the ``:authority`` value for a host and optional port.

    The port is only included when it differs from the default port.
    """
    if is_ipv6_address(host):
        host = f"[{host}]"
    if port is None or port == DEFAULT_PORT:
        return host
    return f"{host}:{port}"


@dataclass
class StreamDescriptor:
    """
    The single logical request/response exchange of a connection.

    ``stream_id`` stays ``None`` until the protocol engine is about to
    transmit the request HEADERS frame, and is assigned exactly once.
    """

    target: str
    scheme: str
    host: str
    port: int
    authority: str
    path: str
    stream_id: Optional[int] = field(default=None, init=False)

    @classmethod
    def from_components(cls, target: str, components: TargetComponents) -> "StreamDescriptor":
        """
        Create a descriptor from an already parsed target.

        Raises:
            ConfigurationError: If the scheme is unsupported or the host or
                path component is absent
        """
        if components.scheme not in SUPPORTED_SCHEMES:
            raise ConfigurationError(
                f"Unsupported scheme '{components.scheme}' in {target}, expected https"
            )
        if not components.host:
            raise ConfigurationError(f"No host in URI {target}")
        if components.path is None:
            raise ConfigurationError(f"No path in URI {target}")

        path = components.path
        if components.query is not None:
            path = f"{path}?{components.query}"

        return cls(
            target=target,
            scheme=components.scheme,
            host=components.host,
            port=components.port if components.port is not None else DEFAULT_PORT,
            authority=format_authority(components.host, components.port),
            path=path,
        )

    @classmethod
    def from_target(cls, target: str) -> "StreamDescriptor":
        """Parse ``target`` and create a descriptor for it."""
        return cls.from_components(target, parse_target(target))

    @property
    def is_assigned(self) -> bool:
        """Check whether the engine has assigned a stream identifier."""
        return self.stream_id is not None

    def assign_stream_id(self, stream_id: int) -> None:
        """
        Record the stream identifier chosen by the protocol engine.

        Raises:
            StreamError: If an identifier was already assigned
        """
        if self.stream_id is not None:
            raise StreamError(
                f"Stream id already assigned ({self.stream_id}), refusing {stream_id}"
            )
        self.stream_id = stream_id

    def request_headers(self) -> Headers:
        """Return the request pseudo-headers in wire order."""
        return [
            (b":method", REQUEST_METHOD),
            (b":scheme", self.scheme.encode("ascii")),
            (b":authority", self.authority.encode("idna")),
            (b":path", self.path.encode("utf-8")),
        ]
