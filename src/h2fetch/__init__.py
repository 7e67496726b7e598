"""
h2fetch - single-connection HTTP/2 client

Retrieves one resource over TLS-encrypted HTTP/2: it negotiates h2 with
ALPN, issues a single GET request, streams the response body to an output
channel and closes the connection with GOAWAY once the stream is done.
"""

__version__ = "0.1.0"
__author__ = "Developer"
__email__ = "dev@example.com"

# Import main components for easy access
from .target import StreamDescriptor, TargetComponents, parse_target
from .engine import Frame, FrameType, H2Engine, HeadersCategory
from .session import SessionContext
from .events import (
    ProtocolEventAdapter,
    TransportEvent,
    TransportEventAdapter,
    TransportEventKind,
)
from .driver import ConnectionDriver, FetchResult
from .state import CloseReason, ConnectionState
from .output import OutputSink
from .exceptions import (
    H2FetchError,
    ConfigurationError,
    NegotiationError,
    ConnectionError,
    ProtocolError,
    StreamError,
)

__all__ = [
    "StreamDescriptor",
    "TargetComponents",
    "parse_target",
    "Frame",
    "FrameType",
    "H2Engine",
    "HeadersCategory",
    "SessionContext",
    "ProtocolEventAdapter",
    "TransportEvent",
    "TransportEventAdapter",
    "TransportEventKind",
    "ConnectionDriver",
    "FetchResult",
    "CloseReason",
    "ConnectionState",
    "OutputSink",
    "H2FetchError",
    "ConfigurationError",
    "NegotiationError",
    "ConnectionError",
    "ProtocolError",
    "StreamError",
]
