"""
Connection states and close reasons for h2fetch.
"""

from enum import Enum


class ConnectionState(Enum):
    """States of a connection, in the only order they may be entered."""
    IDLE = "idle"                # Nothing started yet
    RESOLVING = "resolving"      # Looking up the target host
    CONNECTING = "connecting"    # TCP connect and TLS handshake
    ACTIVE = "active"            # h2 negotiated, request in flight
    DRAINING = "draining"        # Stream closed, GOAWAY pending
    CLOSED = "closed"            # Resources released

    @property
    def rank(self) -> int:
        return _STATE_ORDER.index(self)


_STATE_ORDER = list(ConnectionState)


class CloseReason(Enum):
    """Why a session was torn down."""
    COMPLETED = "completed"
    PEER_CLOSED = "peer_closed"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    PROTOCOL_ERROR = "protocol_error"
    NEGOTIATION_FAILED = "negotiation_failed"
    ABORTED = "aborted"
