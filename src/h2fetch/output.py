"""
Output channels for h2fetch.

The response body goes verbatim to the primary output; request and
response headers go to the diagnostic output. Header names and values are
written as raw bytes, without assuming any charset.
"""

import logging
from typing import BinaryIO, Iterable, Tuple

logger = logging.getLogger(__name__)


class OutputSink:
    """
    Binary output channel that survives a closed pipe.

    Once the reader of the channel goes away, the error is logged a single
    time and later writes are discarded.
    """

    def __init__(self, stream: BinaryIO, name: str = "output") -> None:
        self._stream = stream
        self._name = name
        self._broken = False
        self._bytes_written = 0

    def write(self, data: bytes) -> int:
        """Write ``data`` and flush it. Returns the number of bytes written."""
        if self._broken or not data:
            return 0
        try:
            self._stream.write(data)
            self._stream.flush()
        except BrokenPipeError:
            self._broken = True
            logger.warning(f"The {self._name} channel was closed, discarding further data")
            return 0
        self._bytes_written += len(data)
        return len(data)

    @property
    def broken(self) -> bool:
        return self._broken

    @property
    def bytes_written(self) -> int:
        return self._bytes_written


def format_headers(title: str, headers: Iterable[Tuple[bytes, bytes]]) -> bytes:
    """
    Render a header block the way it is shown on the diagnostic channel.

    Example:
        Response headers:
        :status: 200
        content-type: text/html
        <blank line>
    """
    lines = [title.encode("ascii") + b":\n"]
    for name, value in headers:
        lines.append(bytes(name) + b": " + bytes(value) + b"\n")
    lines.append(b"\n")
    return b"".join(lines)


def write_headers(
    sink: OutputSink,
    title: str,
    headers: Iterable[Tuple[bytes, bytes]],
) -> None:
    """Write a header block to ``sink``."""
    sink.write(format_headers(title, headers))
