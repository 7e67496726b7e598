"""
Command line entry point for h2fetch.

Usage: h2fetch [options] HTTPS_URI

Request and response headers and diagnostics are written to stderr, the
response body to stdout, so the body can be redirected to a file.
"""

import argparse
import asyncio
import logging
import signal
import sys
from contextlib import contextmanager
from typing import BinaryIO, Iterator, List, Optional

from . import __version__
from .driver import ConnectionDriver
from .exceptions import ConfigurationError, NegotiationError
from .network.backend import NetworkBackend
from .network.resolver import Resolver
from .output import OutputSink

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="h2fetch",
        description="Fetch one resource over HTTP/2 and write its body to stdout.",
    )
    parser.add_argument("uri", metavar="HTTPS_URI", help="resource to retrieve")
    parser.add_argument(
        "--connect-timeout",
        type=float,
        default=ConnectionDriver.DEFAULT_CONNECT_TIMEOUT,
        metavar="SECONDS",
        help="timeout for resolving, connecting and the TLS handshake",
    )
    parser.add_argument(
        "--read-timeout",
        type=float,
        default=ConnectionDriver.DEFAULT_READ_TIMEOUT,
        metavar="SECONDS",
        help="give up when the peer sends nothing for this long",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="do not verify the server certificate",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


@contextmanager
def ignore_broken_pipe() -> Iterator[None]:
    """Ignore SIGPIPE while the block runs, restoring the previous handler after."""
    if not hasattr(signal, "SIGPIPE"):
        yield
        return

    previous = signal.signal(signal.SIGPIPE, signal.SIG_IGN)
    try:
        yield
    finally:
        signal.signal(signal.SIGPIPE, previous)


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        stream=sys.stderr,
    )


def main(
    argv: Optional[List[str]] = None,
    backend: Optional[NetworkBackend] = None,
    resolver: Optional[Resolver] = None,
    stdout: Optional[BinaryIO] = None,
    stderr: Optional[BinaryIO] = None,
) -> int:
    """
    Run the client.

    Returns:
        The process exit code
    """
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    output = OutputSink(stdout or sys.stdout.buffer, "output")
    diagnostics = OutputSink(stderr or sys.stderr.buffer, "diagnostic")

    try:
        driver = ConnectionDriver(
            args.uri,
            output=output,
            diagnostics=diagnostics,
            backend=backend,
            resolver=resolver,
            connect_timeout=args.connect_timeout,
            read_timeout=args.read_timeout,
            verify=not args.insecure,
        )
    except ConfigurationError as e:
        logger.error(e.message)
        return EXIT_FAILURE

    with ignore_broken_pipe():
        try:
            result = asyncio.run(driver.run())
        except NegotiationError as e:
            logger.error(e.message)
            return EXIT_FAILURE

    logger.debug(f"Run finished: {result.close_reason.value if result.close_reason else 'unknown'}")
    return EXIT_OK


def run() -> None:
    """Console script entry point."""
    sys.exit(main())
