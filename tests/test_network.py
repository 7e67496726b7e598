"""
Tests for network interfaces and their implementations.

This module covers the mock stream and backend used throughout the test
suite, the resolvers, the socket/SSL helpers, and the asyncio backend
against a local plain TCP server.
"""

import asyncio
import socket
import ssl

import pytest
import pytest_asyncio

from h2fetch.network import (
    AsyncioNetworkBackend,
    AsyncioNetworkStream,
    MockNetworkBackend,
    MockNetworkStream,
    NetworkStream,
    Resolver,
    StaticResolver,
    create_ssl_context,
    is_ipv6_address,
    set_tcp_nodelay,
    validate_port,
)


class TestMockNetworkStream:
    """Test cases for MockNetworkStream."""

    @pytest.mark.asyncio
    async def test_read_write_basic(self):
        """Test basic read and write operations."""
        stream = MockNetworkStream()

        await stream.write(b"hello world")
        assert stream.written_data == b"hello world"

        stream.add_data(b"hello world")

        data = await stream.read(5)
        assert data == b"hello"

        data = await stream.read()
        assert data == b" world"

    @pytest.mark.asyncio
    async def test_read_at_eof(self):
        """Test that a closed peer side reads as empty bytes."""
        stream = MockNetworkStream(b"tail", eof=True)

        assert await stream.read() == b"tail"
        assert await stream.read() == b""
        assert await stream.read(10) == b""

    @pytest.mark.asyncio
    async def test_read_waits_for_data(self):
        """Test that a read blocks until data arrives."""
        stream = MockNetworkStream()
        reader = asyncio.create_task(stream.read())
        await asyncio.sleep(0)
        assert not reader.done()

        stream.add_data(b"late")

        assert await asyncio.wait_for(reader, 1.0) == b"late"

    @pytest.mark.asyncio
    async def test_read_waits_for_eof(self):
        stream = MockNetworkStream()
        reader = asyncio.create_task(stream.read())
        await asyncio.sleep(0)

        stream.feed_eof()

        assert await asyncio.wait_for(reader, 1.0) == b""

    @pytest.mark.asyncio
    async def test_writes_kept_in_order(self):
        stream = MockNetworkStream()

        await stream.write(b"one")
        await stream.write(b"two")

        assert stream.writes == [b"one", b"two"]
        assert stream.written_data == b"onetwo"

    @pytest.mark.asyncio
    async def test_read_error_raised_once(self):
        stream = MockNetworkStream(b"data")
        stream.set_read_error(ConnectionResetError("reset"))

        with pytest.raises(ConnectionResetError):
            await stream.read()
        assert await stream.read() == b"data"

    @pytest.mark.asyncio
    async def test_write_error(self):
        stream = MockNetworkStream()
        stream.set_write_error(BrokenPipeError("gone"))

        with pytest.raises(BrokenPipeError):
            await stream.write(b"data")
        assert stream.written_data == b""

    @pytest.mark.asyncio
    async def test_close(self):
        """Test closing the stream and using it afterwards."""
        stream = MockNetworkStream()

        await stream.aclose()
        await stream.aclose()

        assert stream.is_closed
        assert stream.close_calls == 2
        with pytest.raises(RuntimeError):
            await stream.read()
        with pytest.raises(RuntimeError):
            await stream.write(b"data")

    @pytest.mark.asyncio
    async def test_close_wakes_reader(self):
        """Test that closing the stream interrupts a pending read."""
        stream = MockNetworkStream()
        reader = asyncio.create_task(stream.read())
        await asyncio.sleep(0)

        await stream.aclose()

        with pytest.raises(RuntimeError):
            await asyncio.wait_for(reader, 1.0)

    def test_extra_info(self):
        stream = MockNetworkStream()
        assert stream.get_extra_info("selected_alpn_protocol") is None

        stream.set_extra_info("selected_alpn_protocol", "h2")

        assert stream.get_extra_info("selected_alpn_protocol") == "h2"

    def test_is_network_stream(self):
        assert isinstance(MockNetworkStream(), NetworkStream)


class TestMockNetworkBackend:
    """Test cases for MockNetworkBackend."""

    @pytest.mark.asyncio
    async def test_connect_tcp(self):
        backend = MockNetworkBackend()

        stream = await backend.connect_tcp(
            "example.test", 443, addresses=[(socket.AF_INET, ("192.0.2.10", 443))]
        )

        assert isinstance(stream, MockNetworkStream)
        assert stream.get_extra_info("peername") == ("192.0.2.10", 443)
        assert backend.get_connection("example.test", 443) is stream
        assert backend.connection_count == 1

    @pytest.mark.asyncio
    async def test_connect_tls_reports_alpn(self):
        backend = MockNetworkBackend(alpn_protocol="h2")
        stream = await backend.connect_tcp("example.test", 443)

        tls_stream = await backend.connect_tls(
            stream, "example.test", 443, alpn_protocols=["h2"]
        )

        assert tls_stream.get_extra_info("selected_alpn_protocol") == "h2"
        assert backend.offered_alpn == ["h2"]
        assert backend.get_tls_connection("example.test", 443) is tls_stream

    @pytest.mark.asyncio
    async def test_stream_factory(self):
        stream = MockNetworkStream(b"ready")
        backend = MockNetworkBackend(stream_factory=lambda: stream)

        assert await backend.connect_tcp("example.test", 443) is stream

    @pytest.mark.asyncio
    async def test_connect_errors(self):
        backend = MockNetworkBackend(connect_error=ConnectionRefusedError("refused"))
        with pytest.raises(ConnectionRefusedError):
            await backend.connect_tcp("example.test", 443)

        backend = MockNetworkBackend(tls_error=ssl.SSLError("bad handshake"))
        stream = await backend.connect_tcp("example.test", 443)
        with pytest.raises(ssl.SSLError):
            await backend.connect_tls(stream, "example.test", 443)


class TestResolvers:
    """Test host name resolution."""

    @pytest.mark.asyncio
    async def test_static_resolver(self):
        resolver = StaticResolver({"example.test": "192.0.2.10"})

        addresses = await resolver.resolve("example.test", 8443)

        assert addresses == [(socket.AF_INET, ("192.0.2.10", 8443))]
        assert resolver.lookups == 1

    @pytest.mark.asyncio
    async def test_static_resolver_unknown_host(self):
        resolver = StaticResolver({})
        with pytest.raises(OSError):
            await resolver.resolve("missing.test", 443)

    @pytest.mark.asyncio
    async def test_resolve_ip_literal(self):
        """Test resolving a literal address without DNS."""
        resolver = Resolver(family=socket.AF_INET)

        addresses = await resolver.resolve("127.0.0.1", 443)

        assert addresses == [(socket.AF_INET, ("127.0.0.1", 443))]

    @pytest.mark.asyncio
    async def test_closed_resolver(self):
        resolver = Resolver()
        resolver.close()

        assert resolver.is_closed
        with pytest.raises(RuntimeError):
            await resolver.resolve("127.0.0.1", 443)


class TestUtils:
    """Test socket and SSL helpers."""

    def test_set_tcp_nodelay(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            set_tcp_nodelay(sock)
            assert sock.getsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY) != 0

    def test_set_tcp_nodelay_without_socket(self):
        with pytest.raises(ValueError):
            set_tcp_nodelay(None)
        with pytest.raises(ValueError):
            set_tcp_nodelay(object())

    def test_ssl_context(self):
        context = create_ssl_context(alpn_protocols=["h2"])

        assert context.verify_mode == ssl.CERT_REQUIRED
        assert context.check_hostname
        assert context.minimum_version == ssl.TLSVersion.TLSv1_2
        assert context.options & ssl.OP_NO_COMPRESSION

    def test_ssl_context_insecure(self):
        context = create_ssl_context(verify=False)

        assert context.verify_mode == ssl.CERT_NONE
        assert not context.check_hostname

    @pytest.mark.parametrize("host, expected", [
        ("::1", True),
        ("2001:db8::1", True),
        ("127.0.0.1", False),
        ("example.test", False),
    ])
    def test_is_ipv6_address(self, host, expected):
        assert is_ipv6_address(host) is expected

    def test_validate_port(self):
        assert validate_port("8443") == 8443
        assert validate_port(443) == 443
        for port in (0, 65536, "http", None):
            with pytest.raises(ValueError):
                validate_port(port)


class TestAsyncioNetworkBackend:
    """Test the asyncio backend against a local TCP echo server."""

    @pytest_asyncio.fixture
    async def echo_server(self):
        async def handle(reader, writer):
            while True:
                data = await reader.read(1024)
                if not data:
                    break
                writer.write(data)
                await writer.drain()
            writer.close()

        server = await asyncio.start_server(handle, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        yield port
        server.close()
        await server.wait_closed()

    @pytest.mark.asyncio
    async def test_connect_and_echo(self, echo_server):
        backend = AsyncioNetworkBackend()
        addresses = await Resolver(family=socket.AF_INET).resolve("127.0.0.1", echo_server)

        stream = await backend.connect_tcp(
            "127.0.0.1", echo_server, timeout=5.0, addresses=addresses
        )
        try:
            await stream.write(b"ping")
            assert await asyncio.wait_for(stream.read(), 5.0) == b"ping"
            assert stream.get_extra_info("peername")[1] == echo_server
            assert stream.get_extra_info("selected_alpn_protocol") is None
            set_tcp_nodelay(stream.get_extra_info("socket"))
        finally:
            await stream.aclose()

        assert stream.is_closed
        with pytest.raises(RuntimeError):
            await stream.read()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, echo_server):
        backend = AsyncioNetworkBackend()
        stream = await backend.connect_tcp("127.0.0.1", echo_server, timeout=5.0)

        await stream.aclose()
        await stream.aclose()

        assert stream.is_closed

    @pytest.mark.asyncio
    async def test_all_addresses_fail(self):
        """Test that the last connect error is raised."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("127.0.0.1", 0))
            port = sock.getsockname()[1]

        backend = AsyncioNetworkBackend()
        with pytest.raises(OSError):
            await backend.connect_tcp(
                "127.0.0.1",
                port,
                timeout=5.0,
                addresses=[(socket.AF_INET, ("127.0.0.1", port))],
            )

    @pytest_asyncio.fixture
    async def silent_server(self):
        async def handle(reader, writer):
            await reader.read()
            writer.close()

        server = await asyncio.start_server(handle, "127.0.0.1", 0)
        yield server.sockets[0].getsockname()[1]
        server.close()
        await server.wait_closed()

    @pytest.mark.asyncio
    async def test_tls_handshake_timeout(self, silent_server):
        """Test that a peer that never answers the ClientHello times out."""
        backend = AsyncioNetworkBackend(verify=False)
        stream = await backend.connect_tcp("127.0.0.1", silent_server, timeout=5.0)
        try:
            with pytest.raises(asyncio.TimeoutError):
                await backend.connect_tls(
                    stream, "127.0.0.1", silent_server, timeout=0.1, alpn_protocols=["h2"]
                )
        finally:
            await stream.aclose()

    @pytest.mark.asyncio
    async def test_tls_requires_own_stream(self):
        backend = AsyncioNetworkBackend()
        with pytest.raises(TypeError):
            await backend.connect_tls(MockNetworkStream(), "example.test", 443)

    def test_stream_type(self):
        assert issubclass(AsyncioNetworkStream, NetworkStream)
