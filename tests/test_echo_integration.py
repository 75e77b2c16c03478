"""
Integration tests for the echo server and client.

Both ends run on localhost sockets within one event loop.
"""

import asyncio
import socket

import pytest

from futures_retry import ForwardedError, IoErrorHandler, RetryPolicy
from futures_retry.echo import EchoServer, connect


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def wait_while_refused(error):
    if isinstance(error, ConnectionRefusedError):
        return RetryPolicy.wait_retry(0.02)
    return RetryPolicy.forward_error(error)


@pytest.fixture
def server():
    server = EchoServer("127.0.0.1", 0, IoErrorHandler(3, "Accepting connections"))
    server.start()
    yield server
    server.close()


class TestEchoRoundTrip:
    """Echo server and client talking to each other."""

    @pytest.mark.asyncio
    async def test_single_connection(self, server):
        """One client gets its bytes echoed back."""
        host, port = server.address
        serving = asyncio.create_task(server.serve(max_connections=1))

        reply, attempt = await connect(host, port, b"hello", IoErrorHandler(3, "Connecting"))

        assert reply == b"hello"
        assert attempt == 1
        assert await asyncio.wait_for(serving, 5) == 1

    @pytest.mark.asyncio
    async def test_several_connections(self, server):
        """Concurrent clients each get their own echo."""
        host, port = server.address
        serving = asyncio.create_task(server.serve(max_connections=3))

        replies = await asyncio.gather(
            *(connect(host, port, f"msg-{i}".encode(), wait_while_refused) for i in range(3))
        )

        assert sorted(reply for reply, _ in replies) == [b"msg-0", b"msg-1", b"msg-2"]
        assert await asyncio.wait_for(serving, 5) == 3

    @pytest.mark.asyncio
    async def test_client_waits_for_late_server(self):
        """The client keeps retrying until the server comes up."""
        port = free_port()
        late_server = EchoServer("127.0.0.1", port, IoErrorHandler(3, "Accepting connections"))

        async def start_later():
            await asyncio.sleep(0.2)
            late_server.start()
            return await late_server.serve(max_connections=1)

        serving = asyncio.create_task(start_later())
        try:
            reply, attempt = await asyncio.wait_for(
                connect("127.0.0.1", port, b"late", wait_while_refused), 5
            )
            assert reply == b"late"
            assert attempt > 1
            assert await asyncio.wait_for(serving, 5) == 1
        finally:
            late_server.close()

    @pytest.mark.asyncio
    async def test_client_gives_up(self):
        """The client gives up after the handler's limit."""
        port = free_port()

        with pytest.raises(ForwardedError) as exc_info:
            await connect("127.0.0.1", port, b"x", IoErrorHandler(2, "Connecting"))

        assert isinstance(exc_info.value.error, ConnectionRefusedError)
        assert exc_info.value.attempt == 3


class TestEchoServer:
    """EchoServer lifecycle."""

    def test_address_requires_start(self):
        """address is only available after start()."""
        server = EchoServer("127.0.0.1", 0, IoErrorHandler(1, "x"))

        with pytest.raises(RuntimeError, match="not started"):
            server.address

    @pytest.mark.asyncio
    async def test_zero_connections(self, server):
        """A zero connection limit returns at once."""
        assert await server.serve(max_connections=0) == 0

    @pytest.mark.asyncio
    async def test_accept_errors_are_forwarded(self, server, monkeypatch):
        """A forwarded accept error ends serve()."""
        loop = asyncio.get_running_loop()

        async def failing_accept(sock):
            raise PermissionError("no more connections")

        monkeypatch.setattr(loop, "sock_accept", failing_accept)

        with pytest.raises(ForwardedError) as exc_info:
            await server.serve()

        assert isinstance(exc_info.value.error, PermissionError)

    @pytest.mark.asyncio
    async def test_open_connections_dropped_when_accept_fails(self, server, monkeypatch):
        """Connection tasks are cancelled and their sockets closed when accepting fails."""
        loop = asyncio.get_running_loop()
        conn, client = socket.socketpair()
        accepted = iter([(conn, "peer")])

        async def accept_once(sock):
            try:
                return next(accepted)
            except StopIteration:
                # Let the connection task start reading first
                await asyncio.sleep(0)
                raise PermissionError("no more connections") from None

        monkeypatch.setattr(loop, "sock_accept", accept_once)

        try:
            with pytest.raises(ForwardedError):
                await asyncio.wait_for(server.serve(), 5)

            assert conn.fileno() == -1
            assert not server._tasks
        finally:
            client.close()
