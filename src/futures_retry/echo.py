"""TCP echo server and client built on the retry wrappers.

The server accepts connections through StreamRetry, so transient accept
failures don't bring it down. The client connects through FutureRetry.
"""

import asyncio
import logging
import socket

from .future import FutureRetry
from .policy import ErrorAction
from .stream import repeat_call, retry_stream

logger = logging.getLogger(__name__)

READ_CHUNK = 4096


async def process_connection(conn: socket.socket, peer) -> int:
    """Copy the data back to the client. Returns the number of bytes echoed."""
    loop = asyncio.get_running_loop()
    total = 0
    try:
        while True:
            data = await loop.sock_recv(conn, READ_CHUNK)
            if not data:
                break
            await loop.sock_sendall(conn, data)
            total += len(data)
        logger.info(f"Wrote {total} bytes to {peer}", extra={"peer": str(peer)})
    except OSError as e:
        logger.warning(f"Can't copy data to {peer}: {e}", extra={"peer": str(peer)})
    finally:
        conn.close()
    return total


class EchoServer:
    """Echo server whose accept loop is guarded by an error handler."""

    def __init__(self, host: str, port: int, error_action: ErrorAction, backlog: int = 100):
        self.host = host
        self.port = port
        self.error_action = error_action
        self.backlog = backlog
        self._sock: socket.socket | None = None
        self._tasks: set[asyncio.Task] = set()

    def start(self) -> None:
        """Bind the listening socket."""
        if self._sock is not None:
            logger.warning("Server already started")
            return
        family = socket.AF_INET6 if ":" in self.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.port))
            sock.listen(self.backlog)
            sock.setblocking(False)
        except OSError:
            sock.close()
            raise
        self._sock = sock
        logger.info(f"Listening at {self.address}")

    @property
    def address(self) -> tuple:
        """Address the server is bound to."""
        if self._sock is None:
            raise RuntimeError("Server is not started")
        return self._sock.getsockname()

    async def serve(self, max_connections: int | None = None) -> int:
        """
        Accept connections and echo them in separate tasks.

        Args:
            max_connections: Stop after accepting this many, None to run forever

        Returns:
            Number of accepted connections

        Raises:
            ForwardedError: If the error handler gives up on accepting
        """
        if self._sock is None:
            self.start()
        loop = asyncio.get_running_loop()
        accepted = 0
        if max_connections is not None and max_connections <= 0:
            return accepted

        connections = retry_stream(repeat_call(loop.sock_accept, self._sock), self.error_action)
        completed = False
        try:
            async for (conn, peer), attempt in connections:
                accepted += 1
                logger.debug(
                    f"Accepted {peer} on attempt {attempt}",
                    extra={"peer": str(peer), "attempt": attempt},
                )
                conn.setblocking(False)
                task = loop.create_task(process_connection(conn, peer))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
                if max_connections is not None and accepted >= max_connections:
                    break
            completed = True
        finally:
            if self._tasks:
                # Open connections are dropped when the accept loop fails
                if not completed:
                    for task in list(self._tasks):
                        task.cancel()
                await asyncio.gather(*self._tasks, return_exceptions=not completed)
        return accepted

    def close(self) -> None:
        """Close the listening socket."""
        if self._sock is not None:
            self._sock.close()
            self._sock = None


async def connect(
    host: str,
    port: int,
    payload: bytes,
    error_action: ErrorAction,
) -> tuple[bytes, int]:
    """
    Connect to an echo server through FutureRetry, send `payload` and read it back.

    Returns:
        The echoed bytes and the number of the attempt that connected

    Raises:
        ForwardedError: If the error handler gives up on connecting
    """
    (reader, writer), attempt = await FutureRetry(
        lambda: asyncio.open_connection(host, port),
        error_action,
    )
    try:
        writer.write(payload)
        await writer.drain()
        writer.write_eof()
        reply = await reader.read()
    finally:
        writer.close()
        await writer.wait_closed()
    return reply, attempt
