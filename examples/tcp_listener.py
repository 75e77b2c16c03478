#!/usr/bin/env python3
"""Echo server that keeps accepting connections through transient errors."""

import asyncio
import logging

from futures_retry import RetryPolicy
from futures_retry.echo import EchoServer
from futures_retry.handlers import IoErrorHandler

logging.basicConfig(level=logging.INFO, format="%(message)s")


def handle_error(e: Exception) -> RetryPolicy:
    if IoErrorHandler.is_transient(e):
        return RetryPolicy.repeat()
    if isinstance(e, PermissionError):
        return RetryPolicy.forward_error(e)
    return RetryPolicy.wait_retry(0.005)


async def main() -> None:
    server = EchoServer("127.0.0.1", 12345, handle_error)
    server.start()
    print(f"Listening at {server.address}")
    try:
        await server.serve()
    finally:
        server.close()


if __name__ == "__main__":
    asyncio.run(main())
