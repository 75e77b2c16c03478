#!/usr/bin/env python3
"""Echo server that gives up after three consecutive accept failures."""

import asyncio
import logging

from futures_retry.echo import EchoServer
from futures_retry.handlers import IoErrorHandler

logging.basicConfig(level=logging.INFO, format="%(message)s")


async def main() -> None:
    server = EchoServer("127.0.0.1", 12345, IoErrorHandler(3, "Accepting connections"))
    try:
        await server.serve()
    finally:
        server.close()


if __name__ == "__main__":
    asyncio.run(main())
