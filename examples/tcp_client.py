#!/usr/bin/env python3
"""Connect to the echo server, retrying while it isn't up yet."""

import asyncio
import logging
import sys

from futures_retry import ForwardedError, RetryPolicy
from futures_retry.echo import connect

logging.basicConfig(level=logging.INFO, format="%(message)s")


def handle_error(e: Exception) -> RetryPolicy:
    if isinstance(e, ConnectionRefusedError):
        # Server not started yet
        return RetryPolicy.wait_retry(0.5)
    return RetryPolicy.forward_error(e)


async def main() -> int:
    try:
        reply, attempt = await connect("127.0.0.1", 12345, b"hello\n", handle_error)
    except ForwardedError as e:
        print(f"Giving up: {e.error}", file=sys.stderr)
        return 1
    print(f"Attempt {attempt}: {reply.decode()!r}")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
