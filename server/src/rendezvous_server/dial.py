"""Server side of the rendezvous: dial back to the waiting client."""

from __future__ import annotations

import asyncio
import logging

from rendezvous_shared import parse_address

from .exceptions import DialError

logger = logging.getLogger(__name__)


async def connect_back(
    address: str,
    timeout_s: float = 10.0,
) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """Open the outbound connection to ``address`` (``host:port``).

    Raises:
        ValueError: If ``address`` is malformed.
        DialError: If the connection cannot be made within ``timeout_s``.
    """
    host, port = parse_address(address)
    logger.info("Connecting to client at %s...", address)
    try:
        return await asyncio.wait_for(asyncio.open_connection(host, port), timeout_s)
    except asyncio.TimeoutError as exc:
        raise DialError(address, exc) from None
    except OSError as exc:
        raise DialError(address, exc) from exc


async def serve_echo(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> int:
    """Echo every received chunk back until the peer closes.

    Returns:
        The number of bytes echoed.
    """
    total = 0
    try:
        while True:
            chunk = await reader.read(65536)
            if not chunk:
                break
            writer.write(chunk)
            await writer.drain()
            total += len(chunk)
    except ConnectionError as exc:
        logger.info("Client connection lost: %s", exc)
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except ConnectionError:
            pass
    logger.info("Echoed %s bytes", total)
    return total
