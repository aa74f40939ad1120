"""Single-shot listening socket for the rendezvous connection."""

from __future__ import annotations

import asyncio
import logging
import os
import socket

from rendezvous_shared import LOOPBACK_HOST, format_address

from .exceptions import AcceptError, BindError, ConnectTimeoutError
from .streams import DuplexStream

logger = logging.getLogger(__name__)


def _create_socket() -> socket.socket:
    return socket.socket(socket.AF_INET, socket.SOCK_STREAM)


class ListenHandle:
    """An open listening socket owned by exactly one bootstrap session."""

    def __init__(self, sock: socket.socket, host: str, port: int) -> None:
        self._sock = sock
        self._host = host
        self._port = port
        self._closed = False

    @property
    def sock(self) -> socket.socket:
        return self._sock

    @property
    def port(self) -> int:
        return self._port

    @property
    def address(self) -> str:
        return format_address(self._port, self._host)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> bool:
        """Close the listening socket.

        Returns:
            True if this call closed the socket, False if it was already closed.
        """
        if self._closed:
            return False
        self._closed = True
        self._sock.close()
        logger.debug("Closed listener on %s", self.address)
        return True


class RendezvousListener:
    """Listen on loopback and accept exactly one inbound connection."""

    def __init__(self, host: str = LOOPBACK_HOST) -> None:
        self._host = host

    def open(self, port: int) -> ListenHandle:
        """Bind ``host:port`` in listening mode.

        Raises:
            BindError: If the port is in use or binding is not permitted.
        """
        address = format_address(port, self._host)
        sock = _create_socket()
        try:
            if os.name == "posix":
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self._host, port))
            sock.listen(1)
            sock.setblocking(False)
        except OSError as exc:
            sock.close()
            raise BindError(address, exc) from exc
        logger.debug("Listening on %s", address)
        return ListenHandle(sock, self._host, port)

    async def await_connection(self, handle: ListenHandle, timeout_s: float) -> DuplexStream:
        """Wait for the first inbound connection on ``handle``.

        The listening socket is closed before this returns, whatever the outcome.

        Raises:
            ConnectTimeoutError: If nobody connects within ``timeout_s``.
            AcceptError: If accepting fails with an I/O error.
        """
        loop = asyncio.get_running_loop()
        try:
            try:
                conn, peer = await asyncio.wait_for(loop.sock_accept(handle.sock), timeout_s)
            except asyncio.TimeoutError:
                raise ConnectTimeoutError(handle.address, timeout_s) from None
            except OSError as exc:
                raise AcceptError(handle.address, exc) from exc
        finally:
            handle.close()

        logger.debug("Accepted connection from %s on %s", peer, handle.address)
        try:
            reader, writer = await asyncio.open_connection(sock=conn)
        except OSError as exc:
            conn.close()
            raise AcceptError(handle.address, exc) from exc
        except asyncio.CancelledError:
            conn.close()
            raise
        return DuplexStream(reader, writer)
