"""Free-port discovery for the rendezvous listener."""

from __future__ import annotations

import asyncio
import logging
import socket

from rendezvous_shared import LOOPBACK_HOST

from .exceptions import PortExhaustionError

logger = logging.getLogger(__name__)


def find_free_port(host: str = LOOPBACK_HOST) -> int:
    """Find an available port by asking the OS.

    Returns:
        An available port number.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        sock.listen(1)
        port = sock.getsockname()[1]
    return port


def is_port_available(port: int, host: str = LOOPBACK_HOST) -> bool:
    """Check if a TCP port can currently be bound on ``host``."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind((host, port))
    except OSError:
        return False
    return True


class PortAllocator:
    """Pick one port believed to be free on the loopback interface.

    No reservation is held once a port is returned; the caller has to bind it
    promptly, another process may take it in between.
    """

    def __init__(
        self,
        host: str = LOOPBACK_HOST,
        port_range: tuple[int, int] | None = None,
        max_attempts: int = 20,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if port_range is not None:
            start, end = port_range
            if not (1 <= start <= end <= 65535):
                raise ValueError(f"invalid port range: {start}-{end}")
        self._host = host
        self._port_range = port_range
        self._max_attempts = max_attempts

    def find_port(self) -> int:
        """Return a free port, blocking while probing.

        Raises:
            PortExhaustionError: If the attempt budget is used up.
        """
        if self._port_range is None:
            return self._find_os_assigned_port()
        return self._scan_range()

    async def allocate(self) -> int:
        """Return a free port without blocking the event loop."""
        logger.info("Finding open port on %s...", self._host)
        port = await asyncio.to_thread(self.find_port)
        logger.debug("Found open port %s", port)
        return port

    def _find_os_assigned_port(self) -> int:
        last_error: OSError | None = None
        for attempt in range(1, self._max_attempts + 1):
            try:
                return find_free_port(self._host)
            except OSError as exc:
                last_error = exc
                logger.debug("Port request %s/%s failed: %s", attempt, self._max_attempts, exc)
        raise PortExhaustionError(self._max_attempts, str(last_error))

    def _scan_range(self) -> int:
        start, end = self._port_range
        attempts = 0
        for port in range(start, end + 1):
            if attempts >= self._max_attempts:
                break
            attempts += 1
            if is_port_available(port, self._host):
                return port
        raise PortExhaustionError(attempts, f"all ports busy in range {start}-{end}")
