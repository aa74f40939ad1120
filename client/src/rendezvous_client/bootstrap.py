"""Rendezvous connection bootstrap.

One attempt runs four strictly ordered steps:

1. allocate a free loopback port,
2. open a listening socket on it,
3. ask the process-owner to start a server that dials ``127.0.0.1:<port>``,
4. accept the first inbound connection and hand its stream over.

The listener is always closed when the attempt ends, and a failed or cancelled
attempt never produces a stream.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from rendezvous_shared import LOOPBACK_HOST, format_address

from .config import BootstrapConfig
from .exceptions import BootstrapError, RemoteStartError
from .launcher import (
    DEFAULT_LAUNCHER_CAPABILITY,
    CapabilityRegistry,
    RemoteLauncher,
    request_start,
    validate_launcher,
)
from .listener import ListenHandle, RendezvousListener
from .port_allocator import PortAllocator
from .streams import DuplexStream

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    CREATED = "created"
    PORT_ALLOCATED = "port_allocated"
    LISTENING = "listening"
    START_REQUESTED = "start_requested"
    CONNECTED = "connected"
    FAILED = "failed"


_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.CREATED: frozenset({SessionState.PORT_ALLOCATED, SessionState.FAILED}),
    SessionState.PORT_ALLOCATED: frozenset({SessionState.LISTENING, SessionState.FAILED}),
    SessionState.LISTENING: frozenset({SessionState.START_REQUESTED, SessionState.FAILED}),
    SessionState.START_REQUESTED: frozenset({SessionState.CONNECTED, SessionState.FAILED}),
    SessionState.CONNECTED: frozenset(),
    SessionState.FAILED: frozenset(),
}


@dataclass
class BootstrapSession:
    """State of a single bootstrap attempt."""

    session_label: str
    host: str = LOOPBACK_HOST
    port: int | None = None
    state: SessionState = SessionState.CREATED
    error: BaseException | None = None
    history: list[SessionState] = field(default_factory=lambda: [SessionState.CREATED])
    listener: ListenHandle | None = field(default=None, repr=False)

    @property
    def address(self) -> str | None:
        if self.port is None:
            return None
        return format_address(self.port, self.host)

    @property
    def finished(self) -> bool:
        return self.state in (SessionState.CONNECTED, SessionState.FAILED)

    def advance(self, state: SessionState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"invalid session transition {self.state.value} -> {state.value}")
        logger.debug("Session %s: %s -> %s", self.session_label, self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def fail(self, error: BaseException) -> None:
        if self.finished:
            return
        self.error = error
        self.advance(SessionState.FAILED)

    def release_listener(self) -> None:
        if self.listener is not None:
            self.listener.close()


class ConnectionBootstrapper:
    """Establish the connection to a server started by the process-owner."""

    def __init__(
        self,
        launcher: RemoteLauncher,
        *,
        session_label: str = "R",
        connect_timeout_s: float = 30.0,
        allocator: PortAllocator | None = None,
        listener: RendezvousListener | None = None,
        host: str = LOOPBACK_HOST,
        launcher_name: str = DEFAULT_LAUNCHER_CAPABILITY,
    ) -> None:
        validate_launcher(launcher, launcher_name)
        if connect_timeout_s is None or not math.isfinite(connect_timeout_s):
            raise ValueError("connect_timeout_s must be a finite number")
        if connect_timeout_s <= 0:
            raise ValueError("connect_timeout_s must be > 0")
        self._launcher = launcher
        self._session_label = session_label
        self._connect_timeout_s = float(connect_timeout_s)
        self._host = host
        self._allocator = allocator if allocator is not None else PortAllocator(host=host)
        self._listener = listener if listener is not None else RendezvousListener(host=host)
        self._session: BootstrapSession | None = None
        self._task: asyncio.Task[Any] | None = None
        self._cancelled = False

    @classmethod
    def from_config(
        cls,
        config: BootstrapConfig,
        registry: CapabilityRegistry,
    ) -> ConnectionBootstrapper:
        """Resolve the launcher by name and build a bootstrapper from ``config``.

        Raises:
            LauncherMissingError: If the launcher capability is not registered.
        """
        launcher = registry.resolve_launcher(config.launcher_capability)
        allocator = PortAllocator(
            host=config.host,
            port_range=config.port_range,
            max_attempts=config.max_port_attempts,
        )
        return cls(
            launcher,
            session_label=config.session_label,
            connect_timeout_s=config.connect_timeout_s,
            allocator=allocator,
            host=config.host,
            launcher_name=config.launcher_capability,
        )

    @property
    def session(self) -> BootstrapSession | None:
        return self._session

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def bootstrap(self) -> DuplexStream:
        """Run one bootstrap attempt.

        Returns:
            The connected stream. Ownership passes to the caller.

        Raises:
            BootstrapError: A subclass naming the step that failed.
            asyncio.CancelledError: If the attempt was cancelled.
        """
        if self._task is not None and not self._task.done():
            raise RuntimeError("a bootstrap attempt is already in progress")
        if self._cancelled:
            raise asyncio.CancelledError()
        self._task = asyncio.current_task()
        session = BootstrapSession(session_label=self._session_label, host=self._host)
        self._session = session
        try:
            stream = await self._run(session)
        except BootstrapError as exc:
            if exc.address is None:
                exc.address = session.address
            session.fail(exc)
            logger.warning("Bootstrap failed while trying to %s: %s", exc.step, exc)
            raise
        except BaseException as exc:
            session.fail(exc)
            raise
        finally:
            session.release_listener()
            self._task = None
        return stream

    async def server_options(self) -> dict[str, Any]:
        """Lazy stream factory for protocol clients: ``{reader, writer}`` once connected."""
        stream = await self.bootstrap()
        return stream.as_transports()

    def cancel(self) -> None:
        """Tear down an in-flight attempt. Safe to call more than once."""
        if self._cancelled:
            return
        self._cancelled = True
        session = self._session
        if session is not None and not session.finished:
            session.release_listener()
        task = self._task
        if task is not None and not task.done():
            task.cancel()
        logger.debug("Bootstrap cancelled")

    async def _run(self, session: BootstrapSession) -> DuplexStream:
        port = await self._allocator.allocate()
        self._check_cancelled()
        session.port = port
        session.advance(SessionState.PORT_ALLOCATED)

        session.listener = self._listener.open(port)
        session.advance(SessionState.LISTENING)
        address = session.address

        logger.info(
            "Requesting process-owner to start %s server at %s...",
            self._session_label,
            address,
        )
        acknowledgment = request_start(self._launcher, self._session_label, address)
        session.advance(SessionState.START_REQUESTED)

        logger.info("Waiting to connect to %s server at %s...", self._session_label, address)
        stream = await self._await_connection(session.listener, acknowledgment, address)
        if self._cancelled:
            await stream.close()
            raise asyncio.CancelledError()
        session.advance(SessionState.CONNECTED)
        logger.info("Connected to %s server at %s", self._session_label, address)
        return stream

    async def _await_connection(
        self,
        handle: ListenHandle,
        acknowledgment: Awaitable[Any] | None,
        address: str,
    ) -> DuplexStream:
        accept_task = asyncio.ensure_future(
            self._listener.await_connection(handle, self._connect_timeout_s)
        )
        ack_task = asyncio.ensure_future(acknowledgment) if acknowledgment is not None else None
        handed_off = False
        try:
            if ack_task is not None:
                await asyncio.wait({accept_task, ack_task}, return_when=asyncio.FIRST_COMPLETED)
                ack_error = _failure(ack_task)
                if ack_error is not None and not _succeeded(accept_task):
                    raise RemoteStartError(
                        f"{self._session_label} server failed to start: {ack_error}",
                        address=address,
                    ) from ack_error
                if ack_task.done() and not accept_task.done():
                    logger.debug(
                        "Process-owner acknowledged start of %s server", self._session_label
                    )
            stream = await accept_task
            handed_off = True
            return stream
        finally:
            await _discard(accept_task)
            if ack_task is not None:
                await _discard(ack_task)
            if not handed_off and _succeeded(accept_task):
                await accept_task.result().close()

    def _check_cancelled(self) -> None:
        if self._cancelled:
            raise asyncio.CancelledError()


def _failure(task: asyncio.Future[Any]) -> BaseException | None:
    if not task.done() or task.cancelled():
        return None
    return task.exception()


def _succeeded(task: asyncio.Future[Any]) -> bool:
    return task.done() and not task.cancelled() and task.exception() is None


async def _discard(task: asyncio.Future[Any]) -> None:
    """Cancel ``task`` if still pending and wait for it to settle."""
    if not task.done():
        task.cancel()
        await asyncio.wait({task})
    # Marks any exception as retrieved.
    _failure(task)
