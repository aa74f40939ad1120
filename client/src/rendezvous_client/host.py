"""Host integration: command registration, notifications and the session lifecycle."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, Protocol

from .bootstrap import ConnectionBootstrapper
from .config import BootstrapConfig
from .exceptions import BootstrapError, LauncherMissingError
from .failure_report import format_bootstrap_failure
from .launcher import CapabilityRegistry
from .streams import DuplexStream

logger = logging.getLogger(__name__)

HELLO_COMMAND = "rendezvous.helloWorld"
HELLO_MESSAGE = "Hello World from rendezvous!"


class Notifier(Protocol):
    def show_info(self, message: str) -> None:
        ...

    def show_error(self, message: str) -> None:
        ...


class LoggingNotifier:
    """Notifier that writes user-facing messages to the log."""

    def show_info(self, message: str) -> None:
        logger.info("%s", message)

    def show_error(self, message: str) -> None:
        logger.error("%s", message)


class ProtocolClient(Protocol):
    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...


class CommandRegistry:
    """Commands the host exposes to the user, by name."""

    def __init__(self) -> None:
        self._commands: dict[str, Callable[..., Any]] = {}

    def register(self, name: str, handler: Callable[..., Any]) -> None:
        if name in self._commands:
            raise ValueError(f"command already registered: {name}")
        self._commands[name] = handler

    def unregister(self, name: str) -> None:
        self._commands.pop(name, None)

    def execute(self, name: str, *args: Any) -> Any:
        try:
            handler = self._commands[name]
        except KeyError:
            raise ValueError(f"unknown command: {name}") from None
        return handler(*args)

    def names(self) -> list[str]:
        return sorted(self._commands)


class HostSession:
    """Owns one bootstrap attempt and the protocol client it feeds.

    ``start()`` registers the diagnostic command, resolves the process-owner,
    bootstraps the connection and starts the client only once a stream exists.
    ``stop()`` tears everything down and may be called any number of times.
    """

    def __init__(
        self,
        registry: CapabilityRegistry,
        client_factory: Callable[[DuplexStream], ProtocolClient],
        *,
        config: BootstrapConfig | None = None,
        notifier: Notifier | None = None,
        commands: CommandRegistry | None = None,
    ) -> None:
        self._registry = registry
        self._client_factory = client_factory
        self._config = config if config is not None else BootstrapConfig.from_env()
        self._notifier = notifier if notifier is not None else LoggingNotifier()
        self._commands = commands if commands is not None else CommandRegistry()
        self._bootstrapper: ConnectionBootstrapper | None = None
        self._attempt: asyncio.Task[DuplexStream] | None = None
        self._stream: DuplexStream | None = None
        self._client: ProtocolClient | None = None
        self._started = False
        self._stopped = False

    @property
    def client(self) -> ProtocolClient | None:
        return self._client

    @property
    def bootstrapper(self) -> ConnectionBootstrapper | None:
        return self._bootstrapper

    @property
    def commands(self) -> CommandRegistry:
        return self._commands

    @property
    def running(self) -> bool:
        return self._client is not None and not self._stopped

    async def start(self) -> bool:
        """Activate the session.

        Returns:
            True if the protocol client was started, False if the attempt failed
            (the failure has already been shown to the user).
        """
        if self._started:
            raise RuntimeError("session already started")
        self._started = True
        logger.info("Activating %s language server session", self._config.session_label)
        self._commands.register(HELLO_COMMAND, self._say_hello)

        try:
            self._bootstrapper = ConnectionBootstrapper.from_config(self._config, self._registry)
        except LauncherMissingError as exc:
            self._notifier.show_error(
                f"{format_bootstrap_failure(exc)}\n\n"
                f"{self._config.session_label} language server will not be available."
            )
            return False

        self._attempt = asyncio.ensure_future(self._bootstrapper.bootstrap())
        try:
            stream = await self._attempt
        except BootstrapError as exc:
            self._notifier.show_error(format_bootstrap_failure(exc))
            return False
        except asyncio.CancelledError:
            if self._stopped:
                logger.info("Bootstrap cancelled by session stop")
                return False
            raise
        finally:
            self._attempt = None

        if self._stopped:
            await stream.close()
            return False
        return await self._start_client(stream)

    async def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        if self._bootstrapper is not None:
            self._bootstrapper.cancel()
        client, self._client = self._client, None
        stream, self._stream = self._stream, None
        if client is not None:
            await client.stop()
        if stream is not None:
            await stream.close()
        self._commands.unregister(HELLO_COMMAND)
        logger.info("Session stopped")

    async def _start_client(self, stream: DuplexStream) -> bool:
        client = self._client_factory(stream)
        try:
            await client.start()
        except Exception as exc:  # noqa: BLE001
            logger.exception("Protocol client failed to start")
            await stream.close()
            self._notifier.show_error(
                f"Could not start language client:\n\n{type(exc).__name__}: {exc}"
            )
            return False
        self._client = client
        self._stream = stream
        if self._stopped:
            self._stopped = False
            await self.stop()
            return False
        return True

    def _say_hello(self) -> str:
        self._notifier.show_info(HELLO_MESSAGE)
        return HELLO_MESSAGE
