"""Process-owner capability lookup and start requests."""

from __future__ import annotations

import inspect
import logging
import threading
from collections.abc import Awaitable
from typing import Any, Protocol, runtime_checkable

from .exceptions import LauncherMissingError, RemoteStartError

logger = logging.getLogger(__name__)

DEFAULT_LAUNCHER_CAPABILITY = "rendezvous.process-owner"


@runtime_checkable
class RemoteLauncher(Protocol):
    """The one operation the bootstrapper needs from the process-owner.

    ``start_server`` may return None (fire-and-forget) or an awaitable that
    acts as an acknowledgment: it raises if the server could not be started.
    """

    def start_server(self, kind: str, address: str) -> Any:
        ...


class CapabilityRegistry:
    """Name-to-capability lookup shared by the host and its integrations."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._capabilities: dict[str, Any] = {}

    def register(self, name: str, capability: Any) -> None:
        if not name:
            raise ValueError("capability name must not be empty")
        with self._lock:
            self._capabilities[name] = capability
        logger.debug("Registered capability %s", name)

    def unregister(self, name: str) -> None:
        with self._lock:
            self._capabilities.pop(name, None)

    def get(self, name: str) -> Any | None:
        with self._lock:
            return self._capabilities.get(name)

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._capabilities)

    def resolve_launcher(self, name: str) -> RemoteLauncher:
        """Look up ``name`` and check that it can start servers.

        Raises:
            LauncherMissingError: If nothing is registered under ``name`` or the
                registered object has no callable ``start_server``.
        """
        capability = self.get(name)
        if capability is None:
            raise LauncherMissingError(name)
        validate_launcher(capability, name)
        return capability


def validate_launcher(launcher: Any, name: str = DEFAULT_LAUNCHER_CAPABILITY) -> None:
    if launcher is None:
        raise LauncherMissingError(name)
    if not callable(getattr(launcher, "start_server", None)):
        raise LauncherMissingError(name, "it does not provide start_server(kind, address)")


def request_start(launcher: RemoteLauncher, kind: str, address: str) -> Awaitable[Any] | None:
    """Ask the process-owner to start a ``kind`` server dialing ``address``.

    Returns:
        The launcher's acknowledgment awaitable, or None when it gives none.

    Raises:
        RemoteStartError: If ``start_server`` itself raises.
    """
    try:
        result = launcher.start_server(kind, address)
    except Exception as exc:  # noqa: BLE001
        raise RemoteStartError(
            f"Process-owner refused to start {kind} server: {type(exc).__name__}: {exc}",
            address=address,
        ) from exc
    if inspect.isawaitable(result):
        return result
    return None
