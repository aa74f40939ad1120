"""Process-owner that spawns rendezvous servers as child processes."""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Sequence

from rendezvous_shared import parse_address

from .exceptions import ServerStartError

logger = logging.getLogger(__name__)

_STDERR_TAIL_CHARS = 500


def default_command(kind: str, address: str) -> list[str]:
    return [sys.executable, "-m", "rendezvous_server", "--kind", kind, "--address", address]


class SubprocessLauncher:
    """Start one server process per request.

    ``start_server`` is a coroutine: it spawns the child and then waits for it.
    A child that exits non-zero makes it raise ``ServerStartError``, which is
    what the bootstrapper treats as an explicit start failure.
    """

    def __init__(
        self,
        command: Sequence[str] | None = None,
        extra_args: Sequence[str] = (),
    ) -> None:
        self._command = list(command) if command is not None else None
        self._extra_args = list(extra_args)
        self._processes: list[asyncio.subprocess.Process] = []

    @property
    def processes(self) -> list[asyncio.subprocess.Process]:
        return list(self._processes)

    def build_command(self, kind: str, address: str) -> list[str]:
        if self._command is None:
            base = default_command(kind, address)
        else:
            base = [part.format(kind=kind, address=address) for part in self._command]
        return base + self._extra_args

    async def start_server(self, kind: str, address: str) -> None:
        parse_address(address)
        argv = self.build_command(kind, address)
        logger.info("Starting %s server for %s", kind, address)
        logger.debug("Command: %s", argv)
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ServerStartError(kind, -1, str(exc)) from exc
        self._processes.append(process)
        _, stderr = await process.communicate()
        returncode = process.returncode
        if returncode:
            tail = stderr.decode("utf-8", errors="replace").strip()[-_STDERR_TAIL_CHARS:]
            logger.warning("%s server exited with status %s", kind, returncode)
            raise ServerStartError(kind, returncode, tail)
        logger.info("%s server exited cleanly", kind)

    async def terminate_all(self, timeout_s: float = 5.0) -> None:
        """Stop every child that is still running."""
        for process in self._processes:
            if process.returncode is not None:
                continue
            try:
                process.terminate()
            except ProcessLookupError:
                continue
            try:
                await asyncio.wait_for(process.wait(), timeout_s)
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
        self._processes.clear()
