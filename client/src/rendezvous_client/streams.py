"""Duplex byte stream handed to the protocol client."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class DuplexStream:
    """Independent read and write channels over one accepted connection."""

    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter

    @property
    def peer(self) -> Any:
        return self.writer.get_extra_info("peername")

    def as_transports(self) -> dict[str, Any]:
        """Return the ``{reader, writer}`` mapping consumed by protocol clients."""
        return {"reader": self.reader, "writer": self.writer}

    async def close(self) -> None:
        if self.writer.is_closing():
            return
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except (ConnectionError, OSError) as exc:
            logger.debug("Ignoring error while closing stream: %s", exc)
