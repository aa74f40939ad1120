"""Bootstrap configuration and environment overrides."""

from __future__ import annotations

import dataclasses
import math
import os
from collections.abc import Mapping
from dataclasses import dataclass

from rendezvous_shared import LOOPBACK_HOST

from .launcher import DEFAULT_LAUNCHER_CAPABILITY

DEFAULT_CONNECT_TIMEOUT_S = 30.0
DEFAULT_MAX_PORT_ATTEMPTS = 20
DEFAULT_SESSION_LABEL = "R"

ENV_CONNECT_TIMEOUT = "RENDEZVOUS_CONNECT_TIMEOUT"
ENV_PORT_RANGE = "RENDEZVOUS_PORT_RANGE"
ENV_MAX_PORT_ATTEMPTS = "RENDEZVOUS_MAX_PORT_ATTEMPTS"
ENV_LAUNCHER = "RENDEZVOUS_LAUNCHER"
ENV_SESSION_LABEL = "RENDEZVOUS_SESSION_LABEL"


@dataclass(frozen=True)
class BootstrapConfig:
    """Settings for one bootstrapper.

    The connect timeout is mandatory so a rendezvous never waits forever while
    holding a listening socket.
    """

    host: str = LOOPBACK_HOST
    connect_timeout_s: float = DEFAULT_CONNECT_TIMEOUT_S
    port_range: tuple[int, int] | None = None
    max_port_attempts: int = DEFAULT_MAX_PORT_ATTEMPTS
    launcher_capability: str = DEFAULT_LAUNCHER_CAPABILITY
    session_label: str = DEFAULT_SESSION_LABEL

    def __post_init__(self) -> None:
        if self.host != LOOPBACK_HOST:
            raise ValueError(f"host must be {LOOPBACK_HOST}")
        if self.connect_timeout_s is None or not math.isfinite(self.connect_timeout_s):
            raise ValueError("connect_timeout_s must be a finite number")
        if self.connect_timeout_s <= 0:
            raise ValueError("connect_timeout_s must be > 0")
        if self.max_port_attempts < 1:
            raise ValueError("max_port_attempts must be >= 1")
        if self.port_range is not None:
            start, end = self.port_range
            if not (1 <= start <= end <= 65535):
                raise ValueError(f"port_range must satisfy 1 <= start <= end <= 65535, got {start}-{end}")
        if not self.launcher_capability:
            raise ValueError("launcher_capability must not be empty")
        if not self.session_label:
            raise ValueError("session_label must not be empty")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> BootstrapConfig:
        """Build a config from ``RENDEZVOUS_*`` environment variables.

        Raises:
            ValueError: If a variable is malformed or out of range. The message
                names the variable.
        """
        if environ is None:
            environ = os.environ
        config = cls()
        for name, field_name, parse in _ENV_FIELDS:
            raw = environ.get(name)
            if not raw:
                continue
            value = parse(name, raw)
            try:
                config = dataclasses.replace(config, **{field_name: value})
            except ValueError as exc:
                raise ValueError(f"{name}: {exc}") from None
        return config


def configure_bootstrap(base: BootstrapConfig | None = None, **overrides: object) -> BootstrapConfig:
    """Return a validated copy of ``base`` (default: from the environment) with overrides."""
    if base is None:
        base = BootstrapConfig.from_env()
    unknown = set(overrides) - {field.name for field in dataclasses.fields(BootstrapConfig)}
    if unknown:
        raise ValueError(f"unknown bootstrap settings: {', '.join(sorted(unknown))}")
    return dataclasses.replace(base, **overrides)


def _parse_float(name: str, raw: str) -> float:
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _parse_port_range(name: str, raw: str) -> tuple[int, int]:
    start, sep, end = raw.strip().partition("-")
    if not sep:
        raise ValueError(f"{name} must look like START-END, got {raw!r}")
    return _parse_int(name, start), _parse_int(name, end)


def _parse_label(name: str, raw: str) -> str:
    return raw.strip()


_ENV_FIELDS = (
    (ENV_CONNECT_TIMEOUT, "connect_timeout_s", _parse_float),
    (ENV_PORT_RANGE, "port_range", _parse_port_range),
    (ENV_MAX_PORT_ATTEMPTS, "max_port_attempts", _parse_int),
    (ENV_LAUNCHER, "launcher_capability", _parse_label),
    (ENV_SESSION_LABEL, "session_label", _parse_label),
)
