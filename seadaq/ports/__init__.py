"""seadaq/ports/__init__.py

Hexagonal architecture ports (abstract interfaces).

This module defines the contracts the application layer relies on for
line sources, output files, the live display sink and host-level system
actions. Adapters in :mod:`seadaq.adapters` provide the concrete
implementations.

Copyright seadaq developers
Last modified: 2026-10-19
"""

from __future__ import annotations

import threading
from typing import Protocol, runtime_checkable

from ..domain import OutputKey, ReadSignal, SourceLine, SourceState


@runtime_checkable
class LineSourcePort(Protocol):
    """A readable line source that may vanish and come back.

    Concrete implementations: :class:`seadaq.adapters.serial_backend.SerialLineSource`,
    :class:`seadaq.adapters.udp_source.UdpLineSource` and
    :class:`seadaq.adapters.tcp_source.TidePollSource`.
    """

    state: SourceState

    def wait_for_presence(
        self, stop: threading.Event
    ) -> bool:  # pragma: no cover - structural
        """Block until the endpoint is usable; ``False`` if ``stop`` was set first."""

    def open(self) -> None:  # pragma: no cover - structural
        """Open and configure the endpoint, raising ``SourceConfigError`` on failure."""

    def read_line(
        self, timeout: float = 1.0
    ) -> SourceLine | ReadSignal | None:  # pragma: no cover - structural
        """Return the next line, ``None`` on timeout or ``ReadSignal.LOST``."""

    def close(self) -> None:  # pragma: no cover - structural
        """Release the endpoint handle. Safe to call repeatedly."""


@runtime_checkable
class OutputPort(Protocol):
    """Append-only per-key log files.

    Concrete implementation: :class:`seadaq.adapters.multiplexer.OutputMultiplexer`.
    """

    def write(self, key: OutputKey, record: str) -> bool:  # pragma: no cover - structural
        """Append ``record`` synchronously, returning ``False`` on failure."""

    def submit(self, key: OutputKey, record: str) -> None:  # pragma: no cover - structural
        """Queue ``record`` for ``key``, preserving submission order per key."""


@runtime_checkable
class DisplayPort(Protocol):
    """Live display fan-out.

    Concrete implementation: :class:`seadaq.adapters.zmq_pub.ZmqPublisher`.
    """

    def publish_record(self, stream: str, record: str) -> None:  # pragma: no cover - structural
        """Publish one formatted record for ``stream``."""


@runtime_checkable
class SystemActionsPort(Protocol):
    """Host facts and terminal system actions.

    Concrete implementation: :class:`seadaq.adapters.system_actions.HostSystem`.
    """

    def hostname(self) -> str:  # pragma: no cover - structural
        """Return the host name reported in status replies."""

    def ip_address(self) -> str:  # pragma: no cover - structural
        """Return the primary IPv4 address."""

    def disk_usage_percent(self, path: str) -> int:  # pragma: no cover - structural
        """Return used space of the filesystem holding ``path`` in percent."""

    def reboot(self) -> bool:  # pragma: no cover - structural
        """Reboot the host. Only returns if the action failed to start."""

    def shutdown(self) -> bool:  # pragma: no cover - structural
        """Power the host off. Only returns if the action failed to start."""


__all__ = [
    "LineSourcePort",
    "OutputPort",
    "DisplayPort",
    "SystemActionsPort",
]
