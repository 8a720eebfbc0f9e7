"""seadaq/adapters/udp_source.py

UDP sentence source for the AIS and winch loggers.

The socket is bound once. A datagram may carry several newline
separated sentences; each one is delivered with a ``reply`` callable
that answers the sender, which is how status queries are acknowledged.
A connectionless socket never reports loss, so the source stays
CONNECTED until the process stops.

Copyright seadaq developers
Last modified: 2026-10-19
"""

from __future__ import annotations

import collections
import socket
import threading
from typing import Callable

from ..constants import MAX_LINE
from ..domain import ReadSignal, SourceConfigError, SourceLine, SourceState


class UdpLineSource:
    def __init__(
        self,
        host: str,
        port: int,
        logger: Callable[[int, str, object | None], None],
        *,
        broadcast: bool = True,
    ) -> None:
        self._host = host
        self._port = int(port)
        self._logger = logger
        self._broadcast = bool(broadcast)
        self._sock: socket.socket | None = None
        self._pending: collections.deque[SourceLine] = collections.deque()
        self.state = SourceState.ABSENT

    @property
    def address(self) -> tuple[str, int]:
        """Bound address; the real port when ``port`` was 0."""
        if self._sock is not None:
            return self._sock.getsockname()[:2]
        return (self._host, self._port)

    def wait_for_presence(self, stop: threading.Event) -> bool:
        if stop.is_set():
            return False
        self.state = SourceState.CONNECTING
        return True

    def open(self) -> None:
        self.close()
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            if self._broadcast:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            sock.bind((self._host, self._port))
        except OSError as exc:
            sock.close()
            raise SourceConfigError(
                f"cannot bind UDP {self._host}:{self._port}: {exc}", fatal=True
            ) from exc
        self._sock = sock
        self.state = SourceState.CONNECTED
        self._logger(2, "Listening for UDP sentences on %s:%d", *self.address)

    def _reply_to(self, addr: tuple[str, int]) -> Callable[[str], None]:
        sock = self._sock

        def _reply(text: str) -> None:
            try:
                sock.sendto(text.encode("ascii", errors="ignore"), addr)
            except OSError as exc:
                self._logger(1, "Reply to %s:%d failed: %s", addr[0], addr[1], exc)

        return _reply

    def read_line(self, timeout: float = 1.0) -> SourceLine | ReadSignal | None:
        if self._pending:
            return self._pending.popleft()
        if self._sock is None:
            self.state = SourceState.LOST
            return ReadSignal.LOST
        self._sock.settimeout(timeout)
        try:
            data, addr = self._sock.recvfrom(MAX_LINE)
        except socket.timeout:
            return None
        except OSError as exc:
            self._logger(1, "UDP receive failed: %s", exc)
            return None

        reply = self._reply_to(addr)
        text = data.decode("latin1")
        for line in text.splitlines():
            if line.strip():
                self._pending.append(SourceLine(text=line, reply=reply))
        if self._pending:
            return self._pending.popleft()
        return None

    def close(self) -> None:
        sock, self._sock = self._sock, None
        self._pending.clear()
        if sock is not None:
            sock.close()
        self.state = SourceState.ABSENT
