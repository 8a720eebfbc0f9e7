"""seadaq/adapters/tcp_source.py

Polling TCP tide gauge source.

The gauge only talks when asked. A poll thread sends the poll command
every ``poll_interval`` seconds and waits ``poll_interval + grace`` for
an answer; an unanswered poll produces the ``NORESPONSE`` sentinel line
so the record stream keeps its cadence. A receive thread frames replies
into lines. Presence is a successful TCP connect, retried every
``presence_interval`` seconds; a peer close or socket error is reported
as ``ReadSignal.LOST``.

Copyright seadaq developers
Last modified: 2026-10-19
"""

from __future__ import annotations

import queue
import socket
import threading
import time
from typing import Callable

from ..constants import MAX_LINE, PRESENCE_INTERVAL, TIDE_GRACE, TIDE_NO_RESPONSE
from ..domain import ReadSignal, SourceConfigError, SourceLine, SourceState

_LOST_MARK = object()


class TidePollSource:
    def __init__(
        self,
        host: str,
        port: int,
        logger: Callable[[int, str, object | None], None],
        *,
        poll_command: str = "R",
        poll_interval: float = 6.0,
        grace: float = TIDE_GRACE,
        presence_interval: float = PRESENCE_INTERVAL,
        connect_timeout: float = 5.0,
    ) -> None:
        self._host = host
        self._port = int(port)
        self._logger = logger
        self._poll_command = (poll_command or "").encode("ascii", errors="ignore") + b"\r\n"
        self._poll_interval = float(poll_interval)
        self._grace = float(grace)
        self._presence_interval = float(presence_interval)
        self._connect_timeout = float(connect_timeout)
        self.state = SourceState.ABSENT

        self._sock: socket.socket | None = None
        self._queue: queue.Queue = queue.Queue(maxsize=4096)
        self._answered = threading.Event()
        self._closing = threading.Event()
        self._lost = threading.Event()
        self._threads: list[threading.Thread] = []

    # --- presence ---------------------------------------------------------

    def wait_for_presence(self, stop: threading.Event) -> bool:
        announced = False
        while not stop.is_set():
            try:
                sock = socket.create_connection(
                    (self._host, self._port), timeout=self._connect_timeout
                )
            except OSError as exc:
                if not announced:
                    self._logger(
                        2, "Waiting for tide gauge %s:%d (%s)", self._host, self._port, exc
                    )
                    announced = True
                stop.wait(self._presence_interval)
                continue
            self._sock = sock
            self.state = SourceState.CONNECTING
            return True
        return False

    # --- worker threads ---------------------------------------------------

    def _mark_lost(self, reason: object) -> None:
        if self._closing.is_set() or self._lost.is_set():
            return
        self._lost.set()
        self._logger(1, "Tide gauge connection lost: %s", reason)
        try:
            self._queue.put_nowait(_LOST_MARK)
        except queue.Full:  # pragma: no cover - flag still set
            pass

    def _receive_loop(self, sock: socket.socket) -> None:
        buf = bytearray()
        sock.settimeout(0.5)
        while not self._closing.is_set():
            try:
                data = sock.recv(MAX_LINE)
            except socket.timeout:
                continue
            except OSError as exc:
                self._mark_lost(exc)
                return
            if not data:
                self._mark_lost("closed by peer")
                return
            buf.extend(data.replace(b"\r", b"\n"))
            while True:
                idx = buf.find(b"\n")
                if idx < 0:
                    break
                line = bytes(buf[:idx]).decode("latin1").strip()
                del buf[: idx + 1]
                if line:
                    self._queue.put(line)
                    self._answered.set()
            if len(buf) > MAX_LINE:
                buf.clear()

    def _poll_loop(self, sock: socket.socket) -> None:
        while not self._closing.is_set():
            sent_at = time.monotonic()
            self._answered.clear()
            try:
                sock.sendall(self._poll_command)
            except OSError as exc:
                self._mark_lost(exc)
                return
            if not self._answered.wait(self._poll_interval + self._grace):
                if self._closing.is_set() or self._lost.is_set():
                    return
                self._logger(3, "Tide gauge did not answer poll")
                self._queue.put(TIDE_NO_RESPONSE)
            remaining = self._poll_interval - (time.monotonic() - sent_at)
            if remaining > 0:
                self._closing.wait(remaining)

    # --- lifecycle --------------------------------------------------------

    def open(self) -> None:
        sock = self._sock
        if sock is None:
            raise SourceConfigError(f"tide gauge {self._host}:{self._port} not connected")
        self._queue = queue.Queue(maxsize=4096)
        self._closing.clear()
        self._lost.clear()
        self._threads = [
            threading.Thread(
                target=self._receive_loop, args=(sock,), name="seadaq-tide-rx", daemon=True
            ),
            threading.Thread(
                target=self._poll_loop, args=(sock,), name="seadaq-tide-poll", daemon=True
            ),
        ]
        for t in self._threads:
            t.start()
        self.state = SourceState.CONNECTED
        self._logger(2, "Polling tide gauge %s:%d", self._host, self._port)

    def read_line(self, timeout: float = 1.0) -> SourceLine | ReadSignal | None:
        if self._sock is None:
            self.state = SourceState.LOST
            return ReadSignal.LOST
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            if self._lost.is_set():
                self.state = SourceState.LOST
                return ReadSignal.LOST
            return None
        if item is _LOST_MARK:
            self.state = SourceState.LOST
            return ReadSignal.LOST
        return SourceLine(text=item, reply=self._reply)

    def _reply(self, text: str) -> None:
        sock = self._sock
        if sock is None:
            return
        try:
            sock.sendall(text.encode("ascii", errors="ignore"))
        except OSError as exc:
            self._logger(1, "Reply to tide gauge link failed: %s", exc)

    def close(self) -> None:
        self._closing.set()
        sock, self._sock = self._sock, None
        if sock is not None:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            sock.close()
        for t in self._threads:
            if t is not threading.current_thread():
                t.join(timeout=1.5)
        self._threads = []
        self.state = SourceState.ABSENT
