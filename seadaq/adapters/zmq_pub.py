"""seadaq/adapters/zmq_pub.py

ZeroMQ publisher (PUB) for the live display sink.

Format (multipart):

- [0] topic (bytes)
- [1] stream name, ascii (bytes)
- [2] formatted log record, ascii (bytes)

Copyright seadaq developers
Last modified: 2026-10-19
"""

from __future__ import annotations

import threading
from typing import Callable


class ZmqPublisher:
    def __init__(
        self,
        *,
        endpoint: str,
        bind: bool = True,
        topic: str = "seadaq",
        hwm: int = 10,
        logger: Callable[[int, str, object | None], None] | None = None,
    ) -> None:
        if not endpoint:
            raise ValueError("endpoint is required")
        self._endpoint = endpoint
        self._bind = bool(bind)
        self._topic = (topic or "seadaq").encode("ascii", errors="ignore")
        self._hwm = int(hwm)
        self._logger = logger or (lambda *_: None)

        self._zmq = None
        self._ctx = None
        self._sock = None
        # zmq sockets are not thread-safe; writer threads share this one
        self._send_lock = threading.Lock()

    def start(self) -> bool:
        if self._sock is not None:
            return True
        try:
            import zmq

            self._zmq = zmq
            self._ctx = zmq.Context.instance()
            self._sock = self._ctx.socket(zmq.PUB)
            self._sock.setsockopt(zmq.SNDHWM, self._hwm)
            if self._bind:
                self._sock.bind(self._endpoint)
            else:
                self._sock.connect(self._endpoint)
            self._logger(2, "Display sink publishing on %s", self._endpoint)
            return True
        except Exception as exc:
            self._logger(1, "Display sink unavailable on %s: %s", self._endpoint, exc)
            self.stop()
            return False

    def stop(self) -> None:
        try:
            if self._sock is not None:
                self._sock.close(linger=0)
        except Exception:
            pass
        self._sock = None

    def publish_record(self, stream: str, record: str) -> None:
        if self._sock is None:
            return
        parts = [
            self._topic,
            stream.encode("ascii", errors="ignore"),
            record.encode("ascii", errors="ignore"),
        ]
        with self._send_lock:
            try:
                self._sock.send_multipart(parts, flags=self._zmq.NOBLOCK)
            except self._zmq.Again:
                pass
