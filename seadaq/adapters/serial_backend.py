"""seadaq/adapters/serial_backend.py

Presence-polled serial line source.

The device node (typically a USB serial adapter) may be unplugged and
replugged at any time. :class:`SerialLineSource` waits for the node to
exist as a readable character device, opens it through pyserial-asyncio
in a dedicated event-loop thread and frames incoming bytes into lines.
When the transport reports loss, or the node disappears while reading,
the source reports ``ReadSignal.LOST`` and the caller closes it and
returns to presence polling.

Copyright seadaq developers
Last modified: 2026-10-19
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import importlib
import os
import queue
import stat
import threading
from typing import Callable

import serial

from ..constants import DEFAULT_SERIAL_FORMAT, MAX_LINE, PRESENCE_INTERVAL, SERIAL_FORMATS
from ..domain import ReadSignal, SerialParams, SourceConfigError, SourceLine, SourceState

_BYTESIZES = {7: serial.SEVENBITS, 8: serial.EIGHTBITS}
_PARITIES = {"N": serial.PARITY_NONE, "E": serial.PARITY_EVEN, "O": serial.PARITY_ODD}
_STOPBITS = {1: serial.STOPBITS_ONE, 2: serial.STOPBITS_TWO}

_LOST_MARK = object()


def device_present(path: str) -> bool:
    """True if ``path`` is a readable character device."""

    try:
        st = os.stat(path)
    except OSError:
        return False
    return stat.S_ISCHR(st.st_mode) and os.access(path, os.R_OK)


def resolve_format(name: str) -> tuple[str, bool]:
    """Return the preset name to use and whether ``name`` was recognised."""

    key = (name or "").strip().upper()
    if key in SERIAL_FORMATS:
        return key, True
    return DEFAULT_SERIAL_FORMAT, False


class _LineProtocol(asyncio.Protocol):
    """Protocol that frames received bytes into lines on a thread-safe queue."""

    def __init__(
        self,
        read_queue: queue.Queue,
        on_connection_lost: Callable[[Exception | None], None],
    ) -> None:
        self._read_queue = read_queue
        self._on_connection_lost = on_connection_lost
        self._buf = bytearray()
        self.transport: asyncio.Transport | None = None

    def connection_made(self, transport: asyncio.BaseTransport) -> None:  # type: ignore[override]
        self.transport = transport  # type: ignore[assignment]

    def data_received(self, data: bytes) -> None:  # type: ignore[override]
        self._buf.extend(data)
        while True:
            idx = self._buf.find(b"\n")
            if idx < 0:
                break
            line = bytes(self._buf[:idx]).decode("latin1").rstrip("\r")
            del self._buf[: idx + 1]
            try:
                self._read_queue.put_nowait(line)
            except queue.Full:  # pragma: no cover - reader stalled
                break
        if len(self._buf) > MAX_LINE:
            self._buf.clear()

    def connection_lost(self, exc: Exception | None) -> None:  # type: ignore[override]
        self._on_connection_lost(exc)


class SerialLineSource:
    """Serial device source with the ABSENT/CONNECTING/CONNECTED/LOST cycle."""

    def __init__(
        self,
        params: SerialParams,
        logger: Callable[[int, str, object | None], None],
        *,
        presence_interval: float = PRESENCE_INTERVAL,
        is_present: Callable[[str], bool] = device_present,
    ) -> None:
        self._params = params
        self._logger = logger
        self._presence_interval = float(presence_interval)
        self._is_present = is_present
        self.state = SourceState.ABSENT

        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._transport: asyncio.Transport | None = None
        self._protocol: _LineProtocol | None = None
        self._read_queue: queue.Queue = queue.Queue(maxsize=65536)
        self._lost = threading.Event()
        self._serial_asyncio = None

    @property
    def port(self) -> str:
        return self._params.port

    def _load_serial_asyncio(self):
        if self._serial_asyncio is None:
            self._serial_asyncio = importlib.import_module("serial_asyncio")
        return self._serial_asyncio

    async def _create_connection(self, loop, protocol_factory, port: str, **kwargs):
        serial_asyncio = self._load_serial_asyncio()
        return await serial_asyncio.create_serial_connection(
            loop, protocol_factory, port, **kwargs
        )

    @staticmethod
    def _serial_loop_worker(loop: asyncio.AbstractEventLoop) -> None:
        asyncio.set_event_loop(loop)
        loop.run_forever()

    # --- lifecycle --------------------------------------------------------

    def wait_for_presence(self, stop: threading.Event) -> bool:
        announced = False
        while not stop.is_set():
            if self._is_present(self.port):
                self.state = SourceState.CONNECTING
                self._logger(2, "Device %s present", self.port)
                return True
            if not announced:
                self._logger(2, "Waiting for device %s", self.port)
                announced = True
            stop.wait(self._presence_interval)
        return False

    def line_settings(self) -> dict[str, object]:
        name, known = resolve_format(self._params.format)
        if not known:
            self._logger(
                1, "Unknown serial format %r, using %s", self._params.format, name
            )
        bytesize, parity, stopbits = SERIAL_FORMATS[name]
        return {
            "baudrate": int(self._params.baudrate),
            "bytesize": _BYTESIZES[bytesize],
            "parity": _PARITIES[parity],
            "stopbits": _STOPBITS[stopbits],
            "rtscts": bool(self._params.rtscts),
        }

    def open(self) -> None:
        self.close()
        self.state = SourceState.CONNECTING
        self._read_queue = queue.Queue(maxsize=65536)
        self._lost.clear()
        settings = self.line_settings()

        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._serial_loop_worker,
            args=(self._loop,),
            name="seadaq-serial",
            daemon=True,
        )
        self._thread.start()

        read_queue = self._read_queue

        def _on_lost(exc: Exception | None) -> None:
            self._transport = None
            self._lost.set()
            try:
                read_queue.put_nowait(_LOST_MARK)
            except queue.Full:  # pragma: no cover - flag still set
                pass
            if exc:
                self._logger(1, "Serial connection lost: %s", exc)

        async def _open():
            return await self._create_connection(
                self._loop,
                lambda: _LineProtocol(read_queue, _on_lost),
                self.port,
                **settings,
            )

        try:
            fut = asyncio.run_coroutine_threadsafe(_open(), self._loop)
            self._transport, self._protocol = fut.result(timeout=5.0)
        except ValueError as exc:
            self.close()
            raise SourceConfigError(
                f"invalid serial settings for {self.port}: {exc}", fatal=True
            ) from exc
        except (OSError, concurrent.futures.TimeoutError) as exc:
            self.close()
            raise SourceConfigError(f"cannot configure {self.port}: {exc}") from exc

        self.state = SourceState.CONNECTED
        self._logger(
            2, "Serial port %s opened at %d baud", self.port, settings["baudrate"]
        )

    def read_line(self, timeout: float = 1.0) -> SourceLine | ReadSignal | None:
        if self._loop is None:
            self.state = SourceState.LOST
            return ReadSignal.LOST
        try:
            item = self._read_queue.get(timeout=timeout)
        except queue.Empty:
            if self._lost.is_set() or not self._is_present(self.port):
                self.state = SourceState.LOST
                return ReadSignal.LOST
            return None
        if item is _LOST_MARK:
            self.state = SourceState.LOST
            return ReadSignal.LOST
        return SourceLine(text=item, reply=self.write)

    def write(self, payload: str) -> None:
        if self._loop is None or self._transport is None:
            return
        data = payload.encode("ascii", errors="ignore")

        def _write():
            if self._transport is not None:
                self._transport.write(data)

        self._loop.call_soon_threadsafe(_write)

    def close(self) -> None:
        loop, transport, thread = self._loop, self._transport, self._thread
        self._loop = None
        self._transport = None
        self._protocol = None
        self._thread = None

        if loop is not None:
            if transport is not None:
                loop.call_soon_threadsafe(transport.close)
            loop.call_soon_threadsafe(loop.stop)
        if thread is not None:
            thread.join(timeout=1.5)
        if loop is not None and not loop.is_running():
            loop.close()
        self.state = SourceState.ABSENT
