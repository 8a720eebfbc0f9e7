from __future__ import annotations

import queue
import threading
import time

import pytest
import serial

from seadaq.adapters.serial_backend import (
    SerialLineSource,
    _LineProtocol,
    device_present,
    resolve_format,
)
from seadaq.domain import ReadSignal, SerialParams, SourceConfigError, SourceState


class FakeTransport:
    def __init__(self) -> None:
        self.written: list[bytes] = []
        self.closed = False

    def write(self, data: bytes) -> None:
        self.written.append(data)

    def close(self) -> None:
        self.closed = True


class FakeConnector:
    """Replacement for ``SerialLineSource._create_connection``."""

    def __init__(self) -> None:
        self.opened: list[tuple[_LineProtocol, FakeTransport, dict]] = []
        self.error: Exception | None = None

    async def __call__(self, loop, protocol_factory, port, **kwargs):
        if self.error is not None:
            raise self.error
        proto = protocol_factory()
        transport = FakeTransport()
        proto.connection_made(transport)
        self.opened.append((proto, transport, kwargs))
        return transport, proto


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


@pytest.fixture
def source(logs, monkeypatch):
    src = SerialLineSource(
        SerialParams(port="/dev/ttyFAKE", baudrate=4800, format="7E1"),
        logs,
        presence_interval=0.01,
        is_present=lambda path: True,
    )
    connector = FakeConnector()
    monkeypatch.setattr(src, "_create_connection", connector)
    src.connector = connector
    yield src
    src.close()


def test_protocol_frames_lines() -> None:
    q: queue.Queue[str] = queue.Queue(maxsize=10)
    proto = _LineProtocol(q, lambda exc: None)

    proto.data_received(b"$GPGGA,1*47\r\n$GPZ")
    proto.data_received(b"DA,2*00\r\n")

    assert q.get_nowait() == "$GPGGA,1*47"
    assert q.get_nowait() == "$GPZDA,2*00"
    assert q.empty()


def test_protocol_connection_lost_callback() -> None:
    lost: list[Exception | None] = []
    proto = _LineProtocol(queue.Queue(), lost.append)
    err = OSError("unplugged")
    proto.connection_lost(err)
    assert lost == [err]


def test_device_present(tmp_path) -> None:
    regular = tmp_path / "ttyUSB0"
    regular.write_text("", encoding="ascii")
    assert device_present(str(regular)) is False
    assert device_present(str(tmp_path / "missing")) is False
    assert device_present("/dev/null") is True


def test_resolve_format() -> None:
    assert resolve_format("7o2") == ("7O2", True)
    assert resolve_format("9X9") == ("8N1", False)
    assert resolve_format("") == ("8N1", False)


def test_line_settings(source) -> None:
    settings = source.line_settings()
    assert settings == {
        "baudrate": 4800,
        "bytesize": serial.SEVENBITS,
        "parity": serial.PARITY_EVEN,
        "stopbits": serial.STOPBITS_ONE,
        "rtscts": False,
    }


def test_unknown_format_falls_back(logs) -> None:
    src = SerialLineSource(SerialParams(port="/dev/x", format="5Z3"), logs)
    settings = src.line_settings()
    assert settings["bytesize"] == serial.EIGHTBITS
    assert settings["parity"] == serial.PARITY_NONE
    assert settings["stopbits"] == serial.STOPBITS_ONE
    assert logs.contains("Unknown serial format '5Z3', using 8N1")


def test_wait_for_presence_polls_until_device_appears(logs) -> None:
    answers = iter([False, False, False, True])
    seen: list[str] = []

    def is_present(path: str) -> bool:
        seen.append(path)
        return next(answers)

    src = SerialLineSource(
        SerialParams(port="/dev/ttyUSB3"),
        logs,
        presence_interval=0.001,
        is_present=is_present,
    )
    assert src.wait_for_presence(threading.Event()) is True
    assert seen == ["/dev/ttyUSB3"] * 4
    assert src.state is SourceState.CONNECTING
    # announced once, not on every poll
    assert logs.messages(2).count("Waiting for device /dev/ttyUSB3") == 1


def test_wait_for_presence_honours_stop(logs) -> None:
    src = SerialLineSource(
        SerialParams(port="/dev/none"), logs, is_present=lambda path: False
    )
    stop = threading.Event()
    stop.set()
    assert src.wait_for_presence(stop) is False


def test_read_without_open_is_lost(source) -> None:
    assert source.read_line(timeout=0.01) is ReadSignal.LOST


def test_open_read_and_reply(source) -> None:
    source.open()
    assert source.state is SourceState.CONNECTED
    proto, transport, kwargs = source.connector.opened[0]
    assert kwargs["baudrate"] == 4800

    proto.data_received(b"$BDSTA*00\r\n")
    line = source.read_line(timeout=1.0)

    assert line.text == "$BDSTA*00"
    line.reply("$BDACK*00\r\n")
    assert _wait_for(lambda: transport.written == [b"$BDACK*00\r\n"])


def test_idle_read_returns_none(source) -> None:
    source.open()
    assert source.read_line(timeout=0.01) is None


def test_loss_then_reconnect_starts_clean(source) -> None:
    source.open()
    proto, _, _ = source.connector.opened[0]
    proto.data_received(b"stale\n")
    proto.connection_lost(OSError("device reports readiness to read but returned no data"))

    assert source.read_line(timeout=1.0).text == "stale"
    assert source.read_line(timeout=1.0) is ReadSignal.LOST
    assert source.state is SourceState.LOST

    source.close()
    assert source.state is SourceState.ABSENT
    source.open()

    assert source.read_line(timeout=0.01) is None
    new_proto, _, _ = source.connector.opened[1]
    new_proto.data_received(b"fresh\r\n")
    assert source.read_line(timeout=1.0).text == "fresh"


def test_device_vanishing_while_idle_is_loss(logs, monkeypatch) -> None:
    present = {"value": True}
    src = SerialLineSource(
        SerialParams(port="/dev/ttyFAKE"),
        logs,
        is_present=lambda path: present["value"],
    )
    monkeypatch.setattr(src, "_create_connection", FakeConnector())
    try:
        src.open()
        present["value"] = False
        assert src.read_line(timeout=0.01) is ReadSignal.LOST
    finally:
        src.close()


def test_invalid_settings_are_fatal(source) -> None:
    source.connector.error = ValueError("Not a valid baudrate: -1")
    with pytest.raises(SourceConfigError) as info:
        source.open()
    assert info.value.fatal is True
    assert source.state is SourceState.ABSENT


def test_open_failure_is_retryable(source) -> None:
    source.connector.error = OSError("Permission denied")
    with pytest.raises(SourceConfigError) as info:
        source.open()
    assert info.value.fatal is False
