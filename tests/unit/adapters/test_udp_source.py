from __future__ import annotations

import socket
import threading

import pytest

from seadaq.adapters.udp_source import UdpLineSource
from seadaq.domain import ReadSignal, SourceConfigError, SourceState


@pytest.fixture
def source(logs):
    src = UdpLineSource("127.0.0.1", 0, logs, broadcast=False)
    assert src.wait_for_presence(threading.Event())
    src.open()
    yield src
    src.close()


@pytest.fixture
def sender():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    sock.settimeout(2.0)
    yield sock
    sock.close()


def test_open_binds_and_listens(source) -> None:
    host, port = source.address
    assert host == "127.0.0.1"
    assert port != 0
    assert source.state is SourceState.CONNECTED


def test_datagram_lines_are_split(source, sender) -> None:
    sender.sendto(b"!AIVDM,1,1,,A,abc,0*00\r\n!AIVDM,1,1,,B,def,0*00\r\n", source.address)

    first = source.read_line(timeout=2.0)
    second = source.read_line(timeout=2.0)

    assert first.text.rstrip("\r") == "!AIVDM,1,1,,A,abc,0*00"
    assert second.text.rstrip("\r") == "!AIVDM,1,1,,B,def,0*00"
    assert source.read_line(timeout=0.01) is None


def test_reply_goes_back_to_sender(source, sender) -> None:
    sender.sendto(b"$BDSTA*00", source.address)
    line = source.read_line(timeout=2.0)

    line.reply("$BDACK,host*00\r\n")

    data, addr = sender.recvfrom(1024)
    assert data == b"$BDACK,host*00\r\n"
    assert addr == source.address


def test_bind_failure_is_fatal(logs) -> None:
    # TEST-NET-3 address, never assigned to a local interface
    src = UdpLineSource("203.0.113.7", 0, logs, broadcast=False)
    with pytest.raises(SourceConfigError) as info:
        src.open()
    assert info.value.fatal is True
    assert src.state is SourceState.ABSENT


def test_read_after_close_is_lost(logs) -> None:
    src = UdpLineSource("127.0.0.1", 0, logs)
    assert src.read_line(timeout=0.01) is ReadSignal.LOST
