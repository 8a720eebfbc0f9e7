from __future__ import annotations

import collections
import threading
from pathlib import Path

import pytest

from seadaq.adapters.udp_source import UdpLineSource
from seadaq.application import checksum
from seadaq.application.session import load_recovery_file
from seadaq.constants import EXIT_CLEAN, EXIT_SOURCE_CONFIG
from seadaq.domain import ChecksumScheme, ReadSignal, SourceConfigError, SourceLine
from seadaq.runtime import AcquisitionDaemon, build_source, missing_dependencies


class FakeSystem:
    def hostname(self) -> str:
        return "ctd"

    def ip_address(self) -> str:
        return "10.0.0.5"

    def disk_usage_percent(self, path: str) -> int:
        return 42

    def reboot(self) -> bool:
        return True

    def shutdown(self) -> bool:
        return True


class ScriptedSource:
    """Plays one list of lines per connection, then reports loss."""

    def __init__(self, cycles, open_errors=()) -> None:
        self.cycles = collections.deque(cycles)
        self.open_errors = collections.deque(open_errors)
        self.current: collections.deque = collections.deque()
        self.replies: list[str] = []
        self.opens = 0
        self.closes = 0
        self.on_exhausted = None

    def wait_for_presence(self, stop: threading.Event) -> bool:
        if stop.is_set():
            return False
        if not self.cycles and not self.open_errors:
            if self.on_exhausted is not None:
                self.on_exhausted()
            return False
        return True

    def open(self) -> None:
        self.opens += 1
        if self.open_errors:
            raise self.open_errors.popleft()
        self.current = collections.deque(self.cycles.popleft())

    def read_line(self, timeout: float = 1.0):
        if not self.current:
            return ReadSignal.LOST
        item = self.current.popleft()
        if item is ReadSignal.LOST:
            return item
        return SourceLine(text=item, reply=self.replies.append)

    def close(self) -> None:
        self.closes += 1


def _cmd(body: str) -> str:
    return checksum.generate(ChecksumScheme.XOR, body)


def _daemon(cfg, source, logs, mode="tide") -> AcquisitionDaemon:
    daemon = AcquisitionDaemon(
        cfg, mode, source=source, system=FakeSystem(), logger=logs
    )
    source.on_exhausted = daemon.stop
    return daemon


def test_lines_commands_and_reconnect(cfg, logs) -> None:
    source = ScriptedSource(
        [
            [_cmd("$BDCID,cruise42"), "1.5", ReadSignal.LOST, "never read"],
            ["2.5", "garbage", _cmd("$BDSTA")],
        ]
    )
    daemon = _daemon(cfg, source, logs)

    assert daemon.serve_forever() == EXIT_CLEAN

    files = list(Path(cfg.datadir, "cruise42", "tide").glob("tide_*_raw"))
    assert len(files) == 1
    lines = files[0].read_text(encoding="ascii").splitlines()
    assert [line.split()[-1] for line in lines] == ["00001.500", "00002.500"]
    assert all(line.split()[6] == "tide" for line in lines)

    assert source.opens == 2
    assert logs.contains("Source lost, waiting for it to return")
    assert len(source.replies) == 1
    assert source.replies[0].startswith("$BDACK,ctd,10.0.0.5,cruise42,42,LOGGING*")
    assert source.replies[0].endswith("\r\n")

    # the dataset identifier survives the process
    assert load_recovery_file(str(Path(cfg.datadir, "dataset_id"))) == "cruise42"
    assert daemon.router.stats.rejected == 1


def test_logging_off_writes_nothing(cfg, logs) -> None:
    source = ScriptedSource([[_cmd("$BDLOG,ALL,OFF"), "3.25"]])
    daemon = _daemon(cfg, source, logs)

    assert daemon.serve_forever() == EXIT_CLEAN
    assert not list(Path(cfg.datadir).glob("*/tide/*_raw"))
    assert daemon.session.logging_enabled is False


def test_fatal_source_config_exits(cfg, logs) -> None:
    source = ScriptedSource(
        [], open_errors=[SourceConfigError("bad baud rate", fatal=True)]
    )
    daemon = _daemon(cfg, source, logs, mode="serial")

    assert daemon.serve_forever() == EXIT_SOURCE_CONFIG
    assert logs.contains("Source configuration failed: bad baud rate")
    assert source.closes >= 1


def test_retryable_open_failure_tries_again(cfg, logs) -> None:
    source = ScriptedSource(
        [["4.0"]], open_errors=[SourceConfigError("device busy")]
    )
    daemon = _daemon(cfg, source, logs)

    assert daemon.serve_forever() == EXIT_CLEAN
    assert source.opens == 2
    assert list(Path(cfg.datadir, "NODATASET", "tide").glob("tide_*_raw"))


def test_stop_before_start(cfg, logs) -> None:
    source = ScriptedSource([["1.0"]])
    daemon = _daemon(cfg, source, logs)
    daemon.stop()
    assert daemon.serve_forever() == EXIT_CLEAN
    assert source.opens == 0


def test_unknown_mode(cfg, logs) -> None:
    with pytest.raises(ValueError):
        AcquisitionDaemon(cfg, "ctd", source=ScriptedSource([]), logger=logs)


def test_build_source(cfg, logs) -> None:
    src = build_source(cfg, "ais", logs)
    assert isinstance(src, UdpLineSource)
    assert src.address == ("0.0.0.0", 2001)
    with pytest.raises(ValueError):
        build_source(cfg, "tide", logs)


def test_missing_dependencies() -> None:
    assert missing_dependencies("ais") == []
    assert missing_dependencies("serial") == []
