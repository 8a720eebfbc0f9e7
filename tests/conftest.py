"""Shared pytest fixtures for the seadaq test suite.

Copyright seadaq developers
Last Modified: 2026-10-19
"""

from __future__ import annotations

import datetime

import pytest

from seadaq.domain import Config
from seadaq.time_utils import make_timestamp


class LogCollector:
    """Stand-in for :func:`seadaq.logging_utils.logprintf`."""

    def __init__(self) -> None:
        self.records: list[tuple[int, str]] = []

    def __call__(self, level: int, fmt: str, *args: object) -> None:
        self.records.append((level, fmt % args if args else fmt))

    def messages(self, level: int | None = None) -> list[str]:
        return [m for lvl, m in self.records if level is None or lvl == level]

    def contains(self, text: str) -> bool:
        return any(text in m for _, m in self.records)


@pytest.fixture
def logs() -> LogCollector:
    return LogCollector()


@pytest.fixture
def fixed_ts():
    """Arrival timestamp 2024-03-01 12:34:56.789 UTC (day 061)."""
    return make_timestamp(
        datetime.datetime(2024, 3, 1, 12, 34, 56, 789000, tzinfo=datetime.timezone.utc)
    )


@pytest.fixture
def cfg(tmp_path) -> Config:
    return Config(
        instance_name="unit",
        datadir=str(tmp_path / "data"),
        logdir=str(tmp_path / "log"),
        default_dataset="NODATASET",
        workers=2,
        presence_interval=0.01,
        sweep_interval=0.05,
    )


@pytest.fixture
def minimal_cfg(tmp_path):
    """Write a minimal seadaq.cfg to tmp_path with writable local dirs."""
    cfg_path = tmp_path / "seadaq.cfg"
    cfg_path.write_text(
        f"[device]=/dev/ttyUSB0\n"
        f"[datapath]={tmp_path}/data/\n"
        f"[logpath]={tmp_path}/log/\n",
        encoding="utf-8",
    )
    return cfg_path
