"""seadaq/domain/models.py

Pydantic domain models shared by every acquisition daemon.

Copyright seadaq developers
Last modified: 2026-10-19
"""

from __future__ import annotations

import enum
import re
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from ..constants import PATH_COMPONENT_PATTERN

_PATH_COMPONENT_RE = re.compile(PATH_COMPONENT_PATTERN)


class ChecksumScheme(str, enum.Enum):
    """Sentence checksum algorithms.

    ``XOR`` is the NMEA two-hex-digit XOR trailer, ``LCI`` the LCI-90
    winch controller additive checksum carried as the last field.
    """

    XOR = "xor"
    LCI = "lci"


class SourceState(str, enum.Enum):
    ABSENT = "absent"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    LOST = "lost"


class ReadSignal(enum.Enum):
    """Out-of-band result of :meth:`LineSourcePort.read_line`."""

    LOST = "lost"


class Timestamp(BaseModel):
    """Arrival time of a sentence, split the way log records need it."""

    model_config = ConfigDict(frozen=True)

    year: int
    doy: int
    month: int
    day: int
    hour: int
    minute: int
    second: int
    millisecond: int

    def prefix(self) -> str:
        return (
            f"{self.year:04d} {self.doy:03d} {self.hour:02d} "
            f"{self.minute:02d} {self.second:02d} {self.millisecond:03d}"
        )

    @property
    def day_bucket(self) -> str:
        return f"{self.doy:03d}"


class OutputKey(BaseModel):
    """Identity of one log file: dataset x stream x day of year."""

    model_config = ConfigDict(frozen=True)

    dataset: str
    stream: str
    day: str

    @field_validator("dataset", "stream", "day")
    @classmethod
    def _single_path_component(cls, value: str) -> str:
        if not _PATH_COMPONENT_RE.match(value):
            raise ValueError(f"not a valid file name component: {value!r}")
        return value


class SessionSnapshot(BaseModel):
    """Immutable view of :class:`seadaq.application.session.SessionState`."""

    model_config = ConfigDict(frozen=True)

    dataset: str
    logging_enabled: bool
    display_target: str


class SourceLine(BaseModel):
    """One line of text as delivered by a source.

    ``reply`` sends text back on the channel the line arrived on, when
    the transport supports it.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    text: str
    reply: Optional[Callable[[str], None]] = None


class Sentence(BaseModel):
    """A stripped, split sentence handed to exactly one handler."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    raw: str
    fields: list[str]
    timestamp: Timestamp
    reply: Optional[Callable[[str], None]] = None

    @property
    def token(self) -> str:
        return self.fields[0] if self.fields else ""


class SerialParams(BaseModel):
    """Line discipline for a presence-polled serial device."""

    port: str
    baudrate: int = 9600
    format: str = "8N1"
    rtscts: bool = False


class Config(BaseModel):
    """Runtime configuration for one daemon instance.

    Fields map one-to-one onto the ``[key]=value`` entries of
    ``seadaq.cfg`` (see ``config/seadaq.cfg``); every daemon mode reads
    the same model and ignores the fields of the other modes.
    """

    # Identity and storage ------------------------------------------------------
    instance_name: str = ""
    datadir: str = "/var/lib/seadaq"
    logdir: str = "/var/log/seadaq"
    recovery_file: str = ""
    default_dataset: str = "NODATASET"
    logging_enabled: bool = True
    display_target: str = ""
    min_year: int = 2017

    # Output multiplexer --------------------------------------------------------
    idle_timeout: float = 60.0
    sweep_interval: float = 5.0
    ready_polls: int = 1000
    ready_poll_interval: float = 0.001
    workers: int = 4

    # Sources -------------------------------------------------------------------
    presence_interval: float = 1.0
    serialport: str = "/dev/ttyUSB0"
    baudrate: int = 9600
    serial_format: str = "8N1"
    rtscts: bool = False
    serial_stream: str = "serial"
    serial_sentences: str = ""

    udp_host: str = "0.0.0.0"
    ais_port: int = 2001
    winch_port: int = 2002
    udp_broadcast: bool = True

    tide_host: str = ""
    tide_port: int = 4001
    tide_poll_command: str = "R"
    tide_poll_interval: float = 6.0
    tide_grace: float = 0.2

    # System actions ------------------------------------------------------------
    reboot_command: str = "systemctl reboot"
    shutdown_command: str = "systemctl poweroff"

    # ZeroMQ PUB display sink (optional). When empty, fan-out is disabled.
    zmq_pub_endpoint: str = ""
    zmq_pub_bind: bool = True
    zmq_pub_topic: str = "seadaq"
    zmq_pub_hwm: int = 10

    def serial_params(self) -> SerialParams:
        return SerialParams(
            port=self.serialport,
            baudrate=self.baudrate,
            format=self.serial_format,
            rtscts=self.rtscts,
        )

    def sentence_list(self) -> list[str]:
        return [s.strip() for s in self.serial_sentences.split(",") if s.strip()]


class DaemonStats(BaseModel):
    """Counters kept by the router for the operational log."""

    dispatched: int = 0
    rejected: int = 0
    bad_checksum: int = 0
    implausible: int = 0
    errors: int = 0


__all__ = [
    "ChecksumScheme",
    "SourceState",
    "ReadSignal",
    "Timestamp",
    "OutputKey",
    "SessionSnapshot",
    "SourceLine",
    "Sentence",
    "SerialParams",
    "Config",
    "DaemonStats",
]
