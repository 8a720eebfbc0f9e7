"""seadaq/domain/__init__.py

Domain models and errors for the acquisition daemons.

Copyright seadaq developers
Last modified: 2026-10-19
"""

from .errors import (
    ChecksumMismatch,
    ImplausibleTimestamp,
    SeadaqError,
    SourceConfigError,
)
from .models import (
    ChecksumScheme,
    Config,
    DaemonStats,
    OutputKey,
    ReadSignal,
    Sentence,
    SerialParams,
    SessionSnapshot,
    SourceLine,
    SourceState,
    Timestamp,
)

__all__ = [
    "ChecksumMismatch",
    "ImplausibleTimestamp",
    "SeadaqError",
    "SourceConfigError",
    "ChecksumScheme",
    "Config",
    "DaemonStats",
    "OutputKey",
    "ReadSignal",
    "Sentence",
    "SerialParams",
    "SessionSnapshot",
    "SourceLine",
    "SourceState",
    "Timestamp",
]
