"""seadaq/domain/errors.py

Exception taxonomy for the acquisition daemons.

Only :class:`SourceConfigError` with ``fatal=True`` ever ends a daemon;
everything else is absorbed by returning to an earlier state.

Copyright seadaq developers
Last modified: 2026-10-19
"""

from __future__ import annotations


class SeadaqError(Exception):
    """Base class for all seadaq errors."""


class ChecksumMismatch(SeadaqError):
    """Raised by a handler when the sentence checksum does not verify."""


class ImplausibleTimestamp(SeadaqError):
    """Raised when the arrival year predates the installation year."""


class SourceConfigError(SeadaqError):
    """The source is present but could not be opened or configured.

    ``fatal`` marks failures that will repeat on every cycle (bad
    parameters, port already bound) and therefore end the daemon.
    """

    def __init__(self, message: str, *, fatal: bool = False) -> None:
        super().__init__(message)
        self.fatal = fatal


__all__ = [
    "SeadaqError",
    "ChecksumMismatch",
    "ImplausibleTimestamp",
    "SourceConfigError",
]
