"""seadaq/application/session.py

Process-wide session state shared by the data and command paths.

Every field group is read and written under one lock and readers take
an immutable :class:`~seadaq.domain.SessionSnapshot`, so a data
handler never observes a half-applied command. Only the dataset
identifier outlives the process, through the recovery file.

Copyright seadaq developers
Last modified: 2026-10-19
"""

from __future__ import annotations

import os
import re
import threading
from typing import Callable

from ..constants import BROADCAST_TARGET, DISPLAY_NONE, PATH_COMPONENT_PATTERN
from ..domain import Config, SessionSnapshot

_DATASET_RE = re.compile(PATH_COMPONENT_PATTERN)


def load_recovery_file(path: str) -> str | None:
    """Return the dataset identifier stored in ``path``, if any."""

    if not path or not os.path.isfile(path):
        return None
    with open(path, "r", encoding="utf-8") as f:
        value = f.readline().strip()
    return value or None


def write_recovery_file(path: str, dataset: str) -> None:
    """Atomically replace ``path`` with a single line holding ``dataset``."""

    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    tmp = f"{path}.tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        f.write(dataset + "\n")
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp, path)


class SessionState:
    def __init__(
        self,
        *,
        dataset: str,
        logging_enabled: bool = True,
        display_target: str = "",
        recovery_file: str | None = None,
        logger: Callable[[int, str, object | None], None],
    ) -> None:
        self._lock = threading.Lock()
        self._dataset = dataset
        self._logging_enabled = bool(logging_enabled)
        self._display_target = display_target
        self._recovery_file = recovery_file
        self._logger = logger

    @classmethod
    def from_config(
        cls, cfg: Config, logger: Callable[[int, str, object | None], None]
    ) -> "SessionState":
        """Build the startup state, recovering the dataset after a restart."""

        recovery = cfg.recovery_file or os.path.join(cfg.datadir, "dataset_id")
        dataset = None
        try:
            dataset = load_recovery_file(recovery)
        except OSError as exc:
            logger(1, "Could not read recovery file %s: %s", recovery, exc)
        if dataset and not _DATASET_RE.match(dataset):
            logger(1, "Ignoring invalid dataset %r in %s", dataset, recovery)
            dataset = None
        if dataset:
            logger(2, "Recovered dataset %s from %s", dataset, recovery)
        else:
            dataset = cfg.default_dataset
        return cls(
            dataset=dataset,
            logging_enabled=cfg.logging_enabled,
            display_target=cfg.display_target,
            recovery_file=recovery,
            logger=logger,
        )

    # --- reads ------------------------------------------------------------

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return SessionSnapshot(
                dataset=self._dataset,
                logging_enabled=self._logging_enabled,
                display_target=self._display_target,
            )

    @property
    def dataset(self) -> str:
        with self._lock:
            return self._dataset

    @property
    def logging_enabled(self) -> bool:
        with self._lock:
            return self._logging_enabled

    @property
    def display_target(self) -> str:
        with self._lock:
            return self._display_target

    @property
    def recovery_file(self) -> str | None:
        return self._recovery_file

    # --- writes -----------------------------------------------------------

    def set_dataset(self, dataset: str) -> bool:
        """Switch dataset and persist it; returns ``False`` if persisting failed."""

        with self._lock:
            self._dataset = dataset
        self._logger(2, "Dataset set to %s", dataset)
        return self.persist()

    def set_logging(self, enabled: bool) -> None:
        with self._lock:
            self._logging_enabled = bool(enabled)
        self._logger(2, "Logging %s", "enabled" if enabled else "disabled")

    def set_display_target(self, name: str) -> None:
        target = "" if name.upper() == DISPLAY_NONE else name
        with self._lock:
            self._display_target = target
        self._logger(2, "Display route set to %s", target or DISPLAY_NONE)

    def persist(self) -> bool:
        if not self._recovery_file:
            return True
        dataset = self.dataset
        try:
            write_recovery_file(self._recovery_file, dataset)
        except OSError as exc:
            self._logger(0, "Failed to write recovery file %s: %s", self._recovery_file, exc)
            return False
        return True


def displays(snapshot: SessionSnapshot, stream: str) -> bool:
    """Whether records of ``stream`` are fanned out to the display sink."""

    target = snapshot.display_target
    if not target:
        return False
    return target.upper() == BROADCAST_TARGET or target.lower() == stream.lower()
