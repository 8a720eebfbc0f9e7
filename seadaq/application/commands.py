"""seadaq/application/commands.py

In-band remote command protocol.

Peers on the ship network steer every logger with ``$BD...`` sentences
carrying an XOR checksum. Handlers verify the checksum first, then
mutate :class:`~seadaq.application.session.SessionState`; addressed
commands (logging, reboot, shutdown) are ignored unless the target is
this instance or ``ALL``.

Copyright seadaq developers
Last modified: 2026-10-19
"""

from __future__ import annotations

import re
from typing import Callable

from ..constants import (
    BROADCAST_TARGET,
    CMD_REBOOT,
    CMD_SET_DATASET,
    CMD_SET_DISPLAY,
    CMD_SET_LOGGING,
    CMD_SHUTDOWN,
    CMD_STATUS,
    LOGGING,
    NOT_LOGGING,
    PATH_COMPONENT_PATTERN,
    STATUS_REPLY,
)
from ..domain import ChecksumScheme, Sentence
from ..ports import SystemActionsPort
from . import checksum
from .router import SentenceRouter, require_checksum
from .session import SessionState

_DATASET_RE = re.compile(PATH_COMPONENT_PATTERN)
_TRUE_WORDS = {"ON", "1", "TRUE", "YES", "START"}
_FALSE_WORDS = {"OFF", "0", "FALSE", "NO", "STOP"}


def _run_inline(fn: Callable[[], object]) -> None:
    """Default ``defer``: run the side effect on the calling thread."""
    fn()


def parse_flag(text: str) -> bool | None:
    word = (text or "").strip().upper()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    return None


def command_args(sentence: Sentence) -> list[str]:
    """Fields between the token and the checksum trailer."""

    return sentence.fields[1:-1]


class CommandProtocol:
    """Handlers for the ``$BD...`` control sentences."""

    def __init__(
        self,
        session: SessionState,
        system: SystemActionsPort,
        *,
        instance_name: str,
        data_path: str,
        logger: Callable[[int, str, object | None], None],
        defer: Callable[[Callable[[], object]], object] | None = None,
    ) -> None:
        self._session = session
        self._system = system
        self._instance = instance_name
        self._data_path = data_path
        self._logger = logger
        self._defer = defer or _run_inline

    def register(self, router: SentenceRouter) -> None:
        router.register(CMD_SET_DATASET, self.handle_set_dataset)
        router.register(CMD_SET_LOGGING, self.handle_set_logging)
        router.register(CMD_SET_DISPLAY, self.handle_set_display)
        router.register(CMD_REBOOT, self.handle_reboot)
        router.register(CMD_SHUTDOWN, self.handle_shutdown)
        router.register(CMD_STATUS, self.handle_status)

    def is_addressed(self, target: str) -> bool:
        t = (target or "").strip().upper()
        return t == BROADCAST_TARGET or t == self._instance.upper()

    # --- handlers ---------------------------------------------------------

    def handle_set_dataset(self, sentence: Sentence) -> None:
        require_checksum(ChecksumScheme.XOR, sentence)
        args = command_args(sentence)
        dataset = args[0].strip() if args else ""
        if not _DATASET_RE.match(dataset):
            self._logger(1, "Ignoring invalid dataset identifier in %s", sentence.raw)
            return
        self._session.set_dataset(dataset)

    def handle_set_logging(self, sentence: Sentence) -> None:
        require_checksum(ChecksumScheme.XOR, sentence)
        args = command_args(sentence)
        if len(args) < 2:
            self._logger(1, "Malformed logging command: %s", sentence.raw)
            return
        if not self.is_addressed(args[0]):
            self._logger(3, "Logging command for %s ignored", args[0])
            return
        flag = parse_flag(args[1])
        if flag is None:
            self._logger(1, "Unknown logging flag %r in %s", args[1], sentence.raw)
            return
        self._session.set_logging(flag)

    def handle_set_display(self, sentence: Sentence) -> None:
        require_checksum(ChecksumScheme.XOR, sentence)
        args = command_args(sentence)
        self._session.set_display_target(args[0].strip() if args else "")

    def handle_reboot(self, sentence: Sentence) -> None:
        self._system_action(sentence, "reboot", self._system.reboot)

    def handle_shutdown(self, sentence: Sentence) -> None:
        self._system_action(sentence, "shutdown", self._system.shutdown)

    def _system_action(
        self, sentence: Sentence, name: str, action: Callable[[], bool]
    ) -> None:
        require_checksum(ChecksumScheme.XOR, sentence)
        args = command_args(sentence)
        target = args[0] if args else ""
        if not self.is_addressed(target):
            self._logger(3, "%s command for %s ignored", name, target)
            return
        self._session.set_logging(False)
        self._logger(1, "Remote %s requested by %s", name, sentence.raw)

        def _invoke() -> None:
            if not action():
                self._logger(0, "System %s could not be started", name)

        self._defer(_invoke)

    def handle_status(self, sentence: Sentence) -> None:
        require_checksum(ChecksumScheme.XOR, sentence)
        args = command_args(sentence)
        if args and args[0] and not self.is_addressed(args[0]):
            return
        reply = sentence.reply
        if reply is None:
            self._logger(1, "Status query without a reply channel: %s", sentence.raw)
            return

        def _answer() -> None:
            reply(self.status_sentence() + "\r\n")

        self._defer(_answer)

    # --- status -----------------------------------------------------------

    def status_sentence(self) -> str:
        snap = self._session.snapshot()
        try:
            disk = self._system.disk_usage_percent(self._data_path)
        except OSError as exc:
            self._logger(1, "Disk usage unavailable for %s: %s", self._data_path, exc)
            disk = -1
        body = ",".join(
            [
                STATUS_REPLY,
                self._system.hostname(),
                self._system.ip_address(),
                snap.dataset,
                str(disk),
                LOGGING if snap.logging_enabled else NOT_LOGGING,
            ]
        )
        return checksum.generate(ChecksumScheme.XOR, body)
