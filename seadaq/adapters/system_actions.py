"""seadaq/adapters/system_actions.py

Host facts for status replies and the reboot/shutdown actions.

Copyright seadaq developers
Last modified: 2026-10-19
"""

from __future__ import annotations

import shlex
import shutil
import socket
import subprocess
from typing import Callable


class HostSystem:
    """Concrete :class:`seadaq.ports.SystemActionsPort`."""

    def __init__(
        self,
        logger: Callable[[int, str, object | None], None],
        *,
        reboot_command: str = "systemctl reboot",
        shutdown_command: str = "systemctl poweroff",
    ) -> None:
        self._logger = logger
        self._reboot_command = reboot_command
        self._shutdown_command = shutdown_command

    def hostname(self) -> str:
        return socket.gethostname().split(".")[0]

    def ip_address(self) -> str:
        # No packet is sent; connecting a UDP socket only selects the route.
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.connect(("10.255.255.255", 1))
            return sock.getsockname()[0]
        except OSError:
            return "127.0.0.1"
        finally:
            sock.close()

    def disk_usage_percent(self, path: str) -> int:
        usage = shutil.disk_usage(path)
        if usage.total <= 0:
            return 0
        return int(round(100.0 * usage.used / usage.total))

    def _run(self, command: str) -> bool:
        argv = shlex.split(command)
        if not argv:
            self._logger(0, "No system command configured")
            return False
        try:
            subprocess.run(argv, check=True, timeout=30)
        except (OSError, subprocess.SubprocessError) as exc:
            self._logger(0, "System command %r failed: %s", command, exc)
            return False
        return True

    def reboot(self) -> bool:
        self._logger(1, "Rebooting host: %s", self._reboot_command)
        return self._run(self._reboot_command)

    def shutdown(self) -> bool:
        self._logger(1, "Shutting down host: %s", self._shutdown_command)
        return self._run(self._shutdown_command)
