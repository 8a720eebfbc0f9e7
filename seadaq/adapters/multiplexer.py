"""seadaq/adapters/multiplexer.py

Multiplexed append-only log files.

Each :class:`~seadaq.domain.OutputKey` maps to at most one live
resource: an append handle opened on first write and closed by the
sweeper after ``idle_timeout`` seconds without writes. The next write
for a closed key opens a fresh handle, so the number of open files
follows the number of currently active keys rather than every day and
dataset ever seen.

Writes for one key are serialised by the resource lock; ``submit``
additionally queues records per key and drains each queue on a shared
thread pool, keeping arrival order per key while different keys are
written concurrently.

Copyright seadaq developers
Last modified: 2026-10-19
"""

from __future__ import annotations

import collections
import os
import threading
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Callable, TextIO

from ..constants import IDLE_TIMEOUT, READY_POLL_INTERVAL, READY_POLLS, SWEEP_INTERVAL
from ..domain import OutputKey


class _OutputResource:
    """Append handle bound to one key."""

    def __init__(self, key: OutputKey, path: str, now: float) -> None:
        self.key = key
        self.path = path
        self.handle: TextIO | None = None
        self.inode: tuple[int, int] | None = None
        self.last_write = now
        self.lock = threading.Lock()
        self.pending: collections.deque[str] = collections.deque()
        self.draining = False
        self.retired = False

    @property
    def is_open(self) -> bool:
        return self.handle is not None

    def close(self) -> None:
        handle, self.handle = self.handle, None
        self.inode = None
        if handle is not None:
            try:
                handle.close()
            except OSError:
                pass


class OutputMultiplexer:
    """Own every open log file of one daemon."""

    def __init__(
        self,
        datadir: str,
        logger: Callable[[int, str, object | None], None],
        *,
        idle_timeout: float = IDLE_TIMEOUT,
        ready_polls: int = READY_POLLS,
        ready_poll_interval: float = READY_POLL_INTERVAL,
        sweep_interval: float = SWEEP_INTERVAL,
        workers: int = 4,
        executor: Executor | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._datadir = datadir
        self._root = os.path.realpath(datadir)
        self._logger = logger
        self._idle_timeout = float(idle_timeout)
        self._ready_polls = max(1, int(ready_polls))
        self._ready_poll_interval = float(ready_poll_interval)
        self._sweep_interval = float(sweep_interval)
        self._clock = clock

        self._owns_executor = executor is None
        self._executor: Executor = executor or ThreadPoolExecutor(
            max_workers=max(1, int(workers)), thread_name_prefix="seadaq-writer"
        )

        self._lock = threading.Lock()
        self._drained = threading.Condition(self._lock)
        self._resources: dict[OutputKey, _OutputResource] = {}

        self._sweep_stop = threading.Event()
        self._sweep_thread: threading.Thread | None = None
        self.write_errors = 0

    # --- paths ------------------------------------------------------------

    def path_for(self, key: OutputKey) -> str:
        name = f"{key.stream}_{key.day}_raw"
        return os.path.join(self._datadir, key.dataset, key.stream, name)

    def _inside_datadir(self, path: str) -> bool:
        real = os.path.realpath(path)
        return os.path.commonpath([self._root, real]) == self._root

    # --- resource map -----------------------------------------------------

    def _resource(self, key: OutputKey) -> _OutputResource:
        """Look up or register the resource for ``key``. Caller holds ``_lock``."""

        res = self._resources.get(key)
        if res is None:
            res = _OutputResource(key, self.path_for(key), self._clock())
            self._resources[key] = res
        return res

    def open_keys(self) -> list[OutputKey]:
        with self._lock:
            return [k for k, r in self._resources.items() if r.is_open]

    # --- writing ----------------------------------------------------------

    def _count_error(self) -> None:
        with self._lock:
            self.write_errors += 1

    def _backing_file_replaced(self, res: _OutputResource) -> bool:
        try:
            st = os.stat(res.path)
        except OSError:
            return True
        return (st.st_dev, st.st_ino) != res.inode

    @staticmethod
    def _ready(handle: TextIO, path: str) -> tuple[int, int] | None:
        """Return the (device, inode) of a writable handle still linked at ``path``."""

        try:
            st = os.fstat(handle.fileno())
        except OSError:
            return None
        if not handle.writable() or not os.path.exists(path):
            return None
        return (st.st_dev, st.st_ino)

    def _open(self, res: _OutputResource) -> bool:
        if not self._inside_datadir(res.path):
            self._logger(0, "Refusing output %s outside %s", res.path, self._root)
            return False
        try:
            os.makedirs(os.path.dirname(res.path), exist_ok=True)
            handle = open(res.path, "a", encoding="ascii", errors="replace")
        except OSError as exc:
            self._logger(0, "Cannot create output %s: %s", res.path, exc)
            return False

        for _ in range(self._ready_polls):
            inode = self._ready(handle, res.path)
            if inode is not None:
                res.handle = handle
                res.inode = inode
                self._logger(3, "Opened output %s", res.path)
                return True
            time.sleep(self._ready_poll_interval)

        handle.close()
        self._logger(
            0, "Output %s not ready after %d polls", res.path, self._ready_polls
        )
        return False

    def _append(self, res: _OutputResource, record: str) -> bool:
        """Append one record. Caller holds ``res.lock``."""

        if res.handle is not None and self._backing_file_replaced(res):
            self._logger(1, "Output %s vanished, reopening", res.path)
            res.close()
        if res.handle is None and not self._open(res):
            self._count_error()
            return False
        try:
            res.handle.write(record + "\n")
            res.handle.flush()
        except OSError as exc:
            self._count_error()
            self._logger(0, "Write to %s failed: %s", res.path, exc)
            res.close()
            return False
        res.last_write = self._clock()
        return True

    def write(self, key: OutputKey, record: str) -> bool:
        """Append ``record`` for ``key`` now; ``False`` if the record was dropped."""

        while True:
            with self._lock:
                res = self._resource(key)
            with res.lock:
                if res.retired:
                    continue
                return self._append(res, record)

    def submit(self, key: OutputKey, record: str) -> None:
        """Queue ``record`` behind earlier submissions for the same key."""

        with self._lock:
            res = self._resource(key)
            res.pending.append(record)
            if res.draining:
                return
            res.draining = True
        try:
            self._executor.submit(self._drain, res)
        except RuntimeError:
            # executor already shut down: write inline so nothing is lost
            self._drain(res)

    def _drain(self, res: _OutputResource) -> None:
        while True:
            with self._lock:
                if not res.pending:
                    res.draining = False
                    self._drained.notify_all()
                    return
                record = res.pending.popleft()
            try:
                self._write_queued(res, record)
            except Exception as exc:
                self._count_error()
                self._logger(0, "Dropped record for %s: %s", res.path, exc)

    def _write_queued(self, res: _OutputResource, record: str) -> None:
        with res.lock:
            if not res.retired:
                self._append(res, record)
                return
        self.write(res.key, record)

    def flush(self, timeout: float | None = None) -> bool:
        """Wait until every submitted record has been written."""

        deadline = None if timeout is None else time.monotonic() + timeout
        with self._lock:
            while any(r.draining for r in self._resources.values()):
                remaining = None
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return False
                self._drained.wait(remaining)
        return True

    # --- idle reclamation -------------------------------------------------

    def sweep(self, now: float | None = None) -> int:
        """Close resources idle for longer than the idle window."""

        now = self._clock() if now is None else now
        closed = 0
        with self._lock:
            for key, res in list(self._resources.items()):
                if res.draining or res.pending:
                    continue
                if now - res.last_write < self._idle_timeout:
                    continue
                if not res.lock.acquire(blocking=False):
                    continue
                try:
                    if now - res.last_write < self._idle_timeout:
                        continue
                    if res.is_open:
                        closed += 1
                        self._logger(3, "Closing idle output %s", res.path)
                    res.close()
                    res.retired = True
                    del self._resources[key]
                finally:
                    res.lock.release()
        return closed

    def _sweep_loop(self) -> None:
        while not self._sweep_stop.wait(self._sweep_interval):
            self.sweep()

    # --- lifecycle --------------------------------------------------------

    def start(self) -> None:
        if self._sweep_thread is not None:
            return
        self._sweep_stop.clear()
        self._sweep_thread = threading.Thread(
            target=self._sweep_loop, name="seadaq-sweeper", daemon=True
        )
        self._sweep_thread.start()

    def close_all(self) -> None:
        with self._lock:
            resources = list(self._resources.values())
            self._resources.clear()
        for res in resources:
            with res.lock:
                res.close()
                res.retired = True

    def stop(self, timeout: float = 5.0) -> None:
        """Finish queued writes, stop the sweeper and close every file."""

        if not self.flush(timeout):
            self._logger(1, "Pending output not flushed within %.1fs", timeout)
        self._sweep_stop.set()
        if self._sweep_thread is not None:
            self._sweep_thread.join(timeout=2.0)
            self._sweep_thread = None
        if self._owns_executor:
            self._executor.shutdown(wait=True)
        self.close_all()
