"""Runtime for the seadaq acquisition daemons.

One :class:`AcquisitionDaemon` drives one source. The reader loop only
pulls lines and hands them to the router; record writes and blocking
command side effects run on a shared thread pool so the reader returns
to the source as fast as possible. The source cycles through
presence polling, open and read until an explicit stop or an
unrecoverable configuration failure.
"""

from __future__ import annotations

import importlib
import signal
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

from .adapters.multiplexer import OutputMultiplexer
from .adapters.serial_backend import SerialLineSource
from .adapters.system_actions import HostSystem
from .adapters.tcp_source import TidePollSource
from .adapters.udp_source import UdpLineSource
from .adapters.zmq_pub import ZmqPublisher
from .application import records
from .application.commands import CommandProtocol
from .application.router import SentenceRouter
from .application.session import SessionState
from .constants import EXIT_CLEAN, EXIT_INIT_FAILED, EXIT_SOURCE_CONFIG, READ_TIMEOUT
from .domain import Config, ReadSignal, SourceConfigError
from .logging_utils import logprintf, setup_file_logging
from .ports import DisplayPort, LineSourcePort, OutputPort, SystemActionsPort

MODES: tuple[str, ...] = ("serial", "ais", "winch", "tide")

_REQUIRED_MODULES: dict[str, tuple[str, ...]] = {
    "serial": ("serial", "serial_asyncio"),
    "ais": (),
    "winch": (),
    "tide": (),
}


def missing_dependencies(mode: str) -> list[str]:
    missing: list[str] = []
    for name in _REQUIRED_MODULES.get(mode, ()):
        try:
            importlib.import_module(name)
        except ImportError:
            missing.append(name)
    return missing


def build_source(
    cfg: Config, mode: str, logger: Callable[[int, str, object | None], None]
) -> LineSourcePort:
    if mode == "serial":
        return SerialLineSource(
            cfg.serial_params(), logger, presence_interval=cfg.presence_interval
        )
    if mode == "ais":
        return UdpLineSource(cfg.udp_host, cfg.ais_port, logger, broadcast=cfg.udp_broadcast)
    if mode == "winch":
        return UdpLineSource(
            cfg.udp_host, cfg.winch_port, logger, broadcast=cfg.udp_broadcast
        )
    if mode == "tide":
        if not cfg.tide_host:
            raise ValueError("tide mode requires [tide_host]")
        return TidePollSource(
            cfg.tide_host,
            cfg.tide_port,
            logger,
            poll_command=cfg.tide_poll_command,
            poll_interval=cfg.tide_poll_interval,
            grace=cfg.tide_grace,
            presence_interval=cfg.presence_interval,
        )
    raise ValueError(f"unknown daemon mode {mode!r}")


class AcquisitionDaemon:
    """Wire source, router, session, commands and output for one mode."""

    def __init__(
        self,
        cfg: Config,
        mode: str,
        *,
        source: LineSourcePort | None = None,
        output: OutputPort | None = None,
        system: SystemActionsPort | None = None,
        display: DisplayPort | None = None,
        logger: Callable[[int, str, object | None], None] = logprintf,
    ) -> None:
        if mode not in MODES:
            raise ValueError(f"unknown daemon mode {mode!r}")
        self._cfg = cfg
        self._mode = mode
        self._logger = logger
        self._stop_event = threading.Event()
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, cfg.workers), thread_name_prefix="seadaq-task"
        )

        self.session = SessionState.from_config(cfg, logger)
        self.output = output or OutputMultiplexer(
            cfg.datadir,
            logger,
            idle_timeout=cfg.idle_timeout,
            ready_polls=cfg.ready_polls,
            ready_poll_interval=cfg.ready_poll_interval,
            sweep_interval=cfg.sweep_interval,
            executor=self._executor,
        )
        self.system = system or HostSystem(
            logger,
            reboot_command=cfg.reboot_command,
            shutdown_command=cfg.shutdown_command,
        )
        if display is None and cfg.zmq_pub_endpoint:
            display = ZmqPublisher(
                endpoint=cfg.zmq_pub_endpoint,
                bind=cfg.zmq_pub_bind,
                topic=cfg.zmq_pub_topic,
                hwm=cfg.zmq_pub_hwm,
                logger=logger,
            )
        self.display = display

        self.router = SentenceRouter(logger)
        self.commands = CommandProtocol(
            self.session,
            self.system,
            instance_name=cfg.instance_name or self.system.hostname(),
            data_path=cfg.datadir,
            logger=logger,
            defer=self._defer,
        )
        self.commands.register(self.router)

        sink = records.RecordSink(
            self.session,
            self.output,
            min_year=cfg.min_year,
            logger=logger,
            display=self.display,
        )
        if mode == "serial":
            records.register_serial(
                self.router, sink, cfg.serial_stream, cfg.sentence_list()
            )
        elif mode == "ais":
            records.register_ais(self.router, sink)
        elif mode == "winch":
            records.register_winch(self.router, sink)
        else:
            records.register_tide(self.router, sink)

        self.source = source or build_source(cfg, mode, logger)

    @property
    def mode(self) -> str:
        return self._mode

    def _defer(self, fn: Callable[[], object]) -> None:
        try:
            self._executor.submit(fn)
        except RuntimeError:
            fn()

    def stop(self) -> None:
        self._stop_event.set()

    # --- main loop --------------------------------------------------------

    def _read_loop(self) -> None:
        while not self._stop_event.is_set():
            item = self.source.read_line(timeout=READ_TIMEOUT)
            if item is None:
                continue
            if item is ReadSignal.LOST:
                self._logger(1, "Source lost, waiting for it to return")
                return
            self.router.dispatch(item.text, reply=item.reply)

    def serve_forever(self) -> int:
        """Acquire until stopped; returns the process exit code."""

        code = EXIT_CLEAN
        self._logger(
            2,
            "Starting %s logger, dataset %s, logging %s",
            self._mode,
            self.session.dataset,
            "on" if self.session.logging_enabled else "off",
        )
        if isinstance(self.output, OutputMultiplexer):
            self.output.start()
        if isinstance(self.display, ZmqPublisher):
            self.display.start()

        try:
            while not self._stop_event.is_set():
                if not self.source.wait_for_presence(self._stop_event):
                    break
                try:
                    self.source.open()
                except SourceConfigError as exc:
                    self._logger(0, "Source configuration failed: %s", exc)
                    self.source.close()
                    if exc.fatal:
                        code = EXIT_SOURCE_CONFIG
                        break
                    self._stop_event.wait(self._cfg.presence_interval)
                    continue
                try:
                    self._read_loop()
                finally:
                    self.source.close()
        finally:
            self._shutdown()
        return code

    def _shutdown(self) -> None:
        if isinstance(self.output, OutputMultiplexer):
            self.output.flush(timeout=5.0)
        self._executor.shutdown(wait=True)
        if isinstance(self.output, OutputMultiplexer):
            self.output.stop()
        if isinstance(self.display, ZmqPublisher):
            self.display.stop()
        self.source.close()
        self.session.persist()
        stats = self.router.stats
        self._logger(
            2,
            "Stopped %s logger: %d dispatched, %d rejected, %d bad checksum",
            self._mode,
            stats.dispatched,
            stats.rejected,
            stats.bad_checksum,
        )


def install_signal_handlers(daemon: AcquisitionDaemon) -> None:
    def _handler(signum, _frame):
        logprintf(2, "Signal %d received, shutting down", signum)
        daemon.stop()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


def main(cfg: Config, mode: str) -> int:
    """Execute one daemon and return a POSIX exit code."""

    missing = missing_dependencies(mode)
    if missing:
        logprintf(0, "Missing required modules for %s mode: %s", mode, ", ".join(missing))
        return EXIT_INIT_FAILED

    try:
        setup_file_logging(cfg.logdir, f"seadaq-{mode}.log")
        daemon = AcquisitionDaemon(cfg, mode)
    except (OSError, ValueError) as exc:
        logprintf(0, "Initialisation failed: %s", exc)
        return EXIT_INIT_FAILED

    install_signal_handlers(daemon)
    return daemon.serve_forever()
