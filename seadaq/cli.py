"""Command-line interface for the seadaq daemons.

This thin wrapper parses the daemon mode and the ``--config`` path and
then delegates to :mod:`seadaq.runtime`.

Configuration files follow the ``[key]=value`` format of
``config/seadaq.cfg``. The default path comes from
:class:`seadaq.settings.Settings` (``SEADAQ_CONFIG_PATH``), falling back
to ``seadaq.cfg`` in the current working directory.
"""

from __future__ import annotations

import argparse
import os
from typing import Sequence

from .application.config_loader import load_config
from .constants import EXIT_INIT_FAILED
from .logging_utils import logprintf, set_debug
from .runtime import MODES
from .runtime import main as _main
from .settings import Settings


def _build_arg_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="seadaq", description="Oceanographic field data-acquisition daemons"
    )
    parser.add_argument("mode", choices=MODES, help="Which logger to run")
    parser.add_argument(
        "-c",
        "--config",
        metavar="PATH",
        default=settings.config_path,
        help=f"Path to seadaq.cfg configuration file (default: {settings.config_path})",
    )
    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        default=settings.debug,
        help="Enable debug logging",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point used by the ``seadaq`` script."""

    settings = Settings()
    parser = _build_arg_parser(settings)
    args = parser.parse_args(list(argv) if argv is not None else None)

    set_debug(args.debug)
    config_path = os.path.abspath(args.config)
    try:
        cfg = load_config(config_path)
    except (OSError, ValueError) as exc:
        logprintf(0, "Cannot load configuration %s: %s", config_path, exc)
        return EXIT_INIT_FAILED

    result = _main(cfg, args.mode)
    return int(result) if result is not None else 0
