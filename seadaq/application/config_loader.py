"""seadaq/application/config_loader.py

Configuration loader for the acquisition daemons.

This module reads ``seadaq.cfg``-style ``[key]=value`` files into the
:class:`seadaq.domain.models.Config` Pydantic model, keeping parsing
logic close to the application layer.

Copyright seadaq developers
Last modified: 2026-10-19
"""

from __future__ import annotations

import os
import re
from typing import Mapping

from ..domain import Config
from ..logging_utils import logprintf

_KEY_VALUE_RE = re.compile(r"^\[(?P<key>[^\]]+)\]\s*=\s*(?P<value>.*)$")
_COMMENT_RE = re.compile(r"\s+(?://|#)")


def _strip_inline_comment(value: str) -> str:
    # "//" inside values (tcp://...) is not a comment
    return _COMMENT_RE.split(value, 1)[0].strip()


def _coerce_value(field: str, text: str) -> object:
    """Try to coerce ``text`` into the type of ``Config.field``.

    Falls back to the raw string when coercion is not possible.
    """

    text = text.strip()
    if text == "":
        return text

    field_info = Config.model_fields.get(field)
    if field_info is None or field_info.annotation is None:
        return text

    target = field_info.annotation

    # bools as 0/1 or true/false
    if target is bool:
        lowered = text.lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
        return bool(text)

    try:
        if target is int:
            return int(float(text))
        if target is float:
            return float(text)
    except ValueError:
        return text

    return text


_ALIASES: dict[str, str] = {
    # legacy spellings used by the shell-era loggers
    "datapath": "datadir",
    "logpath": "logdir",
    "cruisefile": "recovery_file",
    "cruise": "default_dataset",
    "hostname": "instance_name",
    "port": "serialport",
    "device": "serialport",
    "baud": "baudrate",
    "format": "serial_format",
    "flowcontrol": "rtscts",
    "sentences": "serial_sentences",
    "stream": "serial_stream",
}


def _apply_cfg_pair(cfg: Config, key: str, value: str) -> Config:
    key_norm = key.strip().lower()
    raw = _strip_inline_comment(value)

    field = _ALIASES.get(key_norm, key_norm)
    if field not in Config.model_fields:
        logprintf(1, "Ignoring unknown configuration key [%s]", key)
        return cfg

    coerced = _coerce_value(field, raw)
    if coerced == "" and Config.model_fields[field].annotation is not str:
        return cfg

    updated = cfg.model_dump()
    updated[field] = coerced
    return Config(**updated)


def load_config(
    path: str,
    *,
    base_dir: str | None = None,
    env: Mapping[str, str] | None = None,
) -> Config:
    """Load a :class:`Config` from a ``seadaq.cfg``-style file.

    Parameters
    ----------
    path:
        Path to the configuration file. If it does not exist, defaults
        are returned and only environment overrides are applied.
    base_dir:
        Base directory used to resolve relative paths, defaults to the
        directory of ``path``.
    env:
        Optional environment mapping, defaults to :data:`os.environ`.
    """

    env = dict(os.environ if env is None else env)
    cfg = Config()

    if base_dir is None:
        base_dir = os.path.dirname(os.path.abspath(path)) or os.getcwd()

    if os.path.isfile(path):
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#") or line.startswith("//"):
                    continue
                m = _KEY_VALUE_RE.match(line)
                if not m:
                    continue
                cfg = _apply_cfg_pair(cfg, m.group("key"), m.group("value"))

    # simple environment overrides
    overrides: dict[str, object] = {}
    if "SEADAQ_DATADIR" in env:
        overrides["datadir"] = env["SEADAQ_DATADIR"].strip()
    if "SEADAQ_LOGDIR" in env:
        overrides["logdir"] = env["SEADAQ_LOGDIR"].strip()
    if "SEADAQ_INSTANCE_NAME" in env:
        overrides["instance_name"] = env["SEADAQ_INSTANCE_NAME"].strip()
    if "SEADAQ_ZMQ_PUB_ENDPOINT" in env and not cfg.zmq_pub_endpoint:
        overrides["zmq_pub_endpoint"] = env["SEADAQ_ZMQ_PUB_ENDPOINT"].strip()
    if overrides:
        cfg = cfg.model_copy(update=overrides)

    # resolve relative paths against base_dir
    for key in ("datadir", "logdir", "recovery_file"):
        value = getattr(cfg, key)
        if value and not os.path.isabs(value):
            cfg = cfg.model_copy(update={key: os.path.join(base_dir, value)})

    # validate that key directories exist or can be created and are writable
    for key in ("datadir", "logdir"):
        value = getattr(cfg, key, "") or ""
        if not value:
            continue
        try:
            os.makedirs(value, exist_ok=True)
        except OSError as exc:  # pragma: no cover - depends on FS/permissions
            logprintf(0, "Failed to create %s directory %s: %s", key, value, exc)
            raise
        if not os.access(value, os.W_OK):
            logprintf(0, "Directory %s for %s is not writable", value, key)
            raise PermissionError(f"Directory not writable: {value}")

    return cfg
