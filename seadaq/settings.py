"""
Process-level settings for the seadaq command line.
Path: seadaq/settings.py
Copyright seadaq developers
Last Modified: 2026-10-19
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Defaults for the CLI, overridable through ``SEADAQ_*`` variables."""

    config_path: str = Field(
        default="seadaq.cfg",
        description="Path to the seadaq.cfg configuration file",
    )
    debug: bool = Field(default=False)

    model_config = {"env_prefix": "SEADAQ_", "case_sensitive": False}
