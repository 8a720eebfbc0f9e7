"""seadaq

Unattended field data-acquisition daemons for oceanographic
instruments (serial NMEA instruments, vessel AIS traffic, winch
telemetry and tide gauges).

Copyright seadaq developers
Last modified: 2026-10-19
"""

__version__ = "0.3.0"
