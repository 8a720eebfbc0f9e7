"""seadaq/adapters/__init__.py

Adapters that connect the seadaq domain and application layers to
external systems (serial devices, sockets, files, ZeroMQ, the host).

Copyright seadaq developers
Last modified: 2026-10-19
"""

from .multiplexer import OutputMultiplexer  # noqa: F401
from .serial_backend import SerialLineSource, _LineProtocol  # noqa: F401
from .system_actions import HostSystem  # noqa: F401
from .tcp_source import TidePollSource  # noqa: F401
from .udp_source import UdpLineSource  # noqa: F401
from .zmq_pub import ZmqPublisher  # noqa: F401

__all__ = [
    "OutputMultiplexer",
    "SerialLineSource",
    "_LineProtocol",
    "HostSystem",
    "TidePollSource",
    "UdpLineSource",
    "ZmqPublisher",
]
