"""seadaq/application/__init__.py

Application services: checksum codec, sentence routing, session state,
command protocol and record handlers.

Copyright seadaq developers
Last modified: 2026-10-19
"""

from .commands import CommandProtocol
from .router import DispatchResult, SentenceRouter
from .session import SessionState

__all__ = ["CommandProtocol", "DispatchResult", "SentenceRouter", "SessionState"]
