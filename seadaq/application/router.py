"""seadaq/application/router.py

Sentence classification and dispatch.

The router strips control characters from a raw line, splits it into
fields and looks the leading token up in a table of handlers: exact
tokens first, then compiled patterns in registration order. Handlers
own checksum verification and signal failure by raising
:class:`~seadaq.domain.ChecksumMismatch`; the router turns every handler
outcome into a :class:`DispatchResult` and never lets an exception
escape to the reader loop.

Copyright seadaq developers
Last modified: 2026-10-19
"""

from __future__ import annotations

import enum
import re
from typing import Callable, Pattern

from ..constants import FIELD_DELIMITERS
from ..domain import (
    ChecksumMismatch,
    ChecksumScheme,
    DaemonStats,
    ImplausibleTimestamp,
    Sentence,
    Timestamp,
)
from ..time_utils import is_plausible, make_timestamp
from . import checksum

Handler = Callable[[Sentence], None]

_NON_PRINTABLE_RE = re.compile(r"[^\x20-\x7e]")


class DispatchResult(str, enum.Enum):
    OK = "ok"
    EMPTY = "empty"
    REJECTED = "rejected"
    BAD_CHECKSUM = "bad_checksum"
    IMPLAUSIBLE = "implausible"
    ERROR = "error"


def clean_line(raw: str) -> str:
    """Drop non-printable characters and surrounding blanks."""

    return _NON_PRINTABLE_RE.sub("", raw or "").strip()


def split_fields(text: str, delimiters: str = FIELD_DELIMITERS) -> list[str]:
    if not text:
        return []
    return re.split(f"[{re.escape(delimiters)}]", text)


def require_checksum(scheme: ChecksumScheme, sentence: Sentence) -> None:
    if not checksum.verify(scheme, sentence.raw):
        raise ChecksumMismatch(sentence.raw)


def require_plausible(sentence: Sentence, min_year: int) -> None:
    if not is_plausible(sentence.timestamp, min_year):
        raise ImplausibleTimestamp(
            f"year {sentence.timestamp.year} < {min_year}: {sentence.raw}"
        )


class SentenceRouter:
    """Leading-token dispatch table with an unrecognised fallthrough."""

    def __init__(
        self,
        logger: Callable[[int, str, object | None], None],
        *,
        delimiters: str = FIELD_DELIMITERS,
        clock: Callable[[], Timestamp] = make_timestamp,
    ) -> None:
        self._logger = logger
        self._delimiters = delimiters
        self._clock = clock
        self._exact: dict[str, Handler] = {}
        self._patterns: list[tuple[Pattern[str], Handler]] = []
        self.stats = DaemonStats()

    def register(self, token: str | Pattern[str], handler: Handler) -> None:
        if isinstance(token, str):
            self._exact[token] = handler
        else:
            self._patterns.append((token, handler))

    def lookup(self, token: str) -> Handler | None:
        handler = self._exact.get(token)
        if handler is not None:
            return handler
        for pattern, candidate in self._patterns:
            if pattern.match(token):
                return candidate
        return None

    def dispatch(
        self,
        raw: str,
        reply: Callable[[str], None] | None = None,
        timestamp: Timestamp | None = None,
    ) -> DispatchResult:
        # Stamp on arrival, before any verification work.
        ts = timestamp or self._clock()
        text = clean_line(raw)
        if not text:
            return DispatchResult.EMPTY

        fields = split_fields(text, self._delimiters)
        handler = self.lookup(fields[0])
        if handler is None:
            self.stats.rejected += 1
            self._logger(3, "Rejected unrecognised sentence: %s", text)
            return DispatchResult.REJECTED

        sentence = Sentence(raw=text, fields=fields, timestamp=ts, reply=reply)
        try:
            handler(sentence)
        except ChecksumMismatch:
            self.stats.bad_checksum += 1
            self._logger(1, "Bad checksum: %s", text)
            return DispatchResult.BAD_CHECKSUM
        except ImplausibleTimestamp as exc:
            self.stats.implausible += 1
            self._logger(1, "Implausible timestamp, record dropped: %s", exc)
            return DispatchResult.IMPLAUSIBLE
        except Exception as exc:
            self.stats.errors += 1
            self._logger(0, "Handler for %s failed: %s", fields[0], exc)
            return DispatchResult.ERROR

        self.stats.dispatched += 1
        return DispatchResult.OK
