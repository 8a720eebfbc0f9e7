"""seadaq/application/records.py

Data sentence handlers and log record formatting.

Every record is one line::

    YYYY DDD HH MM SS mmm <stream> <field> <field> ...

stamped with the arrival time. Numeric winch and tide fields are
zero-padded to the widths the downstream processing expects.

Copyright seadaq developers
Last modified: 2026-10-19
"""

from __future__ import annotations

import re
from typing import Callable, Iterable

from ..constants import (
    AIS_TOKENS,
    EMPTY_FIELD,
    LCI_TOKEN_PATTERN,
    PATH_COMPONENT_PATTERN,
    TIDE_LEVEL_PATTERN,
    TIDE_NO_RESPONSE,
    TIDE_NO_RESPONSE_VALUE,
    XOR_SENTINEL,
)
from ..domain import ChecksumScheme, OutputKey, Sentence, Timestamp
from ..ports import DisplayPort, OutputPort
from .router import SentenceRouter, require_checksum, require_plausible
from .session import SessionState, displays

_NUMBER_RE = re.compile(r"[-+]?\d+(?:\.\d*)?")
_WINCH_NAME_RE = re.compile(PATH_COMPONENT_PATTERN)


def format_record(ts: Timestamp, stream: str, fields: Iterable[str]) -> str:
    parts = [ts.prefix(), stream.lower()]
    parts.extend(f if f else EMPTY_FIELD for f in fields)
    return " ".join(parts)


class RecordSink:
    """Common tail of all data handlers.

    Gates on the logging flag, derives the output key from the session
    snapshot and fans the record out to the display sink when the
    display route selects this stream.
    """

    def __init__(
        self,
        session: SessionState,
        output: OutputPort,
        *,
        min_year: int,
        logger: Callable[[int, str, object | None], None],
        display: DisplayPort | None = None,
    ) -> None:
        self._session = session
        self._output = output
        self._display = display
        self._min_year = min_year
        self._logger = logger

    def emit(self, sentence: Sentence, stream: str, fields: Iterable[str]) -> str:
        require_plausible(sentence, self._min_year)
        snap = self._session.snapshot()
        record = format_record(sentence.timestamp, stream, fields)
        if snap.logging_enabled:
            key = OutputKey(
                dataset=snap.dataset,
                stream=stream.lower(),
                day=sentence.timestamp.day_bucket,
            )
            self._output.submit(key, record)
        if self._display is not None and displays(snap, stream):
            self._display.publish_record(stream.lower(), record)
        return record


def handle_nmea(sink: RecordSink, stream: str) -> Callable[[Sentence], None]:
    """Generic XOR-checksummed instrument sentence (GPS, gyro, ...)."""

    def _handler(sentence: Sentence) -> None:
        require_checksum(ChecksumScheme.XOR, sentence)
        fields = list(sentence.fields[:-1])
        fields[0] = fields[0].lstrip(XOR_SENTINEL)
        sink.emit(sentence, stream, fields)

    return _handler


def handle_ais(sink: RecordSink, stream: str = "ais") -> Callable[[Sentence], None]:
    """``!AIVDM,<count>,<num>,<seq>,<channel>,<payload>,<fill>*hh``."""

    def _handler(sentence: Sentence) -> None:
        require_checksum(ChecksumScheme.XOR, sentence)
        fields = sentence.fields[:-1]
        if len(fields) != 7:
            raise ValueError(f"expected 7 AIS fields, got {len(fields)}")
        talker = fields[0].lstrip("!")
        sink.emit(sentence, stream, [talker, *fields[1:]])

    return _handler


def handle_lci_winch(sink: RecordSink) -> Callable[[Sentence], None]:
    """``NNRD,<iso time>,<winch>,<tension>,<payout>,<speed>,<checksum>``.

    The stream is named after the winch so each winch gets its own log.
    """

    def _handler(sentence: Sentence) -> None:
        require_checksum(ChecksumScheme.LCI, sentence)
        fields = sentence.fields
        if len(fields) != 7:
            raise ValueError(f"expected 7 LCI fields, got {len(fields)}")
        _, inst_time, winch, tension, payout, speed, _ = fields
        if not _WINCH_NAME_RE.match(winch):
            raise ValueError(f"invalid winch name {winch!r}")
        sink.emit(
            sentence,
            winch,
            [
                inst_time,
                f"{int(tension):08d}",
                f"{float(payout):08.1f}",
                f"{float(speed):08.1f}",
            ],
        )

    return _handler


def handle_tide(sink: RecordSink, stream: str = "tide") -> Callable[[Sentence], None]:
    """Tide gauge level reply, or the no-response sentinel."""

    def _handler(sentence: Sentence) -> None:
        if sentence.token == TIDE_NO_RESPONSE:
            level = TIDE_NO_RESPONSE_VALUE
        else:
            if "*" in sentence.raw:
                require_checksum(ChecksumScheme.XOR, sentence)
            m = _NUMBER_RE.search(sentence.raw)
            if m is None:
                raise ValueError(f"no level in tide reply {sentence.raw!r}")
            level = float(m.group(0))
        sink.emit(sentence, stream, [f"{level:09.3f}"])

    return _handler


# --- registration per daemon mode ---------------------------------------------


def register_serial(
    router: SentenceRouter, sink: RecordSink, stream: str, sentences: list[str]
) -> None:
    handler = handle_nmea(sink, stream)
    if not sentences:
        router.register(re.compile(r"^\$[A-Z0-9]{3,}$"), handler)
        return
    for token in sentences:
        token = token if token.startswith(XOR_SENTINEL) else XOR_SENTINEL + token
        router.register(token, handler)


def register_ais(router: SentenceRouter, sink: RecordSink) -> None:
    handler = handle_ais(sink)
    for token in AIS_TOKENS:
        router.register(token, handler)


def register_winch(router: SentenceRouter, sink: RecordSink) -> None:
    router.register(re.compile(LCI_TOKEN_PATTERN), handle_lci_winch(sink))


def register_tide(router: SentenceRouter, sink: RecordSink) -> None:
    handler = handle_tide(sink)
    router.register(TIDE_NO_RESPONSE, handler)
    router.register(re.compile(TIDE_LEVEL_PATTERN), handler)
