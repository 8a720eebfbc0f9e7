"""seadaq/application/checksum.py

Sentence checksum codec.

Two schemes are in use on the ship network:

* ``XOR``: NMEA style. The checksum is the XOR of every byte after the
  leading sentinel (``$`` or ``!``) up to the ``*`` delimiter, written
  as two uppercase hex digits after the ``*``.
* ``LCI``: LCI-90 winch controllers. The checksum is the decimal sum of
  the byte values of everything up to and including the last comma,
  keeping the low four decimal digits, carried as the last field.

``verify`` never raises: a malformed trailer is simply a failed
checksum from the caller's point of view.

Copyright seadaq developers
Last modified: 2026-10-19
"""

from __future__ import annotations

from ..constants import CHECKSUM_DELIMITER, LCI_MODULUS, XOR_SENTINEL
from ..domain import ChecksumScheme

_HEX_DIGITS = frozenset("0123456789ABCDEF")


def xor_checksum(text: str) -> str:
    """Return the 2-digit uppercase hex XOR of ``text``."""

    value = 0
    for b in text.encode("latin1", errors="replace"):
        value ^= b
    return f"{value:02X}"


def lci_checksum(text: str) -> int:
    """Return the additive checksum of ``text`` (low four decimal digits)."""

    return sum(text.encode("latin1", errors="replace")) % LCI_MODULUS


def _verify_xor(sentence: str) -> bool:
    star = sentence.rfind(CHECKSUM_DELIMITER)
    if star < 1:
        return False
    trailer = sentence[star + 1 :]
    if len(trailer) != 2 or not set(trailer) <= _HEX_DIGITS:
        return False
    return xor_checksum(sentence[1:star]) == trailer


def _verify_lci(sentence: str) -> bool:
    comma = sentence.rfind(",")
    if comma < 0:
        return False
    trailer = sentence[comma + 1 :]
    if not trailer or not trailer.isdigit() or not trailer.isascii():
        return False
    return lci_checksum(sentence[: comma + 1]) == int(trailer)


def verify(scheme: ChecksumScheme, sentence: str) -> bool:
    """Recompute the checksum of ``sentence`` and compare with its trailer."""

    if not sentence:
        return False
    if scheme is ChecksumScheme.XOR:
        return _verify_xor(sentence)
    if scheme is ChecksumScheme.LCI:
        return _verify_lci(sentence)
    return False


def generate(scheme: ChecksumScheme, body: str, sentinel: str = XOR_SENTINEL) -> str:
    """Frame ``body`` and append its checksum.

    For ``XOR`` the sentinel is prepended unless ``body`` already starts
    with ``$`` or ``!``. ``LCI`` generation mirrors verification
    (``<body>,<NNNN>``) but has not been checked against live winch
    controllers.
    """

    if scheme is ChecksumScheme.XOR:
        framed = body if body[:1] in ("$", "!") else f"{sentinel}{body}"
        return f"{framed}{CHECKSUM_DELIMITER}{xor_checksum(framed[1:])}"
    if scheme is ChecksumScheme.LCI:
        framed = body if body.endswith(",") else f"{body},"
        return f"{framed}{lci_checksum(framed):04d}"
    raise ValueError(f"Unknown checksum scheme: {scheme!r}")
