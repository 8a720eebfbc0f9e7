from __future__ import annotations

import pytest

from seadaq.application import checksum
from seadaq.domain import ChecksumScheme

XOR = ChecksumScheme.XOR
LCI = ChecksumScheme.LCI

LCI_REFERENCE = (
    "01RD,2017-05-18T20:36:30.453,DYNACON,-0009081,000000.0,-00032.6,3408"
)


def test_xor_generate_known_value() -> None:
    # classic NMEA example sentence
    body = "GPGGA,123519,4807.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,"
    assert checksum.generate(XOR, body) == f"${body}*47"
    assert checksum.verify(XOR, f"${body}*47")


@pytest.mark.parametrize(
    "body",
    [
        "BDCID,cruise42",
        "!AIVDM,1,1,,B,177KQJ5000G?tO`K>RA1wUbN0TKH,0",
        "HEHDT,274.07,T",
        "X",
    ],
)
def test_xor_generate_then_verify(body: str) -> None:
    sentence = checksum.generate(XOR, body)
    assert checksum.verify(XOR, sentence)
    assert sentence[-3] == "*"
    assert sentence[-2:] == sentence[-2:].upper()


def test_xor_keeps_existing_sentinel() -> None:
    assert checksum.generate(XOR, "!AIVDM,1").startswith("!AIVDM,1*")
    assert checksum.generate(XOR, "GPZDA").startswith("$GPZDA*")


def test_xor_single_character_flip_fails() -> None:
    sentence = checksum.generate(XOR, "BDCID,cruise42")
    star = sentence.rfind("*")
    for i in range(1, star):
        flipped = chr(ord(sentence[i]) ^ 0x01)
        mutated = sentence[:i] + flipped + sentence[i + 1 :]
        assert not checksum.verify(XOR, mutated), mutated


def test_xor_is_case_sensitive() -> None:
    sentence = checksum.generate(XOR, "GPRMC,225446,A")
    lowered = sentence[:-2] + sentence[-2:].lower()
    if lowered != sentence:
        assert not checksum.verify(XOR, lowered)


@pytest.mark.parametrize(
    "sentence",
    [
        "",
        "$",
        "*",
        "$GPGGA,1,2",
        "$GPGGA,1,2*",
        "$GPGGA,1,2*4",
        "$GPGGA,1,2*4G",
        "$GPGGA,1,2*471",
        "$GPGGA,1,2*zz",
    ],
)
def test_xor_malformed_trailer_is_false(sentence: str) -> None:
    assert checksum.verify(XOR, sentence) is False


def test_lci_reference_example() -> None:
    assert checksum.verify(LCI, LCI_REFERENCE)


def test_lci_tension_mutation_fails() -> None:
    mutated = LCI_REFERENCE.replace("-0009081", "-0009082")
    assert not checksum.verify(LCI, mutated)


@pytest.mark.parametrize(
    "sentence",
    [
        "",
        "no commas at all",
        "01RD,DYNACON,",
        "01RD,DYNACON,abcd",
        "01RD,DYNACON,12.5",
        LCI_REFERENCE + "x",
    ],
)
def test_lci_malformed_trailer_is_false(sentence: str) -> None:
    assert checksum.verify(LCI, sentence) is False


def test_lci_generate_round_trip() -> None:
    body = LCI_REFERENCE.rsplit(",", 1)[0]
    assert checksum.generate(LCI, body) == LCI_REFERENCE
    assert checksum.lci_checksum(body + ",") == 3408
