from __future__ import annotations

import re

from qrlead.pipeline.links import parse_mailto, parse_tel


def test_mailto_ignores_query():
    f = parse_mailto("mailto:jane@acme.com?subject=Hi&body=Hello")
    assert f.email == "jane@acme.com"
    assert f.filled_count() == 1


def test_mailto_percent_decoded_and_case_insensitive_prefix():
    f = parse_mailto("MAILTO:jane%2Bevents@acme.com")
    assert f.email == "jane+events@acme.com"


def test_mailto_bad_escape_yields_empty_fields():
    f = parse_mailto("mailto:%ff%fe@acme.com")
    assert f.email == ""


def test_mailto_empty_address():
    assert parse_mailto("mailto:?subject=Hi").email == ""


def test_tel_keeps_dialable_characters_only():
    f = parse_tel("tel:+1 (415) 555-0100")
    assert f.phone_number == "+1 (415) 555-0100"
    assert f.mobile == f.phone_number
    assert re.fullmatch(r"[\d+\-\s()]+", f.phone_number)


def test_tel_strips_letters_and_separators():
    f = parse_tel("TEL:+1.415.555.0100;ext=12")
    assert f.phone_number == "+1415555010012"


def test_tel_without_digits_is_empty():
    f = parse_tel("tel:abc")
    assert f.phone_number == ""
    assert f.mobile == ""
