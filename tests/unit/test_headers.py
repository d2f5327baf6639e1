"""
Module: tests/unit/test_headers.py

What:
    Exercise the raw header parser used when a structure is rebuilt from
    header and body text.
"""

import json

from mailview.mime.headers import parse_headers, split_parameters


def test_folded_header_is_unfolded_and_split():
    raw = b'Content-Type: multipart/mixed;\r\n boundary="abc"\r\nSubject: Hi\r\n\r\nNot: a header'
    headers = parse_headers(raw)
    assert headers["content-type"].value == "multipart/mixed"
    assert headers["content-type"].params == {"boundary": "abc"}
    assert headers["subject"].value == "Hi"
    assert "not" not in headers


def test_quoted_parameter_keeps_semicolons():
    values, params = split_parameters('attachment; filename="a;b.pdf"; size=12')
    assert values == ["attachment"]
    assert params == {"filename": "a;b.pdf", "size": "12"}


def test_malformed_line_is_skipped_and_logged(capsys):
    raw = "Content-Type: text/plain\r\nthis line is broken\r\nX-Test: 1\r\n"
    headers = parse_headers(raw)
    assert set(headers) == {"content-type", "x-test"}
    events = [json.loads(line)["msg"] for line in capsys.readouterr().err.splitlines()]
    assert "malformed_header" in events


def test_extended_parameter_is_percent_decoded():
    headers = parse_headers("Content-Disposition: attachment; filename*=UTF-8''na%C3%AFve.txt")
    assert headers["content-disposition"].params["filename"] == "naïve.txt"


def test_parameter_continuations_are_joined_in_order():
    raw = "Content-Type: text/plain; title*1=\"a test\"; title*0*=us-ascii'en'This%20is%20"
    assert parse_headers(raw)["content-type"].params["title"] == "This is a test"


def test_repeated_headers_merge_values():
    headers = parse_headers("Received: a\r\nReceived: b\r\n")
    assert headers["received"].values == ["a", "b"]


def test_empty_input_yields_empty_mapping():
    assert parse_headers(None) == {}
    assert parse_headers(b"") == {}
