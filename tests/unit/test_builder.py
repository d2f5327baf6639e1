"""
Module: tests/unit/test_builder.py

What:
    Check how :func:`build_structure` picks between the session's structure
    and the tree rebuilt from raw text.

How:
    Drive the builder with :class:`fakes.FakeSession` instances and inspect
    both the chosen tree and the fetch counters.
"""

import json

import pytest

from fakes import FakeSession, leaf_part, multipart, text_part
from mailview.errors import StructureUnavailable
from mailview.mime.builder import build_structure, needs_reconstruction, reconcile
from mailview.mime.structure import from_bodystructure


RAW_HEADER = b'Content-Type: multipart/mixed; boundary="b1"\r\n\r\n'
RAW_BODY = (
    b"--b1\r\nContent-Type: text/plain\r\n\r\none\r\n"
    b"--b1\r\nContent-Type: text/html\r\n\r\n<i>two</i>\r\n"
    b"--b1\r\nContent-Type: image/png\r\nContent-Transfer-Encoding: base64\r\n\r\niVBORw==\r\n"
    b"--b1--\r\n"
)


def _events(capsys):
    return [json.loads(line) for line in capsys.readouterr().err.splitlines()]


def test_collapsed_multipart_is_replaced_by_raw_rebuild(capsys):
    session = FakeSession(
        structure=multipart("mixed", text_part("plain", 3)),
        header=RAW_HEADER,
        bodies={"": RAW_BODY},
    )

    root = build_structure(session, 7)

    assert len(root.children) == 3
    assert [child.mime_type for child in root.children] == ["text/plain", "text/html", "image/png"]
    mistrust = [event for event in _events(capsys) if event["msg"] == "structure_mistrust"]
    assert mistrust and mistrust[0]["hinted_parts"] == 1 and mistrust[0]["rebuilt_parts"] == 3


def test_matching_child_count_keeps_session_tree():
    session = FakeSession(
        structure=multipart("mixed", text_part("plain", 3)),
        header=RAW_HEADER,
        bodies={"": b"--b1\r\nContent-Type: text/plain\r\n\r\none\r\n--b1--\r\n"},
    )
    root = build_structure(session, 7)
    assert len(root.children) == 1
    assert root.children[0].raw_body is None


def test_healthy_multipart_skips_raw_fetch():
    session = FakeSession(structure=multipart("alternative", text_part("plain", 3), text_part("html", 9)))
    root = build_structure(session, 7)
    assert len(root.children) == 2
    assert session.calls["header"] == 0
    assert session.body_fetches() == 0


def test_single_leaf_structure_is_trusted():
    session = FakeSession(structure=leaf_part("image", "png", 10))
    assert not build_structure(session, 7).is_multipart
    assert session.calls["header"] == 0


def test_missing_structure_falls_back_to_raw_text():
    session = FakeSession(header=RAW_HEADER, bodies={"": RAW_BODY})
    assert len(build_structure(session, 7).children) == 3


def test_hint_is_used_instead_of_fetching():
    session = FakeSession()
    root = build_structure(session, 7, multipart("alternative", text_part("plain", 3), text_part("html", 9)))
    assert len(root.children) == 2
    assert session.calls["structure"] == 0


def test_unavailable_raw_body_keeps_session_tree():
    session = FakeSession(structure=multipart("mixed", text_part("plain", 3)), header=RAW_HEADER)
    root = build_structure(session, 7)
    assert len(root.children) == 1


def test_nothing_available_raises_structure_unavailable():
    with pytest.raises(StructureUnavailable) as excinfo:
        build_structure(FakeSession(), 42)
    assert excinfo.value.uid == 42


def test_reconcile_and_trigger_rules():
    hinted = from_bodystructure(multipart("mixed", text_part("plain", 3)))
    assert needs_reconstruction(hinted)
    assert reconcile(hinted, None) is hinted
    empty = from_bodystructure(multipart("mixed"))
    assert needs_reconstruction(empty)
    assert reconcile(hinted, empty) is empty
