"""
Module: tests/unit/test_session.py

What:
    Check the ``imapclient``-backed :class:`~mailview.imap.session.ImapSession`:
    connection setup, FETCH items, overview mapping, the read policy and the
    generation counter.

How:
    The ``imap_session`` fixture swaps ``IMAPClient`` for
    :class:`fakes.FakeImapBackend`; tests seed responses and inspect the
    recorded fetches.
"""

from datetime import datetime

import pytest
from imapclient.response_types import Address, Envelope

from fakes import multipart, text_part
from mailview.errors import SessionUnavailable
from mailview.imap.session import ImapConfig, ImapSession


def _envelope():
    return Envelope(
        datetime(2024, 3, 1, 10, 0, 0),
        b"=?UTF-8?B?SGVsbG8=?=",
        (Address(b"Zoe", None, b"zoe", b"example.test"),),
        None,
        None,
        (Address(None, None, b"bob", b"example.test"), Address(b"Ann", None, b"ann", b"example.test")),
        None,
        None,
        b"<parent@example.test>",
        b"<m1@example.test>",
    )


def test_connects_and_selects_configured_folder(imap_session):
    session, backend = imap_session
    assert backend.logged_in == ("reader@example.test", "app-password")
    assert backend.selected == "INBOX"
    assert backend.readonly is True
    assert session.folder == "INBOX"
    assert session.generation == 1


def test_exit_logs_out(imap_backend):
    with ImapSession(ImapConfig()) as session:
        assert session.client is imap_backend
    assert imap_backend.logged_out
    with pytest.raises(RuntimeError):
        session.client


def test_config_defaults_come_from_runtime_config():
    config = ImapConfig(folder="Archive")
    assert config.host == "imap.example.test"
    assert config.port == 993
    assert config.folder == "Archive"
    assert config.mark_as_seen is False
    assert config.target_charset == "utf-8"


def test_body_fetch_uses_peek_unless_marking_seen(imap_backend):
    imap_backend.add(5, BODY_1_2=b"part", BODY_TEXT=b"whole")
    with ImapSession(ImapConfig()) as session:
        assert session.fetch_body(5, "1.2") == b"part"
        assert session.fetch_body(5, "") == b"whole"
    assert [items for _, items in imap_backend.fetches] == [["BODY.PEEK[1.2]"], ["BODY.PEEK[TEXT]"]]

    imap_backend.fetches.clear()
    with ImapSession(ImapConfig(mark_as_seen=True)) as session:
        session.fetch_body(5, "1.2")
    assert imap_backend.fetches == [([5], ["BODY[1.2]"])]
    assert imap_backend.readonly is False


def test_missing_body_raises_session_unavailable(imap_session):
    session, backend = imap_session
    backend.add(5, BODY_1=b"x")
    with pytest.raises(SessionUnavailable) as excinfo:
        session.fetch_body(5, "2")
    assert excinfo.value.uid == 5
    with pytest.raises(SessionUnavailable):
        session.fetch_body(99, "1")


def test_structure_and_header_fetches(imap_session):
    session, backend = imap_session
    structure = multipart("alternative", text_part("plain", 3), text_part("html", 4))
    backend.add(5, BODYSTRUCTURE=structure, BODY_HEADER=b"Subject: hi\r\n\r\n")

    assert session.fetch_structure(5) == structure
    assert session.fetch_header(5) == b"Subject: hi\r\n\r\n"
    assert session.fetch_structure(99) is None
    assert session.fetch_header(99) is None
    assert backend.fetches[1] == ([5], ["BODY.PEEK[HEADER]"])


def test_overview_maps_envelope_and_flags(imap_session):
    session, backend = imap_session
    backend.add(
        5,
        raw={b"BODY[HEADER.FIELDS (REFERENCES)]": b"References: <a@x> <b@x>\r\n\r\n"},
        ENVELOPE=_envelope(),
        FLAGS=(b"\\Seen", b"\\Answered"),
        RFC822_SIZE=2048,
        INTERNALDATE=datetime(2024, 3, 1, 10, 0, 5),
    )

    overview = session.fetch_overview(5)

    assert overview.uid == 5
    assert overview.subject == b"=?UTF-8?B?SGVsbG8=?="
    assert overview.sender == b"Zoe <zoe@example.test>"
    assert overview.to == b"bob@example.test, Ann <ann@example.test>"
    assert overview.date == "2024-03-01T10:00:00"
    assert overview.received == datetime(2024, 3, 1, 10, 0, 5)
    assert overview.size == 2048
    assert overview.flags == ("\\Seen", "\\Answered")
    assert overview.message_id == "<m1@example.test>"
    assert overview.in_reply_to == "<parent@example.test>"
    assert overview.references == "<a@x> <b@x>"


def test_unknown_uid_overview_raises(imap_session):
    session, _ = imap_session
    with pytest.raises(SessionUnavailable):
        session.fetch_overview(404)


def test_message_reads_through_session(imap_session):
    session, backend = imap_session
    backend.add(
        5,
        ENVELOPE=_envelope(),
        FLAGS=(b"\\Seen",),
        RFC822_SIZE=10,
        BODYSTRUCTURE=multipart("alternative", text_part("plain", 5), text_part("html", 12)),
        BODY_1=b"plain",
        BODY_2=b"<p>html</p>",
    )

    message = session.message(5)

    assert message.subject == "Hello"
    assert message.sender == "Zoe <zoe@example.test>"
    assert message.seen
    assert message.body() == "<p>html</p>"
    assert message.body("plain") == "plain"


def test_folder_switch_bumps_generation_and_invalidates_messages(imap_session):
    session, backend = imap_session
    backend.add(
        5,
        BODYSTRUCTURE=text_part("plain", 3),
        BODY_TEXT=b"old",
        ENVELOPE=_envelope(),
    )
    backend.add(5, folder="Archive", BODYSTRUCTURE=text_part("plain", 3), BODY_TEXT=b"new")
    message = session.message(5)
    assert message.body("plain") == "old"

    session.select_folder("Archive")

    assert session.generation == 2
    assert message.body("plain") == "new"


def test_reconfigure_reconnects_and_bumps_generation(imap_session):
    session, backend = imap_session
    session.reconfigure(target_charset="iso-8859-1")
    assert session.configured_target_charset() == "iso-8859-1"
    assert session.generation == 2
    assert backend.logged_out
