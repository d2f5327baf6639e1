"""Pytest fixtures for unit tests.

What:
  Make ``tests/unit`` importable and expose an ``imap_session`` fixture
  backed by :class:`FakeImapBackend`.

How:
  Monkeypatch ``mailview.imap.session.IMAPClient`` to return the backend and
  yield a connected :class:`ImapSession` plus the backend for assertions.

Interfaces:
  :func:`imap_backend`, :func:`imap_session` (pytest fixtures).
"""

import sys
from pathlib import Path

import pytest

from mailview.imap.session import ImapConfig, ImapSession

UNIT_DIR = Path(__file__).resolve().parent
if str(UNIT_DIR) not in sys.path:
    sys.path.insert(0, str(UNIT_DIR))

from fakes import FakeImapBackend


@pytest.fixture
def imap_backend(monkeypatch: pytest.MonkeyPatch) -> FakeImapBackend:
    backend = FakeImapBackend()
    monkeypatch.setattr("mailview.imap.session.IMAPClient", lambda host, port, ssl: backend)
    return backend


@pytest.fixture
def imap_session(imap_backend: FakeImapBackend):
    """Yield ``(ImapSession, FakeImapBackend)`` inside the session context."""

    with ImapSession(ImapConfig()) as session:
        yield session, imap_backend
