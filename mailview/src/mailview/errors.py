"""Exception taxonomy shared by the mailview MIME core and its session adapter.

What:
  Define the four failure categories the message view can encounter while
  turning session responses into a decoded message: missing session data, an
  unbuildable structure, an unparseable raw header line, and a failed decode.

Why:
  Callers treat these categories differently. A missing body must reach the
  accessor that asked for it, a missing structure degrades to "no parts", and
  header/decoding problems never abort a message. A shared base class lets the
  CLI catch the whole family while library code handles each case explicitly.

How:
  Plain :class:`Exception` subclasses rooted at :class:`MailViewError`. Optional
  context (UID, part path) is stored on the instance for log payloads.

Interfaces:
  :class:`MailViewError`, :class:`SessionUnavailable`,
  :class:`StructureUnavailable`, :class:`MalformedHeader`,
  :class:`DecodeFailure`.
"""
from __future__ import annotations

from typing import Optional


class MailViewError(Exception):
    """Base class for every error raised by mailview."""


class SessionUnavailable(MailViewError):
    """The mailbox session could not return data an accessor required.

    What:
      Raised when a structure, header, body or overview fetch comes back
      empty or the UID is unknown to the selected folder.

    Why:
      Only the accessor that needed the data fails; values already cached on
      the same :class:`~mailview.message.Message` stay valid.

    How:
      Carries the ``uid`` and the requested ``item`` so log lines and CLI
      messages can point at the exact fetch.
    """

    def __init__(self, message: str, *, uid: Optional[int] = None, item: Optional[str] = None):
        super().__init__(message)
        self.uid = uid
        self.item = item


class StructureUnavailable(MailViewError):
    """No MIME structure could be built, even from raw header/body text.

    Message accessors catch this and degrade to empty results.
    """

    def __init__(self, message: str, *, uid: Optional[int] = None):
        super().__init__(message)
        self.uid = uid


class MalformedHeader(MailViewError):
    """A raw header line has no recognizable ``name: value`` shape."""

    def __init__(self, line: str):
        super().__init__(f"Malformed header line: {line[:80]!r}")
        self.line = line


class DecodeFailure(MailViewError):
    """Transfer decoding or charset conversion could not complete.

    Raised only in strict mode; the default code paths log it and return
    best-effort output instead.
    """
