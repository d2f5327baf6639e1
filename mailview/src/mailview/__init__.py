"""
Module: mailview.__init__

What:
  Read-side view of a single mail message held in an IMAP mailbox: decoded
  headers, the MIME part tree, the body rendered for a requested subtype and
  the attachment list.

Interfaces:
  - Message / Attachment / Overview: per-message facade.
  - errors: MailViewError and its subclasses.
  - config: runtime configuration loader and schema.
  - imap: mailbox session adapter.
  - mime: connection-free structure, decoding and assembly core.
  - utils: structured logging.
"""

from .errors import (
    DecodeFailure,
    MailViewError,
    MalformedHeader,
    SessionUnavailable,
    StructureUnavailable,
)
from .message import Attachment, Message, Overview

__version__ = "0.1.0"

__all__ = [
    "Attachment",
    "DecodeFailure",
    "MailViewError",
    "MalformedHeader",
    "Message",
    "Overview",
    "SessionUnavailable",
    "StructureUnavailable",
    "config",
    "imap",
    "mime",
    "utils",
]
