"""IMAP session adapter.

Interfaces:
  - MailboxSession: protocol the message view fetches through.
  - ImapConfig / ImapSession: ``imapclient``-backed implementation.
"""

from .session import ImapConfig, ImapSession, MailboxSession

__all__ = ["ImapConfig", "ImapSession", "MailboxSession"]
