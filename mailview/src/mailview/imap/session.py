"""IMAP-backed mailbox session used by :class:`~mailview.message.Message`.

What:
  Define the :class:`MailboxSession` protocol the message view reads through
  and :class:`ImapSession`, its implementation on top of
  ``imapclient.IMAPClient``.

Why:
  The MIME core only needs five fetches (structure, header, part body,
  overview, charset settings). Keeping them behind a narrow protocol lets the
  core run against an in-memory fake in tests and keeps every IMAP command in
  one place.

How:
  :class:`ImapConfig` fills unset fields from the runtime configuration.
  :class:`ImapSession` connects in :meth:`~ImapSession.__enter__`, selects the
  configured folder and issues UID FETCH commands. Part bodies use
  ``BODY.PEEK[...]`` unless ``mark_as_seen`` is set. Selecting another folder
  or reconfiguring the connection bumps :attr:`~ImapSession.generation` so
  messages drop their caches.

Interfaces:
  :class:`MailboxSession`, :class:`ImapConfig`, :class:`ImapSession`.

Invariants & Safety:
  - All fetches are UID based; sequence numbers are never used.
  - Fetching never changes flags unless ``mark_as_seen`` is true, and then
    only through ``BODY[...]`` part fetches.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Protocol, Sequence

from imapclient import IMAPClient

from ..config.loader import get_runtime_config
from ..errors import SessionUnavailable
from ..message import Message, Overview
from ..mime.headers import parse_headers
from ..utils.logging import get_logger


LOGGER = get_logger("mailview.imap.session")

_REFERENCES_ITEM = "BODY.PEEK[HEADER.FIELDS (REFERENCES)]"
_OVERVIEW_ITEMS = ["ENVELOPE", "FLAGS", "RFC822.SIZE", "INTERNALDATE", _REFERENCES_ITEM]


class MailboxSession(Protocol):
    """What :class:`~mailview.message.Message` needs from a mailbox session."""

    mark_as_seen: bool
    generation: int

    def fetch_structure(self, uid: int) -> Any:
        ...

    def fetch_header(self, uid: int) -> Optional[bytes]:
        ...

    def fetch_body(self, uid: int, part_path: str) -> bytes:
        ...

    def fetch_overview(self, uid: int) -> Overview:
        ...

    def configured_target_charset(self) -> str:
        ...

    def configured_header_charset(self) -> str:
        ...


@dataclass
class ImapConfig:
    """Connection parameters for an IMAP account.

    What:
      Host, credentials, folder and read policy for one session.

    How:
      Fields left as ``None`` are filled by :meth:`__post_init__` from
      :func:`~mailview.config.loader.get_runtime_config`.

    Attributes:
      host: IMAP hostname.
      username: Login credential.
      password: Password or app-specific token.
      port: IMAP port.
      ssl: Whether to use TLS.
      folder: Mailbox selected on connect.
      mark_as_seen: Whether body fetches may set ``\\Seen``.
      target_charset: Charset decoded text is normalised to.
      header_charset: Charset assumed for raw 8-bit header bytes.
    """

    host: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    port: Optional[int] = None
    ssl: Optional[bool] = None
    folder: Optional[str] = None
    mark_as_seen: Optional[bool] = None
    target_charset: Optional[str] = None
    header_charset: Optional[str] = None

    def __post_init__(self) -> None:
        settings = get_runtime_config()
        for name in ("host", "username", "password", "port", "ssl", "folder", "mark_as_seen"):
            if getattr(self, name) is None:
                setattr(self, name, getattr(settings.imap, name))
        if self.target_charset is None:
            self.target_charset = settings.mail.target_charset
        if self.header_charset is None:
            self.header_charset = settings.mail.header_charset


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _format_address(address: Any) -> bytes:
    name, mailbox, host = address.name, address.mailbox, address.host
    addr_spec = b"@".join(part for part in (mailbox, host) if part)
    if name:
        return name + b" <" + addr_spec + b">"
    return addr_spec


def _format_addresses(addresses: Optional[Sequence[Any]]) -> Optional[bytes]:
    if not addresses:
        return None
    return b", ".join(_format_address(address) for address in addresses)


def _item(payload: Dict[Any, Any], name: str) -> Any:
    # imapclient reports BODY.PEEK[...] items back as BODY[...]
    key = name.replace("BODY.PEEK[", "BODY[").encode("ascii")
    if key in payload:
        return payload[key]
    return payload.get(name.encode("ascii"))


class ImapSession:
    """Context manager exposing a :class:`MailboxSession` over IMAP.

    What:
      Owns one ``IMAPClient`` connection, the selected folder and the
      generation counter.

    Why:
      Message objects hold on to the session for lazy fetches; the session
      is the single place that knows how to phrase those fetches.

    How:
      Connect and select in :meth:`__enter__`, log out in :meth:`__exit__`.
      The fetch helpers issue a single-UID ``fetch`` and unpack the item they
      asked for.
    """

    def __init__(self, config: Optional[ImapConfig] = None):
        self._config = config if config is not None else ImapConfig()
        self._client: Optional[IMAPClient] = None
        self._selected: Optional[str] = None
        self.generation = 0

    def __enter__(self) -> "ImapSession":
        self._connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _connect(self) -> None:
        config = self._config
        if not config.host:
            raise RuntimeError("IMAP host not configured")
        self._client = IMAPClient(config.host, port=config.port, ssl=config.ssl)
        self._client.login(config.username, config.password)
        LOGGER.info("imap_connected", host=config.host, port=config.port)
        self._select(config.folder or "INBOX")

    def close(self) -> None:
        """Log out and drop the connection; safe to call twice."""

        if self._client is None:
            return
        try:
            self._client.logout()
        finally:
            self._client = None
            self._selected = None

    @property
    def client(self) -> IMAPClient:
        if self._client is None:
            raise RuntimeError("IMAP session not connected")
        return self._client

    @property
    def config(self) -> ImapConfig:
        return self._config

    @property
    def folder(self) -> Optional[str]:
        return self._selected

    @property
    def mark_as_seen(self) -> bool:
        return bool(self._config.mark_as_seen)

    def configured_target_charset(self) -> str:
        return self._config.target_charset or "utf-8"

    def configured_header_charset(self) -> str:
        return self._config.header_charset or "utf-8"

    # Folder and connection changes --------------------------------------
    def _select(self, folder: str) -> None:
        self.client.select_folder(folder, readonly=not self.mark_as_seen)
        self._selected = folder
        self.generation += 1
        LOGGER.info("folder_selected", folder=folder, generation=self.generation)

    def select_folder(self, folder: str) -> None:
        """Select ``folder``; messages read before the switch refetch lazily."""

        self._select(folder)

    def reconfigure(self, **changes: Any) -> None:
        """Apply ``changes`` to the connection config and reconnect if open.

        Any change invalidates message caches, including charset settings
        that only affect decoding.
        """

        connected = self._client is not None
        self._config = replace(self._config, **changes)
        if connected:
            self.close()
            self._connect()
        else:
            self.generation += 1

    # Fetches --------------------------------------------------------------
    def _fetch(self, uid: int, items: Iterable[str]) -> Dict[Any, Any]:
        response = self.client.fetch([uid], list(items))
        return response.get(uid) or {}

    def fetch_structure(self, uid: int) -> Any:
        """Return the native BODYSTRUCTURE of ``uid``, ``None`` when absent."""

        return _item(self._fetch(uid, ["BODYSTRUCTURE"]), "BODYSTRUCTURE")

    def fetch_header(self, uid: int) -> Optional[bytes]:
        """Return the raw top-level header block of ``uid``, ``None`` when absent."""

        return _item(self._fetch(uid, ["BODY.PEEK[HEADER]"]), "BODY.PEEK[HEADER]")

    def fetch_body(self, uid: int, part_path: str) -> bytes:
        """Return the raw bytes of ``part_path`` (``""`` is the whole body text).

        Raises:
          SessionUnavailable: The server returned nothing for the part.
        """

        section = part_path or "TEXT"
        verb = "BODY" if self.mark_as_seen else "BODY.PEEK"
        name = f"{verb}[{section}]"
        data = _item(self._fetch(uid, [name]), name)
        if data is None:
            raise SessionUnavailable(
                f"No body returned for message {uid} part {section}", uid=uid, item=name
            )
        return data

    def fetch_overview(self, uid: int) -> Overview:
        """Return envelope, flags, size and dates of ``uid``.

        Raises:
          SessionUnavailable: The UID is unknown to the selected folder.
        """

        payload = self._fetch(uid, _OVERVIEW_ITEMS)
        envelope = payload.get(b"ENVELOPE")
        if not payload or envelope is None:
            raise SessionUnavailable(f"No overview for message {uid}", uid=uid, item="ENVELOPE")
        references = parse_headers(_item(payload, _REFERENCES_ITEM)).get("references")
        received = payload.get(b"INTERNALDATE")
        date = envelope.date
        return Overview(
            uid=uid,
            subject=envelope.subject,
            sender=_format_addresses(envelope.from_),
            to=_format_addresses(envelope.to),
            date=date.isoformat() if isinstance(date, datetime) else _text(date),
            received=received if isinstance(received, datetime) else None,
            size=payload.get(b"RFC822.SIZE"),
            flags=tuple(_text(flag) or "" for flag in payload.get(b"FLAGS", ())),
            message_id=_text(envelope.message_id),
            in_reply_to=_text(envelope.in_reply_to),
            references=references.value if references is not None else None,
            msgno=payload.get(b"SEQ"),
        )

    def message(self, uid: int) -> Message:
        """Return a :class:`Message` for ``uid`` seeded with its overview."""

        return Message(self, self.fetch_overview(uid))
