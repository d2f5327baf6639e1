"""Per-message facade combining overview metadata with the MIME core.

What:
  :class:`Message` is what callers hold for one mail: decoded subject and
  addresses, passthrough overview fields (date, size, flags), the MIME tree,
  the rendered body for a requested subtype, and the attachment/content part
  lists as :class:`Attachment` views.

Why:
  Inbox views read many messages and only some fields of each. Everything is
  fetched on first access and cached, and a message whose structure cannot be
  built still shows its subject and sender.

How:
  The overview is fetched once through the session. The tree comes from
  :func:`~mailview.mime.builder.build_structure`, the leaf sorting from
  :func:`~mailview.mime.assembler.assemble`; part bytes are fetched lazily
  per leaf and cached on the node. Caches are tied to the session
  ``generation`` observed when they were filled: when the session reports a
  new generation, or :meth:`Message.refresh` is called, they are dropped and
  refilled on next access.

Interfaces:
  :class:`Overview`, :class:`Attachment`, :class:`Message`.

Invariants & Safety:
  - ``body()``, ``attachments()`` and ``content_parts()`` walk the tree at
    most once per cache generation and never fetch a part twice.
  - A missing structure yields empty results (``body()`` -> ``None``) rather
    than an exception; a missing overview or part body raises
    :class:`~mailview.errors.SessionUnavailable` from the accessor that
    needed it.
  - Dropping a :class:`Message` never touches the session.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from .errors import StructureUnavailable
from .mime.assembler import AssembledBody, assemble
from .mime.builder import build_structure
from .mime.decoding import decode_content, decode_header, to_text
from .mime.structure import StructureNode


HeaderText = Union[str, bytes, None]


@dataclass
class Overview:
    """Lightweight per-message metadata as returned by the session.

    Text fields are raw header values: encoded words are not decoded yet and
    IMAP envelopes deliver them as bytes.
    """

    uid: int
    subject: HeaderText = None
    sender: HeaderText = None
    to: HeaderText = None
    date: Optional[str] = None
    received: Optional[datetime] = None
    size: Optional[int] = None
    flags: Tuple[str, ...] = ()
    message_id: Optional[str] = None
    in_reply_to: Optional[str] = None
    references: Optional[str] = None
    msgno: Optional[int] = None

    def has_flag(self, flag: str) -> bool:
        wanted = flag.lower()
        return any(existing.lower() == wanted for existing in self.flags)


class Attachment:
    """View over a non-body leaf: an attachment or an inline content part.

    What:
      Exposes the MIME type, a display filename, the size and the decoded
      bytes of one leaf of a :class:`Message`.

    How:
      The filename is the Content-Disposition ``filename``, else the
      Content-Type ``name``, else ``<unix time>.<subtype>`` generated once.
      Bytes are fetched through the owning message and cached.
    """

    def __init__(self, message: "Message", node: StructureNode):
        self._message = message
        self._node = node
        self._filename: Optional[str] = None
        self._raw_bytes: Optional[bytes] = None

    def __repr__(self) -> str:
        return f"Attachment(part_path={self.part_path!r}, mime_type={self.mime_type!r})"

    @property
    def node(self) -> StructureNode:
        return self._node

    @property
    def part_path(self) -> str:
        return self._node.part_path

    @property
    def mime_type(self) -> str:
        return self._node.mime_type

    @property
    def is_attachment(self) -> bool:
        return self._node.is_attachment

    @property
    def content_id(self) -> Optional[str]:
        return self._node.content_id

    @property
    def size(self) -> Optional[int]:
        return self._node.byte_length

    @property
    def title(self) -> Optional[str]:
        name = self._node.parameters.get("name")
        return self._message.decode_header(name) if name else None

    @property
    def filename(self) -> str:
        if self._filename is None:
            declared = self._node.disposition_parameters.get("filename")
            if declared:
                self._filename = self._message.decode_header(declared)
            else:
                self._filename = self.title or f"{int(time.time())}.{self._node.subtype or 'bin'}"
        return self._filename

    @property
    def raw_bytes(self) -> bytes:
        if self._raw_bytes is None:
            self._raw_bytes = self._message.data(self._node)
        return self._raw_bytes


class Message:
    """One mail message read through a :class:`~mailview.imap.session.MailboxSession`.

    What:
      Entry point for subject/sender/body/attachment access on a single UID.

    Why:
      Keeps fetch, structure repair, decoding and caching behind a small
      accessor surface so callers never deal with part paths or encodings.

    How:
      Construct from an :class:`Overview` (typically from a prior overview
      fetch) or a bare UID; pass ``structure`` when the caller already holds
      the native BODYSTRUCTURE.
    """

    def __init__(self, session: Any, source: Union[Overview, int], *, structure: Any = None):
        self._session = session
        if isinstance(source, Overview):
            self._uid = source.uid
            self._overview: Optional[Overview] = source
        else:
            self._uid = int(source)
            self._overview = None
        self._hint = structure
        self._generation = session.generation
        self._reset_content()

    def __repr__(self) -> str:
        return f"Message(uid={self._uid})"

    def _reset_content(self) -> None:
        self._target: Optional[str] = None
        self._header_charset: Optional[str] = None
        self._root: Optional[StructureNode] = None
        self._structure_missing = False
        self._assembled: Optional[AssembledBody] = None
        self._rendered: Dict[str, Optional[str]] = {}
        self._attachments: Optional[List[Attachment]] = None
        self._content: Optional[List[Attachment]] = None
        self._raw_text: Optional[bytes] = None

    def _check_generation(self) -> None:
        if self._session.generation != self._generation:
            self.refresh()

    def refresh(self) -> None:
        """Drop every cache so the next access re-fetches from the session."""

        self._generation = self._session.generation
        self._overview = None
        self._hint = None
        self._reset_content()

    # Overview -----------------------------------------------------------
    @property
    def uid(self) -> int:
        return self._uid

    @property
    def overview(self) -> Overview:
        self._check_generation()
        if self._overview is None:
            self._overview = self._session.fetch_overview(self._uid)
        return self._overview

    @property
    def target_charset(self) -> str:
        self._check_generation()
        if self._target is None:
            self._target = self._session.configured_target_charset()
        return self._target

    def decode_header(self, value: HeaderText) -> str:
        """Decode a raw header value into the session's target charset."""

        target = self.target_charset
        if self._header_charset is None:
            self._header_charset = self._session.configured_header_charset()
        return decode_header(value, target, source_charset=self._header_charset)

    @property
    def subject(self) -> str:
        return self.decode_header(self.overview.subject)

    @property
    def sender(self) -> str:
        return self.decode_header(self.overview.sender)

    @property
    def to(self) -> str:
        return self.decode_header(self.overview.to)

    @property
    def date(self) -> Optional[str]:
        return self.overview.date

    @property
    def received(self) -> Optional[datetime]:
        return self.overview.received

    @property
    def size(self) -> Optional[int]:
        return self.overview.size

    @property
    def flags(self) -> Tuple[str, ...]:
        return self.overview.flags

    @property
    def message_id(self) -> Optional[str]:
        return self.overview.message_id

    @property
    def in_reply_to(self) -> Optional[str]:
        return self.overview.in_reply_to

    @property
    def references(self) -> Optional[str]:
        return self.overview.references

    @property
    def seen(self) -> bool:
        return self.overview.has_flag("\\Seen")

    @property
    def recent(self) -> bool:
        return self.overview.has_flag("\\Recent")

    @property
    def flagged(self) -> bool:
        return self.overview.has_flag("\\Flagged")

    @property
    def answered(self) -> bool:
        return self.overview.has_flag("\\Answered")

    @property
    def deleted(self) -> bool:
        return self.overview.has_flag("\\Deleted")

    @property
    def draft(self) -> bool:
        return self.overview.has_flag("\\Draft")

    # Structure ----------------------------------------------------------
    @property
    def structure(self) -> Optional[StructureNode]:
        """Root of the MIME tree, ``None`` when no structure can be built."""

        self._check_generation()
        if self._root is None and not self._structure_missing:
            try:
                self._root = build_structure(self._session, self._uid, self._hint)
            except StructureUnavailable:
                self._structure_missing = True
        return self._root

    def parts(self) -> List[StructureNode]:
        """Top-level parts: the root's children, or the root itself for a leaf."""

        root = self.structure
        if root is None:
            return []
        if root.is_multipart:
            return list(root.children)
        return [root]

    def data(self, node: StructureNode) -> bytes:
        """Return the transfer-decoded bytes of leaf ``node``."""

        raw = node.raw_body
        if raw is None:
            raw = node.store_body(self._session.fetch_body(self._uid, node.part_path))
        return decode_content(raw, node.transfer_encoding)

    def raw_body(self) -> bytes:
        """Return the undecoded body text of the whole message (headers excluded)."""

        self._check_generation()
        if self._raw_text is None:
            self._raw_text = self._session.fetch_body(self._uid, "")
        return self._raw_text

    def text(self, node: StructureNode) -> str:
        """Return the decoded text of leaf ``node`` in the target charset."""

        return to_text(self.data(node), node.charset, self.target_charset)

    # Body ---------------------------------------------------------------
    def _assembly(self) -> AssembledBody:
        root = self.structure
        if self._assembled is None:
            self._assembled = assemble(root) if root is not None else AssembledBody()
        return self._assembled

    def body(self, requested: str = "html") -> Optional[str]:
        """Return the body rendered for ``requested`` (``"html"``, ``"plain"``...).

        ``None`` means the message has no text part at all, as opposed to an
        empty text part.
        """

        key = requested.lower()
        assembled = self._assembly()
        if key not in self._rendered:
            self._rendered[key] = assembled.render(key, self.text)
        return self._rendered[key]

    def attachments(self) -> List[Attachment]:
        assembled = self._assembly()
        if self._attachments is None:
            self._attachments = [Attachment(self, node) for node in assembled.attachment_parts]
        return list(self._attachments)

    def content_parts(self) -> List[Attachment]:
        assembled = self._assembly()
        if self._content is None:
            self._content = [Attachment(self, node) for node in assembled.content_parts]
        return list(self._content)
