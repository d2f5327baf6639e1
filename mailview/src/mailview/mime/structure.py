"""MIME structure model and its two connection-free builders.

What:
  Define :class:`StructureNode`, the tree node describing one MIME part, and
  build trees of them either from an IMAP BODYSTRUCTURE response
  (:func:`from_bodystructure`) or from raw header/body text
  (:func:`from_raw`).

Why:
  Everything downstream (body assembly, attachment listing, part fetches)
  walks this tree. Building it from data that has already been fetched keeps
  the builders pure and testable with canned inputs; the fetch step lives in
  :mod:`mailview.mime.builder`.

How:
  :func:`from_bodystructure` reads the positional BODYSTRUCTURE fields as
  parsed by ``imapclient`` (``BodyData`` or the equivalent nested tuples).
  :func:`from_raw` parses the header block with
  :func:`~mailview.mime.headers.parse_headers`, and for multiparts splits the
  body on the declared boundary and recurses into every segment.

Interfaces:
  :class:`PartKind`, :class:`TransferEncoding`, :class:`StructureNode`,
  :func:`from_bodystructure`, :func:`from_raw`, :func:`child_path`.

Invariants & Safety:
  - A node never carries both children and a body (byte length or raw bytes).
  - Only MULTIPART nodes have children; children are numbered 1-based in
    source order (``""`` -> ``"1"`` -> ``"1.2"``).
  - ``raw_body`` is populated at most once.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from .headers import HeaderField, collapse_parameters, parse_headers


class PartKind(str, Enum):
    """Primary MIME type of a part."""

    TEXT = "text"
    MULTIPART = "multipart"
    MESSAGE = "message"
    APPLICATION = "application"
    AUDIO = "audio"
    IMAGE = "image"
    VIDEO = "video"
    MODEL = "model"
    OTHER = "other"

    @classmethod
    def from_token(cls, token: Optional[str]) -> "PartKind":
        if not token:
            return cls.OTHER
        try:
            return cls(token.strip().lower())
        except ValueError:
            return cls.OTHER


class TransferEncoding(str, Enum):
    """Content-Transfer-Encoding of a leaf part."""

    SEVEN_BIT = "7bit"
    EIGHT_BIT = "8bit"
    BINARY = "binary"
    BASE64 = "base64"
    QUOTED_PRINTABLE = "quoted-printable"
    OTHER = "other"

    @classmethod
    def from_token(cls, token: Optional[str]) -> "TransferEncoding":
        if not token:
            return cls.SEVEN_BIT
        try:
            return cls(token.strip().lower())
        except ValueError:
            return cls.OTHER


@dataclass
class StructureNode:
    """One MIME part of a message.

    What:
      Holds the resolved type, encoding, disposition and parameters of a part
      together with either its children (multiparts) or its size and, once
      fetched, its raw body bytes (leaves).

    Why:
      Every optional field is resolved once at build time, so readers check
      ``node.disposition`` instead of re-probing the source structure.

    How:
      A plain dataclass; :meth:`__post_init__` enforces the children/body
      exclusivity and :meth:`store_body` implements the populate-once cache.
    """

    part_path: str
    kind: PartKind
    subtype: Optional[str] = None
    transfer_encoding: TransferEncoding = TransferEncoding.SEVEN_BIT
    disposition: Optional[str] = None
    parameters: Dict[str, str] = field(default_factory=dict)
    disposition_parameters: Dict[str, str] = field(default_factory=dict)
    byte_length: Optional[int] = None
    content_id: Optional[str] = None
    description: Optional[str] = None
    lines: Optional[int] = None
    children: List["StructureNode"] = field(default_factory=list)
    raw_body: Optional[bytes] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.children and self.kind is not PartKind.MULTIPART:
            raise ValueError(f"part {self.part_path!r} has children but is {self.kind.value}")
        if self.kind is PartKind.MULTIPART and (
            self.byte_length is not None or self.raw_body is not None
        ):
            raise ValueError(f"multipart {self.part_path!r} cannot carry a body")

    @property
    def is_multipart(self) -> bool:
        return self.kind is PartKind.MULTIPART

    @property
    def is_attachment(self) -> bool:
        return self.disposition == "attachment"

    @property
    def mime_type(self) -> str:
        if self.subtype:
            return f"{self.kind.value}/{self.subtype}"
        return self.kind.value

    @property
    def charset(self) -> Optional[str]:
        return self.parameters.get("charset") or None

    def walk(self) -> Iterator["StructureNode"]:
        """Yield this node and its descendants depth-first."""

        yield self
        for child in self.children:
            yield from child.walk()

    def store_body(self, data: bytes) -> bytes:
        """Cache ``data`` as the raw body unless one is already cached."""

        if self.is_multipart:
            raise ValueError(f"multipart {self.part_path!r} cannot carry a body")
        if self.raw_body is None:
            self.raw_body = data
        return self.raw_body


def child_path(parent: str, index: int) -> str:
    """Return the dotted path of the ``index``-th (1-based) child of ``parent``."""

    return f"{parent}.{index}" if parent else str(index)


# BODYSTRUCTURE ---------------------------------------------------------------

def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _token(value: Any) -> Optional[str]:
    text = _text(value)
    return text.strip().lower() if text else None


def _pairs(value: Any) -> Dict[str, str]:
    if not isinstance(value, (tuple, list)):
        return {}
    items = list(value)
    return collapse_parameters(
        [
            (_token(key) or "", _text(val) or "")
            for key, val in zip(items[0::2], items[1::2])
            if _token(key)
        ]
    )


def _disposition(value: Any) -> Tuple[Optional[str], Dict[str, str]]:
    if isinstance(value, (bytes, str)):
        return _token(value), {}
    if isinstance(value, (tuple, list)) and value:
        params = value[1] if len(value) > 1 else None
        return _token(value[0]), _pairs(params)
    return None, {}


def _field(data: Sequence[Any], index: int) -> Any:
    return data[index] if len(data) > index else None


def _split_multipart(data: Sequence[Any]) -> Optional[Tuple[List[Any], Sequence[Any]]]:
    """Return ``(parts, extension fields)`` when ``data`` describes a multipart.

    ``imapclient`` nests the parts in a list as the first element; raw nested
    tuples list them as leading tuple elements instead.
    """

    if not data:
        return None
    first = data[0]
    if isinstance(first, list):
        return list(first), data[1:]
    if isinstance(first, tuple):
        parts = []
        for item in data:
            if not isinstance(item, tuple):
                break
            parts.append(item)
        return parts, data[len(parts):]
    return None


def from_bodystructure(data: Sequence[Any], part_path: str = "") -> StructureNode:
    """Convert an IMAP BODYSTRUCTURE response into a :class:`StructureNode` tree.

    What:
      Reads the positional BODYSTRUCTURE fields (RFC 3501 section 7.4.2) for
      the part and, for multiparts, every child.

    Why:
      This is the session's native description of the message and the cheap
      path: no body bytes are fetched to build it.

    How:
      Multipart: ``(parts, subtype, params, disposition, ...)``. Leaf:
      ``(type, subtype, params, id, description, encoding, size, ...)`` with
      the line count for ``text/*`` and the envelope/body/lines triple for
      ``message/rfc822`` shifting the extension fields. An embedded
      ``message/rfc822`` stays a leaf.

    Args:
      data: ``imapclient.response_types.BodyData`` or equivalent tuples.
      part_path: Dotted path of the part being converted.

    Returns:
      The converted node.
    """

    multipart = _split_multipart(data)
    if multipart is not None:
        parts, extension = multipart
        disposition, disposition_params = _disposition(_field(extension, 2))
        return StructureNode(
            part_path=part_path,
            kind=PartKind.MULTIPART,
            subtype=_token(_field(extension, 0)),
            parameters=_pairs(_field(extension, 1)),
            disposition=disposition,
            disposition_parameters=disposition_params,
            children=[
                from_bodystructure(part, child_path(part_path, index))
                for index, part in enumerate(parts, start=1)
            ],
        )

    kind = PartKind.from_token(_text(_field(data, 0)))
    subtype = _token(_field(data, 1))
    lines: Any = None
    extension_start = 7
    if kind is PartKind.TEXT:
        lines = _field(data, 7)
        extension_start = 8
    elif kind is PartKind.MESSAGE and subtype == "rfc822":
        lines = _field(data, 9)
        extension_start = 10
    disposition, disposition_params = _disposition(_field(data, extension_start + 1))
    size = _field(data, 6)
    return StructureNode(
        part_path=part_path,
        kind=kind,
        subtype=subtype,
        transfer_encoding=TransferEncoding.from_token(_text(_field(data, 5))),
        parameters=_pairs(_field(data, 2)),
        content_id=_text(_field(data, 3)),
        description=_text(_field(data, 4)),
        byte_length=size if isinstance(size, int) else 0,
        lines=lines if isinstance(lines, int) else None,
        disposition=disposition,
        disposition_parameters=disposition_params,
    )


# Raw header/body reconstruction ---------------------------------------------

_HEADER_END = re.compile(rb"\r?\n\r?\n")
_LEADING_BREAK = re.compile(rb"^\r?\n")


def _delimiter(boundary: str) -> "re.Pattern[bytes]":
    # the line break before a delimiter belongs to the delimiter
    return re.compile(
        rb"(?:\r?\n)?^--" + re.escape(boundary.encode("utf-8")) + rb"(?:--)?[ \t]*(?:\r?\n|$)",
        re.MULTILINE,
    )


def _split_segment(segment: bytes) -> Tuple[bytes, bytes]:
    leading = _LEADING_BREAK.match(segment)
    if leading is not None:
        return b"", segment[leading.end():]
    match = _HEADER_END.search(segment)
    if match is None:
        return segment, b""
    return segment[: match.start()], segment[match.end():]


def split_multipart_body(body: bytes, boundary: str) -> List[Tuple[bytes, bytes]]:
    """Split a multipart body into ``(header, body)`` pairs, one per part.

    Text before the first delimiter (preamble) and after the last one
    (epilogue) is dropped.
    """

    segments = _delimiter(boundary).split(body)[1:-1]
    return [_split_segment(segment) for segment in segments]


def _first(headers: Dict[str, HeaderField], name: str) -> Optional[str]:
    header = headers.get(name)
    return header.value if header is not None else None


def from_raw(
    header: Union[str, bytes, None],
    body: Optional[bytes],
    part_path: str = "",
) -> StructureNode:
    """Rebuild a :class:`StructureNode` tree from raw header and body text.

    What:
      Derives type, encoding and disposition from the header block and, for
      multiparts, rebuilds every child from the boundary-delimited body.

    Why:
      Some senders produce valid MIME that the server's structure parser
      collapses; the raw text is the only other source of truth.

    How:
      A missing Content-Type means ``text/plain`` (RFC 2045 section 5.2
      default), so a part without one is read as body text and never as an
      OTHER content part. An unknown primary type maps to OTHER, an unknown
      transfer encoding to OTHER. A multipart without a ``boundary``
      parameter, or without a body, gets no children. Leaves record
      ``byte_length`` and keep ``body`` as their raw bytes.

    Args:
      header: Raw header block of the part.
      body: Raw body bytes of the part (``None`` when unknown).
      part_path: Dotted path of the part being rebuilt.

    Returns:
      The rebuilt node.
    """

    headers = parse_headers(header)
    content_type = headers.get("content-type")
    media = (content_type.value if content_type is not None else None) or "text/plain"
    primary, _, secondary = media.partition("/")
    kind = PartKind.from_token(primary)
    parameters = dict(content_type.params) if content_type is not None else {}
    disposition_header = headers.get("content-disposition")
    disposition = None
    disposition_params: Dict[str, str] = {}
    if disposition_header is not None:
        disposition = (disposition_header.value or "").strip().lower() or None
        disposition_params = dict(disposition_header.params)

    node = StructureNode(
        part_path=part_path,
        kind=kind,
        subtype=secondary.strip().lower() or None,
        transfer_encoding=TransferEncoding.from_token(_first(headers, "content-transfer-encoding")),
        disposition=disposition,
        parameters=parameters,
        disposition_parameters=disposition_params,
        content_id=_first(headers, "content-id"),
        description=_first(headers, "content-description"),
    )
    if kind is PartKind.MULTIPART:
        boundary = parameters.get("boundary")
        if boundary and body is not None:
            node.children = [
                from_raw(sub_header, sub_body, child_path(part_path, index))
                for index, (sub_header, sub_body) in enumerate(
                    split_multipart_body(body, boundary), start=1
                )
            ]
        return node
    data = body if body is not None else b""
    node.byte_length = len(data)
    node.store_body(data)
    return node
