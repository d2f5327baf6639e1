"""Transfer-encoding, charset and encoded-word decoding for MIME parts.

What:
  Turn raw part bytes into decoded bytes according to their
  Content-Transfer-Encoding, turn decoded bytes into text in the configured
  target charset, and decode RFC 2047 encoded words in human-facing header
  fields (subject, from, to, attachment names).

Why:
  Message bodies arrive from senders we do not control. Malformed base64, an
  unknown charset label or a broken encoded word must not cost the caller the
  whole message, so every decoder here returns best-effort output and logs a
  ``decode_failure`` event instead of raising. Strict mode exists for callers
  (and tests) that need to know a decode was lossy.

How:
  Base64 goes through :func:`base64.b64decode` after whitespace/noise removal
  and padding repair, quoted-printable through :mod:`quopri`, all other
  encodings pass through unchanged. Encoded words are split by
  :func:`email.header.decode_header` and each fragment is decoded with its own
  charset. Text is normalised by a round trip through the target charset so
  characters it cannot represent become replacement characters, mirroring a
  charset conversion.

Interfaces:
  :func:`decode_content`, :func:`to_text`, :func:`normalize_charset`,
  :func:`decode_header`, :data:`DEFAULT_TARGET_CHARSET`,
  :data:`DEFAULT_SOURCE_CHARSET`.

Invariants & Safety:
  - Non-strict calls never raise for malformed input.
  - Structural tokens (Content-Type, boundary, disposition) are never passed
    through :func:`decode_header`; they are compared as raw ASCII.
"""
from __future__ import annotations

import base64
import binascii
import codecs
import quopri
import re
from email.errors import HeaderParseError
from email.header import decode_header as _split_encoded_words
from typing import Optional, Union

from ..errors import DecodeFailure
from ..utils.logging import get_logger
from .structure import TransferEncoding


DEFAULT_TARGET_CHARSET = "utf-8"
"""Charset every decoded text is normalised to unless configured otherwise."""

DEFAULT_SOURCE_CHARSET = "utf-8"
"""Charset assumed for header fragments that declare none."""

_BASE64_NOISE = re.compile(rb"[^A-Za-z0-9+/]")

LOGGER = get_logger("mailview.mime.decoding")


def _decode_base64(raw: bytes, *, strict: bool) -> bytes:
    if strict:
        try:
            return base64.b64decode(b"".join(raw.split()), validate=True)
        except binascii.Error as exc:
            raise DecodeFailure(f"Invalid base64 payload: {exc}") from exc
    cleaned = _BASE64_NOISE.sub(b"", raw)
    remainder = len(cleaned) % 4
    if remainder == 1:
        # a single trailing sextet cannot carry a whole byte
        cleaned = cleaned[:-1]
    elif remainder:
        cleaned += b"=" * (4 - remainder)
    try:
        return base64.b64decode(cleaned)
    except binascii.Error as exc:  # pragma: no cover - cleaned input is always well-formed
        raise DecodeFailure(f"Invalid base64 payload: {exc}") from exc


def decode_content(raw: bytes, encoding: TransferEncoding, *, strict: bool = False) -> bytes:
    """Undo the Content-Transfer-Encoding of a part body.

    What:
      Returns the decoded payload for ``raw`` given its transfer encoding.

    Why:
      Attachments need their original bytes and text parts need decoded bytes
      before charset handling; both flow through here so the encoding rules
      live in one place.

    How:
      BASE64 and QUOTED_PRINTABLE are decoded; SEVEN_BIT, EIGHT_BIT, BINARY
      and OTHER are returned unchanged (text handling happens in
      :func:`to_text`). In lenient mode a base64 failure is logged and the
      original bytes are returned.

    Args:
      raw: Body bytes exactly as fetched from the session.
      encoding: Transfer encoding declared by the part.
      strict: Raise :class:`DecodeFailure` instead of falling back.

    Returns:
      Decoded bytes.

    Raises:
      DecodeFailure: Only when ``strict`` is set and the payload is invalid.
    """

    if encoding is TransferEncoding.BASE64:
        try:
            return _decode_base64(raw, strict=strict)
        except DecodeFailure:
            if strict:
                raise
            LOGGER.warning("decode_failure", encoding=encoding.value, size=len(raw))
            return raw
    if encoding is TransferEncoding.QUOTED_PRINTABLE:
        return quopri.decodestring(raw)
    return raw


def normalize_charset(text: str, target: str = DEFAULT_TARGET_CHARSET) -> str:
    """Round-trip ``text`` through ``target`` replacing unrepresentable characters."""

    return text.encode(target, errors="replace").decode(target, errors="replace")


def _is_same_charset(left: str, right: str) -> bool:
    try:
        return codecs.lookup(left).name == codecs.lookup(right).name
    except LookupError:
        return left.lower() == right.lower()


def to_text(
    data: bytes,
    charset: Optional[str] = None,
    target: str = DEFAULT_TARGET_CHARSET,
    *,
    strict: bool = False,
) -> str:
    """Decode part bytes into text expressed in the ``target`` charset.

    What:
      Decodes ``data`` with its declared ``charset`` (or ``target`` when the
      part declares none) and converts the result to ``target``.

    Why:
      Body assembly concatenates parts that may each use a different charset;
      the rendered body must be uniform.

    How:
      Unknown charset labels and undecodable bytes are a
      :class:`DecodeFailure`. Lenient mode logs the failure and decodes with
      replacement characters so the rest of the text survives.

    Args:
      data: Transfer-decoded bytes.
      charset: Charset parameter of the part, if any.
      target: Output charset.
      strict: Raise instead of degrading.

    Returns:
      Decoded text.
    """

    source = charset or target
    try:
        text = data.decode(source)
    except LookupError as exc:
        if strict:
            raise DecodeFailure(f"Unknown charset '{source}'") from exc
        LOGGER.warning("charset_unknown", charset=source, target=target)
        text = data.decode(target, errors="replace")
    except UnicodeDecodeError as exc:
        if strict:
            raise DecodeFailure(f"Bytes are not valid {source}: {exc}") from exc
        LOGGER.warning("decode_failure", charset=source, position=exc.start)
        text = data.decode(source, errors="replace")
    if _is_same_charset(source, target):
        return text
    return normalize_charset(text, target)


def _decode_fragment(fragment: bytes, charset: str) -> str:
    try:
        return fragment.decode(charset, errors="replace")
    except LookupError:
        LOGGER.warning("charset_unknown", charset=charset, item="header")
        return fragment.decode(DEFAULT_SOURCE_CHARSET, errors="replace")


def decode_header(
    text: Union[str, bytes, None],
    charset: Optional[str] = None,
    *,
    source_charset: str = DEFAULT_SOURCE_CHARSET,
) -> str:
    """Decode a header value made of RFC 2047 encoded words.

    What:
      ``=?UTF-8?B?SGVsbG8=?=`` becomes ``Hello``; unencoded text is returned
      as-is; several encoded words with different charsets are decoded one by
      one and concatenated in order.

    Why:
      Subjects, sender names and attachment file names are displayed to
      humans and routinely carry non-ASCII text.

    How:
      Split with :func:`email.header.decode_header`, decode byte fragments
      with their declared charset, keep the plain runs between them as they
      were in the already decoded input, join, then normalise to
      ``charset``. A malformed encoded word degrades to the undecoded input.

    Args:
      text: Raw header value; bytes (as delivered by IMAP envelopes) are
        decoded with ``source_charset`` first.
      charset: Target charset, defaulting to :data:`DEFAULT_TARGET_CHARSET`.
      source_charset: Charset assumed for fragments that declare none.

    Returns:
      Decoded text, ``""`` for empty input.
    """

    if not text:
        return ""
    target = charset or DEFAULT_TARGET_CHARSET
    if isinstance(text, bytes):
        text = _decode_fragment(text, source_charset)
    try:
        fragments = _split_encoded_words(text)
    except (HeaderParseError, binascii.Error) as exc:
        LOGGER.warning("decode_failure", item="header", error=str(exc))
        return normalize_charset(text, target)
    pieces = []
    for fragment, fragment_charset in fragments:
        if isinstance(fragment, bytes) and fragment_charset is None:
            # plain runs between encoded words come back raw-unicode-escaped
            pieces.append(fragment.decode("raw-unicode-escape"))
        elif isinstance(fragment, bytes):
            pieces.append(_decode_fragment(fragment, fragment_charset))
        else:
            pieces.append(fragment)
    return normalize_charset("".join(pieces), target)
