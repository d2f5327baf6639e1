"""Ad-hoc parser for raw MIME header blocks.

What:
  Parse a raw header block (``Content-Type: multipart/mixed;
  boundary="xyz"`` and friends) into a mapping from lower-cased header name
  to a :class:`HeaderField` holding the positional values and the
  ``key=value`` parameters of that header.

Why:
  The structure fallback rebuilds a MIME tree from raw text when the
  session's own structure is not trusted. It only needs the handful of
  structural headers, and it must keep going past garbage lines: one broken
  line must not hide the boundary declared on the next one.

How:
  Keep the first block (up to the first blank line), unfold continuation
  lines, match each line against ``name: value``, then split the value on
  ``;`` into bare values and ``key=value`` / ``key="value"`` parameters.
  RFC 2231 extended parameters (``filename*=utf-8''...`` and numbered
  continuations) are collapsed into plain values. Lines without a
  ``name: value`` shape raise :class:`~mailview.errors.MalformedHeader`
  internally, get logged, and are skipped.

Interfaces:
  :class:`HeaderField`, :func:`parse_headers`, :func:`split_parameters`.

Invariants & Safety:
  - Header names and parameter names are lower-cased; values keep their case.
  - Repeated headers merge: values append, later parameters win.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union
from urllib.parse import unquote_to_bytes

from ..errors import MalformedHeader
from ..utils.logging import get_logger


_BLOCK_END = re.compile(r"\r?\n[ \t]*\r?\n")
_FOLD = re.compile(r"\r?\n(?=[ \t])")
_LINE_BREAK = re.compile(r"\r?\n")
_LINE = re.compile(r"^([\w.-]+)[ \t]*:[ \t]*(.*)$", re.DOTALL)
_PARAM = re.compile(
    r'\s*(?:([\w.*-]+)\s*=\s*(?:"((?:[^"\\]|\\.)*)"|([^;]*))|([^;]+))\s*(?:;|$)'
)
_EXTENDED = re.compile(r"^([^*]+)\*(\d+)?(\*)?$")
_QUOTED_PAIR = re.compile(r"\\(.)")

LOGGER = get_logger("mailview.mime.headers")


@dataclass
class HeaderField:
    """Parsed value of one header name.

    ``values`` holds the bare ``;``-separated tokens (``multipart/mixed``,
    ``attachment``) in order; ``params`` holds the ``key=value`` pairs.
    """

    values: List[str] = field(default_factory=list)
    params: Dict[str, str] = field(default_factory=dict)

    @property
    def value(self) -> Optional[str]:
        return self.values[0] if self.values else None


def collapse_parameters(raw_params: List[Tuple[str, str]]) -> Dict[str, str]:
    """Merge RFC 2231 continuations (``name*0*``, ``name*1``) and decode
    ``charset'lang'value`` payloads into plain ``name`` entries."""

    plain: Dict[str, str] = {}
    sections: Dict[str, List[Tuple[int, bool, str]]] = {}
    for key, value in raw_params:
        match = _EXTENDED.match(key)
        if match is None:
            plain[key] = value
            continue
        name, index, star = match.groups()
        encoded = index is None or star is not None
        sections.setdefault(name, []).append((int(index or 0), encoded, value))

    for name, chunks in sections.items():
        chunks.sort(key=lambda chunk: chunk[0])
        charset: Optional[str] = None
        payload = bytearray()
        for position, (_, encoded, value) in enumerate(chunks):
            if encoded:
                if position == 0 and value.count("'") >= 2:
                    charset, _language, value = value.split("'", 2)
                payload += unquote_to_bytes(value)
            else:
                payload += value.encode("utf-8")
        try:
            plain[name] = bytes(payload).decode(charset or "utf-8", errors="replace")
        except LookupError:
            LOGGER.warning("charset_unknown", charset=charset, item="parameter")
            plain[name] = bytes(payload).decode("utf-8", errors="replace")
    return plain


def split_parameters(value: str) -> Tuple[List[str], Dict[str, str]]:
    """Split a header value into bare tokens and ``key=value`` parameters.

    >>> split_parameters('attachment; filename="a;b.pdf"; size=12')
    (['attachment'], {'filename': 'a;b.pdf', 'size': '12'})
    """

    values: List[str] = []
    raw_params: List[Tuple[str, str]] = []
    for match in _PARAM.finditer(value.strip()):
        key, quoted, bare, token = match.groups()
        if key is not None:
            if quoted is not None:
                param = _QUOTED_PAIR.sub(r"\1", quoted)
            else:
                param = (bare or "").strip()
            raw_params.append((key.lower(), param))
        elif token is not None and token.strip():
            values.append(token.strip())
    return values, collapse_parameters(raw_params)


def _parse_line(line: str) -> Tuple[str, str]:
    match = _LINE.match(line)
    if match is None:
        raise MalformedHeader(line)
    return match.group(1).lower(), match.group(2).strip()


def parse_headers(raw: Union[str, bytes, None]) -> Dict[str, HeaderField]:
    """Parse a raw header block into ``{name: HeaderField}``.

    What:
      Returns one :class:`HeaderField` per distinct header name found in the
      first header block of ``raw``.

    Why:
      Feeds :func:`mailview.mime.structure.from_raw`, which only trusts what
      it can read directly from the header text.

    How:
      Cut at the first blank line, unfold, parse line by line, and skip (with
      a ``malformed_header`` warning) any line that is not ``name: value``.

    Args:
      raw: Header text; bytes are decoded as UTF-8 with replacement.

    Returns:
      Mapping of lower-cased header names to parsed fields (possibly empty).
    """

    if not raw:
        return {}
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    block = _BLOCK_END.split(text.lstrip("\r\n"), maxsplit=1)[0]
    parsed: Dict[str, HeaderField] = {}
    for line in _LINE_BREAK.split(_FOLD.sub("", block)):
        if not line.strip():
            continue
        try:
            name, value = _parse_line(line)
        except MalformedHeader as exc:
            LOGGER.warning("malformed_header", length=len(exc.line))
            continue
        values, params = split_parameters(value)
        header = parsed.setdefault(name, HeaderField())
        header.values.extend(values)
        header.params.update(params)
    return parsed
