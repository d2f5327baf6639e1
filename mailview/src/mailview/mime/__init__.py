"""MIME structure model, builders, decoders and body assembly.

What:
  The connection-free core of mailview: everything that turns fetched
  structure/header/body data into a tree of parts and a rendered body.

Interfaces:
  - StructureNode / PartKind / TransferEncoding: the part tree model.
  - from_bodystructure / from_raw: pure tree builders.
  - build_structure: session-driven builder with the raw-text fallback.
  - assemble / AssembledBody: body and attachment sorting.
  - decode_content / decode_header / to_text: decoders.
  - parse_headers / HeaderField: raw header parser.
"""

from .assembler import AssembledBody, assemble
from .builder import build_structure
from .decoding import decode_content, decode_header, to_text
from .headers import HeaderField, parse_headers
from .structure import (
    PartKind,
    StructureNode,
    TransferEncoding,
    from_bodystructure,
    from_raw,
)

__all__ = [
    "AssembledBody",
    "HeaderField",
    "PartKind",
    "StructureNode",
    "TransferEncoding",
    "assemble",
    "build_structure",
    "decode_content",
    "decode_header",
    "from_bodystructure",
    "from_raw",
    "parse_headers",
    "to_text",
]
