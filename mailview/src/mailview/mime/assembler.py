"""Turn a MIME tree into a rendered body plus attachment and content lists.

What:
  :func:`assemble` walks a :class:`StructureNode` tree once and sorts its
  leaves into text groups keyed by subtype (``plain``, ``html``...), opaque
  content parts (inline images and the like) and attachments.
  :meth:`AssembledBody.render` produces the body for a requested subtype.

Why:
  A viewer asks for "the html body" or "the plain body" and expects one
  string even when the sender split the text over several parts, and expects
  a sensible fallback when the requested flavour does not exist.

How:
  Depth-first walk in source order. Rendering joins the requested group with
  no separator; when the group is missing it joins every text part with a
  line break and, for ``html`` requests, turns line breaks into ``<br/>``.
  Part text comes from a callback so the walk itself never touches the
  session.

Interfaces:
  :class:`AssembledBody`, :func:`assemble`.

Invariants & Safety:
  - A leaf with ``disposition == "attachment"`` only ever lands in
    ``attachment_parts``; a TEXT leaf without it only ever lands in a group.
  - ``render`` returns ``None`` (not ``""``) when there are no text parts.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .structure import PartKind, StructureNode


LINE_BREAK = "\r\n"
HTML_LINE_BREAK = "<br/>"


@dataclass
class AssembledBody:
    """Result of sorting a tree's leaves."""

    groups: Dict[str, List[StructureNode]] = field(default_factory=dict)
    content_parts: List[StructureNode] = field(default_factory=list)
    attachment_parts: List[StructureNode] = field(default_factory=list)

    def render(self, requested: str, text_of: Callable[[StructureNode], str]) -> Optional[str]:
        """Render the body for ``requested`` using ``text_of`` for part text.

        Args:
          requested: Subtype to render, compared case-insensitively.
          text_of: Returns the decoded text of a TEXT leaf.

        Returns:
          The rendered body, or ``None`` when the tree has no text parts.
        """

        if not self.groups:
            return None
        key = requested.lower()
        if key in self.groups:
            return "".join(text_of(node) for node in self.groups[key])
        result = LINE_BREAK.join(
            text_of(node) for nodes in self.groups.values() for node in nodes
        )
        if key == "html":
            # kept for callers that display the fallback text as html
            result = result.replace("\r\n", HTML_LINE_BREAK).replace("\n", HTML_LINE_BREAK)
        return result


def _collect(node: StructureNode, assembled: AssembledBody) -> None:
    if node.is_multipart:
        for child in node.children:
            _collect(child, assembled)
    elif node.is_attachment:
        assembled.attachment_parts.append(node)
    elif node.kind is PartKind.TEXT:
        assembled.groups.setdefault(node.subtype or "plain", []).append(node)
    else:
        assembled.content_parts.append(node)


def assemble(root: StructureNode) -> AssembledBody:
    """Sort the leaves of ``root`` into text groups, content and attachments."""

    assembled = AssembledBody()
    _collect(root, assembled)
    return assembled
