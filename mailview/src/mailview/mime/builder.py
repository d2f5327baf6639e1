"""Build a message's MIME tree from session data, repairing it when needed.

What:
  :func:`build_structure` returns the root :class:`StructureNode` of a
  message. It prefers the session's own BODYSTRUCTURE and falls back to
  rebuilding the tree from the raw header and body text.

Why:
  Some servers collapse a structurally valid multipart (vendor encoding
  quirks, odd boundaries) into a multipart with a single child. Rebuilding
  from raw text is the only recovery path the system has.

How:
  Convert the hint with :func:`from_bodystructure`. If the root is a
  multipart with fewer than two children, fetch the raw header and body,
  rebuild with :func:`from_raw`, and keep whichever tree :func:`reconcile`
  picks. Without any hint, rebuild from raw text directly.

Interfaces:
  :func:`build_structure`, :func:`needs_reconstruction`, :func:`reconcile`,
  :func:`reconstruct`.

Invariants & Safety:
  - The reliability check is a heuristic with unmeasured false
    positive/negative rates; the trigger (multipart root, fewer than two
    children) and the preference rule (different child count -> rebuilt tree)
    are kept exactly and isolated here so they can be swapped out.
  - Only the root is ever re-derived.
"""
from __future__ import annotations

from typing import Any, Optional

from ..errors import SessionUnavailable, StructureUnavailable
from ..utils.logging import get_logger
from .structure import StructureNode, from_bodystructure, from_raw


LOGGER = get_logger("mailview.mime.builder")


def needs_reconstruction(root: StructureNode) -> bool:
    """Return ``True`` when a session-built root should be cross-checked."""

    return root.is_multipart and len(root.children) < 2


def reconcile(hinted: StructureNode, rebuilt: Optional[StructureNode]) -> StructureNode:
    """Pick between the session-built tree and the raw-text rebuild.

    The rebuild wins only when it exists and disagrees on the number of
    top-level parts. The rebuild can be wrong too (a boundary string inside
    an encoded payload); nothing here tries to arbitrate beyond the count.
    """

    if rebuilt is not None and len(rebuilt.children) != len(hinted.children):
        return rebuilt
    return hinted


def reconstruct(session: Any, uid: int) -> Optional[StructureNode]:
    """Rebuild the root from the raw header and body, ``None`` if unobtainable."""

    try:
        header = session.fetch_header(uid)
        if not header:
            return None
        body = session.fetch_body(uid, "")
    except SessionUnavailable as exc:
        LOGGER.warning("raw_fetch_failed", uid=uid, item=exc.item)
        return None
    return from_raw(header, body)


def build_structure(session: Any, uid: int, hint: Any = None) -> StructureNode:
    """Return the root :class:`StructureNode` for message ``uid``.

    What:
      Builds the MIME tree from ``hint`` (or the session's BODYSTRUCTURE when
      no hint is given), repairing a suspicious multipart root from raw text.

    Why:
      Callers need one entry point that hides where the structure came from.

    How:
      See the module docstring. A ``structure_mistrust`` warning is logged
      whenever the rebuilt tree replaces the session's.

    Args:
      session: A :class:`~mailview.imap.session.MailboxSession`.
      uid: Message UID.
      hint: Native structure already fetched by the caller, if any.

    Returns:
      Root node of the message.

    Raises:
      StructureUnavailable: Neither a native structure nor raw header/body
        text could be obtained.
    """

    if hint is None:
        try:
            hint = session.fetch_structure(uid)
        except SessionUnavailable as exc:
            LOGGER.warning("raw_fetch_failed", uid=uid, item=exc.item)
            hint = None

    if hint is None:
        rebuilt = reconstruct(session, uid)
        if rebuilt is None:
            LOGGER.warning("structure_unavailable", uid=uid)
            raise StructureUnavailable(f"No structure available for message {uid}", uid=uid)
        return rebuilt

    root = from_bodystructure(hint)
    if not needs_reconstruction(root):
        return root
    chosen = reconcile(root, reconstruct(session, uid))
    if chosen is not root:
        LOGGER.warning(
            "structure_mistrust",
            uid=uid,
            hinted_parts=len(root.children),
            rebuilt_parts=len(chosen.children),
        )
    return chosen
