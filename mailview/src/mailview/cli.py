"""mailview command-line interface.

What:
  Typer entry point for reading one message from the configured IMAP folder:
  ``show`` prints headers and the rendered body, ``attachments`` lists (and
  optionally saves) attachment parts, ``structure`` prints the MIME tree.

Why:
  Gives operators a quick way to inspect how a message is decoded, including
  messages whose server-side structure had to be rebuilt from raw text.

How:
  Load the runtime configuration (``--config`` or the usual lookup chain),
  open an :class:`~mailview.imap.session.ImapSession`, build a
  :class:`~mailview.message.Message` for the UID and print through
  ``typer.echo``.

Interfaces:
  ``app`` (Typer application), ``show``, ``attachments``, ``structure``.

Invariants & Safety:
  - Exit codes follow shell expectations (``0`` success, ``1`` failure).
  - Saved attachments never escape the target directory; only the final path
    component of a filename is used.
"""
from __future__ import annotations

from pathlib import Path
from typing import Iterator, Optional

import typer
from imapclient.exceptions import IMAPClientError

from .config.loader import ConfigLoadError, RuntimeConfigError, load_runtime_config
from .errors import MailViewError
from .imap.session import ImapConfig, ImapSession
from .message import Message
from .mime.structure import StructureNode
from .utils.logging import get_logger


app = typer.Typer(help="Read and decode messages from an IMAP mailbox")

LOGGER = get_logger("mailview.cli")

_CONFIG_OPTION = typer.Option(None, "--config", help="Path to config.yaml")


def _load_config(config_path: Optional[Path]) -> None:
    try:
        load_runtime_config(config_path, reload=config_path is not None)
    except (ConfigLoadError, RuntimeConfigError) as exc:
        typer.echo(f"Configuration error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _fail(exc: Exception, uid: int) -> typer.Exit:
    LOGGER.error("command_failed", uid=uid, error=type(exc).__name__)
    typer.echo(f"Cannot read message {uid}: {exc}", err=True)
    return typer.Exit(code=1)


def _tree_lines(node: StructureNode, depth: int = 0) -> Iterator[str]:
    label = node.part_path or "(root)"
    details = [node.mime_type, node.transfer_encoding.value]
    if node.disposition:
        details.append(node.disposition)
    if node.byte_length is not None:
        details.append(f"{node.byte_length} bytes")
    yield f"{'  ' * depth}{label} {' '.join(details)}"
    for child in node.children:
        yield from _tree_lines(child, depth + 1)


@app.command("show")
def show(
    uid: int = typer.Argument(..., help="Message UID in the configured folder"),
    body_type: str = typer.Option("html", "--type", help="Body subtype to render"),
    config_path: Optional[Path] = _CONFIG_OPTION,
) -> None:
    """Print the decoded headers and the body rendered for ``--type``."""

    _load_config(config_path)
    try:
        with ImapSession(ImapConfig()) as session:
            message = session.message(uid)
            typer.echo(f"From: {message.sender}")
            typer.echo(f"To: {message.to}")
            typer.echo(f"Date: {message.date or ''}")
            typer.echo(f"Subject: {message.subject}")
            typer.echo("")
            body = message.body(body_type)
            typer.echo(body if body is not None else "(no text body)")
    except (MailViewError, IMAPClientError, OSError, RuntimeError) as exc:
        raise _fail(exc, uid) from exc


@app.command("attachments")
def attachments(
    uid: int = typer.Argument(..., help="Message UID in the configured folder"),
    save: Optional[Path] = typer.Option(None, "--save", help="Directory to write attachments to"),
    config_path: Optional[Path] = _CONFIG_OPTION,
) -> None:
    """List attachment parts, writing them to ``--save`` when given."""

    _load_config(config_path)
    try:
        with ImapSession(ImapConfig()) as session:
            message = session.message(uid)
            found = message.attachments()
            if not found:
                typer.echo("No attachments")
                return
            if save is not None:
                save.mkdir(parents=True, exist_ok=True)
            for attachment in found:
                typer.echo(
                    f"{attachment.part_path}\t{attachment.mime_type}\t"
                    f"{attachment.size or 0}\t{attachment.filename}"
                )
                if save is not None:
                    target = save / (Path(attachment.filename).name or attachment.part_path)
                    target.write_bytes(attachment.raw_bytes)
                    LOGGER.info("attachment_saved", uid=uid, part_path=attachment.part_path)
    except (MailViewError, IMAPClientError, OSError, RuntimeError) as exc:
        raise _fail(exc, uid) from exc


@app.command("structure")
def structure(
    uid: int = typer.Argument(..., help="Message UID in the configured folder"),
    config_path: Optional[Path] = _CONFIG_OPTION,
) -> None:
    """Print the MIME part tree of a message."""

    _load_config(config_path)
    try:
        with ImapSession(ImapConfig()) as session:
            root = Message(session, uid).structure
    except (MailViewError, IMAPClientError, OSError, RuntimeError) as exc:
        raise _fail(exc, uid) from exc
    if root is None:
        typer.echo("No structure available", err=True)
        raise typer.Exit(code=1)
    for line in _tree_lines(root):
        typer.echo(line)


def main() -> None:  # pragma: no cover - console entry point
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
