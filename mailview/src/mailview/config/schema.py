"""Pydantic models describing the mailview runtime configuration."""
from __future__ import annotations

import codecs
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _known_charset(value: str) -> str:
    try:
        codecs.lookup(value)
    except LookupError as exc:
        raise ValueError(f"unknown charset '{value}'") from exc
    return value.lower()


class ImapSettings(BaseModel):
    """Connection defaults for the IMAP session adapter."""

    model_config = ConfigDict(extra="forbid")

    host: Optional[str] = None
    port: int = Field(default=993, gt=0, le=65535)
    ssl: bool = True
    username: Optional[str] = None
    password: Optional[str] = None
    folder: str = "INBOX"
    mark_as_seen: bool = True


class MailSettings(BaseModel):
    """Charset handling for decoded message text."""

    model_config = ConfigDict(extra="forbid")

    target_charset: str = "utf-8"
    header_charset: str = "utf-8"

    @field_validator("target_charset", "header_charset")
    @classmethod
    def _validate_charset(cls, value: str) -> str:
        return _known_charset(value)


class RuntimeConfig(BaseModel):
    """Root configuration loaded from ``config.yaml``."""

    model_config = ConfigDict(extra="forbid")

    version: int = 1
    imap: ImapSettings = Field(default_factory=ImapSettings)
    mail: MailSettings = Field(default_factory=MailSettings)
