"""Locate, parse and cache the mailview runtime configuration.

What:
  Resolve ``config.yaml`` from an explicit path, the ``MAILVIEW_CONFIG_PATH``
  environment variable or well-known locations, validate it against
  :class:`~mailview.config.schema.RuntimeConfig`, and cache the result.

Why:
  The IMAP adapter and the message facade both need the target charset and
  connection defaults. Loading once and validating strictly keeps a typo in
  the config file from surfacing later as a garbled message body.

How:
  Walk the candidate paths in precedence order, parse the first existing file
  with PyYAML's ``safe_load``, validate with Pydantic, and memoise the
  ``(path, config)`` pair until :func:`reset_runtime_config` is called.

Interfaces:
  :func:`load_runtime_config`, :func:`get_runtime_config`,
  :func:`reset_runtime_config`, :class:`ConfigLoadError`,
  :class:`RuntimeConfigError`.

Invariants:
  - A returned config has always passed schema validation.
  - An explicit path that differs from the cached one forces a reload.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Iterable, Optional, Tuple

import yaml
from pydantic import ValidationError as _PydanticValidationError

from .schema import RuntimeConfig


class ConfigLoadError(Exception):
    """Base error for configuration parsing or validation failures."""


class RuntimeConfigError(ConfigLoadError):
    """Error raised when ``config.yaml`` cannot be located, read or validated.

    What:
      Signals runtime configuration problems specifically, as opposed to
      mailbox or decoding failures.

    Why:
      The CLI maps this error to a dedicated message and exit code so
      operators fix the file instead of chasing IMAP errors.
    """


_CONFIG_ENV = "MAILVIEW_CONFIG_PATH"
_DEFAULT_LOCATIONS: Tuple[Path, ...] = (
    Path("config.yaml"),
    Path("~/.config/mailview/config.yaml"),
    Path("/etc/mailview/config.yaml"),
)
_RUNTIME_CACHE: Optional[Tuple[Path, RuntimeConfig]] = None


def _candidate_paths(path: Optional[Path]) -> Iterable[Path]:
    """Yield configuration file locations in priority order.

    Explicit argument first, then ``MAILVIEW_CONFIG_PATH``, then the default
    locations; duplicates are skipped while keeping the precedence.
    """

    seen: set[Path] = set()
    ordered = []
    if path is not None:
        ordered.append(path)
    env_path = os.environ.get(_CONFIG_ENV)
    if env_path:
        ordered.append(Path(env_path))
    ordered.extend(_DEFAULT_LOCATIONS)
    for candidate in ordered:
        candidate = candidate.expanduser()
        if candidate not in seen:
            seen.add(candidate)
            yield candidate


def _parse_config_payload(text: str, source: Path) -> dict[str, Any]:
    """Parse ``config.yaml`` text into a mapping ready for validation.

    Raises:
      RuntimeConfigError: If the YAML is invalid or its top level is not a
      mapping.
    """

    try:
        payload = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise RuntimeConfigError(f"Invalid YAML in {source}: {exc}") from exc
    if not isinstance(payload, dict):
        raise RuntimeConfigError(f"{source} must contain a mapping at the top-level")
    return payload


def _load_runtime_from_path(path: Path) -> RuntimeConfig:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise RuntimeConfigError(f"Configuration file missing: {path}") from exc
    except OSError as exc:  # pragma: no cover - filesystem surface
        raise RuntimeConfigError(f"Unable to read configuration file {path}: {exc}") from exc
    payload = _parse_config_payload(text, path)
    try:
        return RuntimeConfig.model_validate(payload)
    except _PydanticValidationError as exc:
        raise RuntimeConfigError(f"Invalid config.yaml: {exc}") from exc


def load_runtime_config(
    path: Optional[Path | str] = None,
    *,
    reload: bool = False,
) -> RuntimeConfig:
    """Resolve, parse, and cache the runtime configuration.

    What:
      Returns the validated :class:`RuntimeConfig` for the first existing
      candidate path.

    Why:
      The session adapter and CLI call this repeatedly; the cache avoids disk
      IO while ``reload`` gives tests and long-running callers a way to pick
      up edits.

    How:
      Serve the cached config unless ``reload`` is set or ``path`` names a
      different file, otherwise iterate candidate paths and cache the first
      successful load.

    Args:
      path: Optional explicit location of ``config.yaml``.
      reload: When ``True`` forces a fresh load bypassing the cache.

    Returns:
      The validated runtime configuration.

    Raises:
      RuntimeConfigError: If no candidate exists or the file fails validation.
    """

    global _RUNTIME_CACHE

    requested_path = Path(path).expanduser() if isinstance(path, (str, Path)) else None
    if not reload and _RUNTIME_CACHE is not None:
        cached_path, cached_config = _RUNTIME_CACHE
        if requested_path is None or cached_path == requested_path:
            return cached_config

    searched: list[str] = []
    for candidate in _candidate_paths(requested_path):
        if not candidate.exists():
            searched.append(str(candidate))
            continue
        config = _load_runtime_from_path(candidate)
        _RUNTIME_CACHE = (candidate, config)
        return config

    raise RuntimeConfigError(
        f"Unable to locate config.yaml (searched: {', '.join(searched) or '<none>'})"
    )


def get_runtime_config() -> RuntimeConfig:
    """Return the cached runtime configuration, loading it on demand."""

    return load_runtime_config()


def reset_runtime_config() -> None:
    """Clear the runtime configuration cache."""

    global _RUNTIME_CACHE
    _RUNTIME_CACHE = None
