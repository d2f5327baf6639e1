"""Structured JSON logging for the mailview message pipeline.

What:
  Emit one JSON object per line for every noteworthy event in the MIME core
  (structure mistrust, skipped header lines, decode fallbacks) and the IMAP
  session adapter.

Why:
  Structure repairs and decode fallbacks never raise to the caller, which
  still gets a message. The log line is the only trace that a repair happened,
  so it must be greppable and must never leak message content (subjects,
  bodies, addresses) into shared log storage.

How:
  :class:`JsonLogger` serialises ``ts``/``lvl``/``msg``/``component`` plus
  keyword context with :mod:`json`. Context keys that can carry message
  content are replaced with ``[redacted]`` recursively. Output goes to
  ``stderr`` by default so CLI stdout stays reserved for rendered messages.

Interfaces:
  :class:`JsonLogger`, :func:`get_logger`.
"""
from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional


REDACTED = "[redacted]"
SENSITIVE_KEYS = frozenset({"subject", "body", "from", "to", "sender", "filename"})


@dataclass
class JsonLogger:
    """Single-line JSON logger with content redaction.

    What:
      Writes log entries carrying a timestamp, severity, message and
      component tag, followed by caller supplied context fields.

    Why:
      Every mailview module logs through the same schema so tests and
      operators can parse entries without per-module heuristics.

    How:
      Holds the target stream and component label; :meth:`log` builds the
      payload, merges the redacted context and flushes after each line.
    """

    stream: Any = None
    component: str = "mailview"

    def log(self, level: str, message: str, *, extra: Optional[Dict[str, Any]] = None) -> None:
        payload: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "lvl": level.upper(),
            "msg": message,
            "component": self.component,
        }
        if extra:
            payload.update(self._redact(extra))
        stream = self.stream if self.stream is not None else sys.stderr
        json.dump(payload, stream, separators=(",", ":"), default=str)
        stream.write("\n")
        stream.flush()

    def debug(self, message: str, **kwargs: Any) -> None:
        self.log("DEBUG", message, extra=kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self.log("INFO", message, extra=kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self.log("WARN", message, extra=kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self.log("ERROR", message, extra=kwargs)

    @staticmethod
    def _redact(data: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of ``data`` with content-bearing keys masked.

        Nested dictionaries are walked so a ``{"overview": {"subject": ...}}``
        context is masked as well.
        """

        result: Dict[str, Any] = {}
        for key, value in data.items():
            if key in SENSITIVE_KEYS:
                result[key] = REDACTED
            elif isinstance(value, dict):
                result[key] = JsonLogger._redact(value)
            else:
                result[key] = value
        return result


def get_logger(component: str) -> JsonLogger:
    """Return a :class:`JsonLogger` tagged with ``component``.

    Without an explicit stream each entry goes to the current ``sys.stderr``,
    so module-level loggers follow stream redirection.
    """

    return JsonLogger(component=component)
