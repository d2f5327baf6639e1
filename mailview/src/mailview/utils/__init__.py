"""Shared helpers for mailview.

What:
  Re-export the structured logging facade used across the package.

Interfaces:
  ``JsonLogger``, ``get_logger``.
"""

from .logging import JsonLogger, get_logger

__all__ = ["JsonLogger", "get_logger"]
