"""mailview configuration package.

What:
  Expose the runtime configuration loader and its Pydantic schema.

Interfaces:
  - get_runtime_config / load_runtime_config / reset_runtime_config: resolve
    ``config.yaml`` and cache the validated model.
  - RuntimeConfig / ImapSettings / MailSettings: schema classes.
  - ConfigLoadError / RuntimeConfigError: loader failures.
"""

from .loader import (
    ConfigLoadError,
    RuntimeConfigError,
    get_runtime_config,
    load_runtime_config,
    reset_runtime_config,
)
from .schema import ImapSettings, MailSettings, RuntimeConfig

__all__ = [
    "get_runtime_config",
    "load_runtime_config",
    "reset_runtime_config",
    "ConfigLoadError",
    "RuntimeConfigError",
    "ImapSettings",
    "MailSettings",
    "RuntimeConfig",
]
