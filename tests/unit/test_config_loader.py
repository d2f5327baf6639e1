"""
Module: tests/unit/test_config_loader.py

What:
    Validate the runtime configuration loader: YAML parsing, schema defaults,
    validation failures and cache handling.

Why:
    The IMAP session and message decoding read their defaults from this
    config; a silently accepted typo would surface later as a wrong folder or
    a garbled body.

How:
    Write payloads to temporary files, point the loader at them through the
    environment or an explicit path, and assert on the resulting
    :class:`RuntimeConfig` or the raised error.
"""

import pytest

from mailview.config.loader import (
    ConfigLoadError,
    RuntimeConfigError,
    get_runtime_config,
    load_runtime_config,
    reset_runtime_config,
)


def test_fixture_config_is_loaded():
    runtime = get_runtime_config()
    assert runtime.imap.host == "imap.example.test"
    assert runtime.imap.mark_as_seen is False
    assert runtime.mail.target_charset == "utf-8"


def test_load_runtime_config_from_yaml(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
version: 1
imap:
  host: mail.example.org
  username: alice
  folder: Archive
mail:
  target_charset: iso-8859-1
"""
    )
    monkeypatch.setenv("MAILVIEW_CONFIG_PATH", str(config_path))
    reset_runtime_config()
    runtime = get_runtime_config()
    assert runtime.imap.host == "mail.example.org"
    assert runtime.imap.folder == "Archive"
    assert runtime.imap.port == 993
    assert runtime.imap.mark_as_seen is True
    assert runtime.mail.target_charset == "iso-8859-1"
    assert runtime.mail.header_charset == "utf-8"


def test_explicit_path_overrides_cache(tmp_path):
    first = get_runtime_config()
    config_path = tmp_path / "other.yaml"
    config_path.write_text("imap:\n  host: other.example.org\n")
    runtime = load_runtime_config(config_path)
    assert runtime.imap.host == "other.example.org"
    assert runtime is not first
    assert get_runtime_config() is runtime


def test_unknown_charset_is_rejected(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("mail:\n  target_charset: not-a-charset\n")
    with pytest.raises(RuntimeConfigError):
        load_runtime_config(config_path)


def test_unknown_keys_are_rejected(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("imap:\n  hostname: typo.example.org\n")
    with pytest.raises(ConfigLoadError):
        load_runtime_config(config_path)


def test_invalid_yaml_raises(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("imap: [unclosed\n")
    with pytest.raises(RuntimeConfigError):
        load_runtime_config(config_path)


def test_missing_config_raises(tmp_path, monkeypatch):
    monkeypatch.setenv("MAILVIEW_CONFIG_PATH", str(tmp_path / "nope.yaml"))
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    reset_runtime_config()
    with pytest.raises(RuntimeConfigError):
        load_runtime_config()
