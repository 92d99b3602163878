from __future__ import annotations

import json
import logging
import subprocess
from types import SimpleNamespace

import pytest

import lnsim.version as version_module
from lnsim import system
from lnsim.config import Settings, settings
from lnsim.logging_config import JSONFormatter, TextFormatter, setup_logging


def _record(msg: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("lnsim.test", logging.INFO, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogging:

    def test_json_formatter_fields(self):
        payload = json.loads(JSONFormatter().format(_record(network_id=3)))
        assert payload["service"] == "lnsim"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "lnsim.test"
        assert payload["message"] == "hello"
        assert payload["extra"] == {"network_id": 3}

    def test_json_formatter_without_extra(self):
        payload = json.loads(JSONFormatter(service="other").format(_record()))
        assert payload["service"] == "other"
        assert "extra" not in payload

    def test_text_formatter(self):
        line = TextFormatter().format(_record("started"))
        assert " - lnsim.test - INFO - started" in line

    @pytest.mark.parametrize("fmt,formatter", [("json", JSONFormatter), ("text", TextFormatter)])
    def test_setup_logging_replaces_handlers(self, monkeypatch, fmt, formatter):
        monkeypatch.setattr(settings, "log_format", fmt)
        monkeypatch.setattr(settings, "log_level", "debug")
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        try:
            setup_logging()
            setup_logging()
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, formatter)
            assert root.level == logging.DEBUG
            assert logging.getLogger("docker").level == logging.WARNING
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)


class TestConfig:

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("LNSIM_PORT", "9999")
        monkeypatch.setenv("LNSIM_REQUIRE_IMAGES", "false")
        config = Settings()
        assert config.port == 9999
        assert config.require_images is False

    def test_defaults(self):
        config = Settings()
        assert config.default_bitcoin_nodes == 1
        assert config.default_lightning_nodes == 2


class TestVersion:

    def test_version_file_wins(self, monkeypatch):
        monkeypatch.setattr(version_module, "_read_file", lambda name: "1.2.3" if name == "VERSION" else None)
        assert version_module.get_version() == "1.2.3"

    def test_git_tag_fallback_strips_v(self, monkeypatch):
        monkeypatch.setattr(version_module, "_read_file", lambda name: None)
        monkeypatch.setattr(version_module, "_git", lambda *args: "v0.4.0")
        assert version_module.get_version() == "0.4.0"

    def test_unknown_version(self, monkeypatch):
        monkeypatch.setattr(version_module, "_read_file", lambda name: None)
        monkeypatch.setattr(version_module, "_git", lambda *args: None)
        assert version_module.get_version() == "0.0.0"

    def test_commit_from_env(self, monkeypatch):
        monkeypatch.setenv("LNSIM_GIT_SHA", "abc123")
        assert version_module.get_commit() == "abc123"

    def test_commit_unknown(self, monkeypatch):
        monkeypatch.delenv("LNSIM_GIT_SHA", raising=False)
        monkeypatch.setattr(version_module, "_read_file", lambda name: None)
        monkeypatch.setattr(version_module, "_git", lambda *args: None)
        assert version_module.get_commit() == "unknown"

    def test_git_failure_returns_none(self, monkeypatch):
        monkeypatch.setattr(
            subprocess, "run", lambda *a, **kw: SimpleNamespace(returncode=128, stdout="")
        )
        assert version_module._git("describe") is None

    def test_git_missing_binary(self, monkeypatch):
        def _raise(*a, **kw):
            raise FileNotFoundError("git")

        monkeypatch.setattr(subprocess, "run", _raise)
        assert version_module._git("rev-parse", "HEAD") is None


class TestSystem:

    @pytest.mark.parametrize("raw,expected", [
        ("darwin", "mac"),
        ("win32", "windows"),
        ("cygwin", "windows"),
        ("linux", "linux"),
        ("linux2", "linux"),
        ("freebsd13", "unknown"),
    ])
    def test_normalize_platform(self, raw, expected):
        assert system.normalize_platform(raw) == expected

    def test_predicates_follow_platform(self, monkeypatch):
        monkeypatch.setattr(system, "platform", "mac")
        assert system.is_mac()
        assert not system.is_windows()
        assert not system.is_linux()
