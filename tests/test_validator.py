"""Tests for the ordered settings checks."""

import os
import stat
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from smsfetch.errors import ConfigurationError, FilesystemError
from smsfetch.models import Settings
from smsfetch.validator import validate_settings
from smsfetch.watermark import WatermarkStore


def _settings(tmp_path, **overrides):
    values = {
        "config_path": str(tmp_path / "config.json"),
        "username": "user@example.com",
        "password": "secret",
        "did": "5145550000",
        "lockfile_path": str(tmp_path / "latest"),
        "inbound_handler": "echo",
        "outbound_handler": "echo",
    }
    values.update(overrides)
    return Settings(**values)


def _script(tmp_path, name, executable=True):
    path = tmp_path / name
    path.write_text("#!/bin/sh\nexit 0\n", encoding="utf-8")
    mode = stat.S_IRUSR | stat.S_IWUSR
    if executable:
        mode |= stat.S_IXUSR
    os.chmod(path, mode)
    return str(path)


def test_valid_settings_resolve_watermark_from_absent_lockfile(tmp_path):
    settings = _settings(tmp_path)
    validated = validate_settings(settings)
    assert validated.latest_watermark == 0
    assert settings.latest_watermark is None
    assert not (tmp_path / "latest").exists()


def test_watermark_read_from_lockfile(tmp_path):
    (tmp_path / "latest").write_text("42\n", encoding="utf-8")
    assert validate_settings(_settings(tmp_path)).latest_watermark == 42


def test_override_wins_over_lockfile(tmp_path):
    (tmp_path / "latest").write_text("42", encoding="utf-8")
    assert validate_settings(_settings(tmp_path, latest_watermark=7)).latest_watermark == 7


@pytest.mark.parametrize("username", ["not-an-email", "user@", "@example.com", ""])
def test_invalid_username(tmp_path, username):
    with pytest.raises(ConfigurationError) as exc_info:
        validate_settings(_settings(tmp_path, username=username))
    assert exc_info.value.field == "username"
    assert exc_info.value.value == username


@pytest.mark.parametrize("did", ["514555000", "51455500001", "514-555-000", "514555000a"])
def test_invalid_did(tmp_path, did):
    with pytest.raises(ConfigurationError) as exc_info:
        validate_settings(_settings(tmp_path, did=did))
    assert exc_info.value.field == "did"


def test_first_violation_wins(tmp_path):
    with pytest.raises(ConfigurationError) as exc_info:
        validate_settings(_settings(tmp_path, username="bad", did="bad", direction_filter="sideways"))
    assert exc_info.value.field == "username"


def test_handler_path_must_be_executable(tmp_path):
    script = _script(tmp_path, "handler.sh", executable=False)
    with pytest.raises(ConfigurationError) as exc_info:
        validate_settings(_settings(tmp_path, inbound_handler=script))
    assert exc_info.value.field == "inbound_handler"


def test_handler_accepts_executable_path_and_path_lookup(tmp_path):
    script = _script(tmp_path, "handler.sh")
    validated = validate_settings(_settings(tmp_path, inbound_handler=script, outbound_handler="echo"))
    assert validated.inbound_handler == script


def test_unknown_command_is_rejected(tmp_path):
    with pytest.raises(ConfigurationError) as exc_info:
        validate_settings(_settings(tmp_path, outbound_handler="no-such-command-xyz"))
    assert exc_info.value.field == "outbound_handler"


def test_print_mode_skips_handler_check(tmp_path):
    settings = _settings(tmp_path, print_mode=True, inbound_handler="no-such-command-xyz")
    assert validate_settings(settings).print_mode is True


def test_lockfile_directory_must_exist(tmp_path):
    settings = _settings(tmp_path, lockfile_path=str(tmp_path / "missing" / "latest"))
    with pytest.raises(FilesystemError) as exc_info:
        validate_settings(settings)
    assert exc_info.value.field == "lockfile_path"


@pytest.mark.parametrize("content", ["abc", "-3", "", "4 2"])
def test_lockfile_content_must_be_unsigned_integer(tmp_path, content):
    (tmp_path / "latest").write_text(content, encoding="utf-8")
    with pytest.raises(ConfigurationError) as exc_info:
        validate_settings(_settings(tmp_path))
    assert exc_info.value.field == "latest_watermark"


@pytest.mark.parametrize("direction", ["in", "out", None])
def test_direction_accepts_in_out_or_unset(tmp_path, direction):
    assert validate_settings(_settings(tmp_path, direction_filter=direction)).direction_filter == direction


@pytest.mark.parametrize("direction", ["inbound", "IN", "both", ""])
def test_direction_rejects_anything_else(tmp_path, direction):
    with pytest.raises(ConfigurationError) as exc_info:
        validate_settings(_settings(tmp_path, direction_filter=direction))
    assert exc_info.value.field == "direction_filter"


def test_explicit_store_is_used(tmp_path):
    other = tmp_path / "other"
    other.mkdir()
    (other / "latest").write_text("9", encoding="utf-8")
    store = WatermarkStore(str(other / "latest"))
    assert validate_settings(_settings(tmp_path), store).latest_watermark == 9


def test_existing_lockfile_must_be_readable(tmp_path, monkeypatch):
    lockfile = tmp_path / "latest"
    lockfile.write_text("3", encoding="utf-8")
    real_access = os.access

    def fake_access(path, mode):
        if str(path) == str(lockfile) and mode == os.R_OK:
            return False
        return real_access(path, mode)

    monkeypatch.setattr(os, "access", fake_access)
    with pytest.raises(FilesystemError) as exc_info:
        validate_settings(_settings(tmp_path))
    assert exc_info.value.field == "lockfile_path"
