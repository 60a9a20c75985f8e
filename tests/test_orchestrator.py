"""End-to-end runs with the VoIP.ms client replaced by a fake."""

import io
import json
import os
import stat
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from smsfetch import orchestrator
from smsfetch.errors import RemoteServiceError, TransportError
from smsfetch.models import Message

DID = "5145550000"


def _records():
    return [
        {"id": "4", "date": "2024-01-01 10:00:00", "type": "1", "did": DID, "contact": "4385551234", "message": "a"},
        {"id": "6", "date": "2024-01-01 11:00:00", "type": "0", "did": DID, "contact": "4385551234", "message": "b"},
        {"id": "5", "date": "2024-01-01 12:00:00", "type": "1", "did": DID, "contact": "4385551234", "message": "c"},
    ]


@pytest.fixture
def fake_client(monkeypatch):
    state = {"instances": [], "records": _records(), "error": None}

    class FakeClient:
        def __init__(self, username, password):
            self.username = username
            self.password = password
            self.calls = 0
            state["instances"].append(self)

        def get_sms(self, did):
            self.calls += 1
            if state["error"]:
                raise state["error"]
            return [Message.model_validate(r) for r in state["records"]]

    monkeypatch.setattr(orchestrator, "VoIPmsClient", FakeClient)
    return state


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    config = tmp_path / "voipms.json"
    config.write_text(
        json.dumps({"username": "user@example.com", "password": "secret", "did": DID, "lockfile": "latest"}),
        encoding="utf-8",
    )
    return tmp_path


def _recorder(workdir, name):
    log = workdir / f"{name}.log"
    script = workdir / f"{name}.sh"
    script.write_text(f'#!/bin/sh\nprintf "%s\\n" "$1" >> "{log}"\n', encoding="utf-8")
    os.chmod(script, stat.S_IRWXU)
    return script, log


def test_print_run_outputs_array_and_stores_watermark(workdir, fake_client):
    out = io.StringIO()
    code = orchestrator.run_once(["--config=voipms.json", "--print"], out=out)

    assert code == 0
    printed = json.loads(out.getvalue())
    assert [m["id"] for m in printed] == ["4", "6", "5"]
    assert (workdir / "latest").read_text(encoding="utf-8") == "6"
    assert fake_client["instances"][0].username == "user@example.com"


def test_new_only_run_uses_lockfile_and_handlers(workdir, fake_client):
    (workdir / "latest").write_text("4\n", encoding="utf-8")
    inbound, inbound_log = _recorder(workdir, "inbound")
    outbound, outbound_log = _recorder(workdir, "outbound")

    code = orchestrator.run_once(
        ["--config=voipms.json", "--new_only", f"--inbound={inbound}", "--outbound=./outbound.sh"]
    )

    assert code == 0
    inbound_ids = [json.loads(line)["id"] for line in inbound_log.read_text(encoding="utf-8").splitlines()]
    outbound_ids = [json.loads(line)["id"] for line in outbound_log.read_text(encoding="utf-8").splitlines()]
    assert inbound_ids == ["5"]
    assert outbound_ids == ["6"]
    assert (workdir / "latest").read_text(encoding="utf-8") == "6"


def test_configuration_error_stops_before_network(workdir, fake_client, caplog):
    caplog.set_level("ERROR")
    code = orchestrator.run_once(["--config=voipms.json", "--did=123"])
    assert code == orchestrator.EXIT_CONFIG
    assert fake_client["instances"] == []
    assert any('Invalid did: "123"' in r.message for r in caplog.records)


def test_duplicate_argument_is_configuration_error(workdir, fake_client):
    assert orchestrator.run_once(["--did=5145550000", "--did=5145550000"]) == orchestrator.EXIT_CONFIG
    assert fake_client["instances"] == []


def test_filesystem_error_exit_code(workdir, fake_client):
    code = orchestrator.run_once(["--config=voipms.json", "--print", "--lockfile=missing/dir/latest"])
    assert code == orchestrator.EXIT_FILESYSTEM
    assert fake_client["instances"] == []


def test_remote_failure_is_graceful(workdir, fake_client):
    fake_client["error"] = RemoteServiceError("invalid_did", "This is not a valid DID")
    out = io.StringIO()
    code = orchestrator.run_once(["--config=voipms.json", "--print"], out=out)
    assert code == 0
    assert out.getvalue() == ""
    assert not (workdir / "latest").exists()


def test_transport_failure_exit_code(workdir, fake_client):
    fake_client["error"] = TransportError("VoIP.ms request failed: timeout")
    assert orchestrator.run_once(["--config=voipms.json", "--print"]) == orchestrator.EXIT_TRANSPORT
    assert not (workdir / "latest").exists()


def test_help_exits_with_status_one(workdir, fake_client):
    with pytest.raises(SystemExit) as exc_info:
        orchestrator.run_once(["--help"])
    assert exc_info.value.code == 1
    assert fake_client["instances"] == []


def test_undecodable_lockfile_is_configuration_error(workdir, fake_client, caplog):
    caplog.set_level("ERROR")
    (workdir / "latest").write_bytes(b"\xff\xfe12")
    code = orchestrator.run_once(["--config=voipms.json", "--print"], out=io.StringIO())
    assert code == orchestrator.EXIT_CONFIG
    assert fake_client["instances"] == []
    assert any("not text" in r.message for r in caplog.records)
