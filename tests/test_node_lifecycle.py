from __future__ import annotations

import json
import logging

import pytest

from sftpflow.exception import (
    ProfileNotFoundError,
    SFTPConnectError,
    SFTPOperationError,
    UnknownOperationError,
    UsageError,
)
from sftpflow.node import OPERATIONS, STATUS_ERROR, SFTPNode, resolve_remote_path
from sftpflow.observability import NodeObserver
from sftpflow.spec import NodeSpec


@pytest.mark.parametrize("operation", sorted(OPERATIONS))
def test_close_called_once_on_success(make_node, fake_sftp, operation: str) -> None:
    res = make_node(operation, "/home/user/x", local_path="/tmp/x").handle({})

    assert res.ok, res.message
    assert len(fake_sftp.created) == 1
    assert fake_sftp.last.close_calls == 1


@pytest.mark.parametrize("operation", sorted(OPERATIONS))
def test_close_called_once_on_operation_error(make_node, fake_sftp, operation: str) -> None:
    fake_sftp.errors[operation] = PermissionError("Permission denied")
    res = make_node(operation, "/root/secret", local_path="/tmp/x").handle({})

    assert res.status == STATUS_ERROR
    assert isinstance(res.error, SFTPOperationError)
    assert res.message == "Permission denied"
    assert res.output is None
    assert fake_sftp.last.close_calls == 1


def test_connect_error_aborts_and_still_closes(make_node, fake_sftp) -> None:
    fake_sftp.errors["connect"] = TimeoutError("Timed out while waiting for handshake")
    res = make_node("list", "/").handle({})

    assert isinstance(res.error, SFTPConnectError)
    assert "handshake" in res.message
    assert fake_sftp.last.operations == []
    assert fake_sftp.last.close_calls == 1


def test_close_error_never_masks_success(make_node, fake_sftp, caplog: pytest.LogCaptureFixture) -> None:
    fake_sftp.close_error = OSError("socket already closed")
    caplog.set_level(logging.WARNING, logger="sftpflow.node")

    res = make_node("delete", "/a.txt").handle({})

    assert res.ok
    assert res.payload == {"success": True, "deleted": "/a.txt"}
    assert any("transport close failed" in r.getMessage() for r in caplog.records)


def test_close_error_never_masks_operation_error(make_node, fake_sftp) -> None:
    fake_sftp.close_error = OSError("socket already closed")
    fake_sftp.errors["delete"] = FileNotFoundError("No such file")

    res = make_node("delete", "/a.txt").handle({})

    assert isinstance(res.error, SFTPOperationError)
    assert res.message == "No such file"


def test_unknown_operation_fails_without_connecting(make_node, fake_sftp) -> None:
    res = make_node("list", "/").handle({"operation": "chmod"})

    assert isinstance(res.error, UnknownOperationError)
    assert res.message == "Unknown operation: chmod"
    assert fake_sftp.created == []


def test_unknown_default_operation_fails_without_connecting(make_node, fake_sftp) -> None:
    res = make_node("symlink", "/").handle({})

    assert "symlink" in res.message
    assert fake_sftp.created == []


def test_missing_profile_fails_without_transport(fake_sftp, settings, profiles) -> None:
    node = SFTPNode(NodeSpec(server="", operation="list"), profiles, settings=settings)
    res = node.handle({"remote_path": "/x"})

    assert isinstance(res.error, ProfileNotFoundError)
    assert res.message == "No SFTP server configured"
    assert fake_sftp.created == []


def test_unknown_profile_id_fails_without_transport(fake_sftp, settings, profiles) -> None:
    node = SFTPNode(NodeSpec(server="missing"), profiles, settings=settings)
    res = node.handle({})

    assert isinstance(res.error, ProfileNotFoundError)
    assert "missing" in res.message
    assert fake_sftp.created == []


def test_profile_registry_is_read_per_request(fake_sftp, settings, profiles) -> None:
    registry: dict = {}
    node = SFTPNode(NodeSpec(server="config1"), registry, settings=settings)
    assert not node.handle({}).ok

    registry.update(profiles)
    assert node.handle({}).ok


def test_put_without_source_is_usage_error(make_node, fake_sftp) -> None:
    res = make_node("put", "/home/user/newfile.txt").handle({"payload": "plain text, not bytes"})

    assert type(res.error) is UsageError
    assert "put operation requires" in res.message
    assert fake_sftp.last.operations == []
    assert fake_sftp.last.close_calls == 1


def test_rename_without_destination_is_usage_error(make_node, fake_sftp) -> None:
    res = make_node("rename", "/home/user/old.txt").handle({})

    assert type(res.error) is UsageError
    assert "rename operation requires" in res.message
    assert fake_sftp.last.close_calls == 1


def test_raise_for_error_reraises(make_node, fake_sftp) -> None:
    res = make_node("rename", "/old").handle({})
    with pytest.raises(UsageError):
        res.raise_for_error()


def test_each_request_opens_its_own_connection(make_node, fake_sftp) -> None:
    node = make_node("list", "/")
    node.handle({})
    node.handle({})

    assert len(fake_sftp.created) == 2
    assert [t.close_calls for t in fake_sftp.created] == [1, 1]


def test_handle_many_keeps_input_order(make_node, fake_sftp) -> None:
    node = make_node("exists", "/")
    msgs = [{"remote_path": f"/dir/{i}"} for i in range(6)] + [{"operation": "bogus"}]

    results = node.handle_many(msgs, workers=3)

    assert [r.metadata.get("remote_path") for r in results[:6]] == [f"/dir/{i}" for i in range(6)]
    assert not results[-1].ok
    assert len(fake_sftp.created) == 6
    assert all(t.close_calls == 1 for t in fake_sftp.created)


class _RecordingObserver(NodeObserver):
    def __init__(self) -> None:
        self.events: list[tuple] = []

    def on_connecting(self, *, node, host, port):
        self.events.append(("connecting", host, port))

    def on_connected(self, *, node, host, port):
        self.events.append(("connected",))

    def on_operation(self, *, node, operation, text):
        self.events.append(("operation", operation, text))

    def on_done(self, *, node, operation, duration_ms):
        self.events.append(("done", operation))

    def on_error(self, *, node, operation, message):
        self.events.append(("error", operation, message))


def test_observer_sees_phases(make_node, fake_sftp) -> None:
    obs = _RecordingObserver()
    make_node("list", "/", observer=obs).handle({})

    assert obs.events == [
        ("connecting", "example.com", 22),
        ("connected",),
        ("operation", "list", "listing..."),
        ("done", "list"),
    ]


def test_observer_sees_error(make_node, fake_sftp) -> None:
    obs = _RecordingObserver()
    fake_sftp.errors["connect"] = ConnectionRefusedError("Connection refused")
    make_node("get", "/x", observer=obs).handle({})

    assert obs.events[0][0] == "connecting"
    assert obs.events[-1] == ("error", "get", "Connection refused")


def test_failing_observer_does_not_break_request(make_node, fake_sftp) -> None:
    class Broken(NodeObserver):
        def on_operation(self, *, node, operation, text):
            raise RuntimeError("ui gone")

    res = make_node("list", "/", observer=Broken()).handle({})
    assert res.ok


def test_request_events_in_json_logs(make_node, fake_sftp, settings, caplog: pytest.LogCaptureFixture) -> None:
    settings.log_format = "json"
    caplog.set_level(logging.INFO, logger="sftpflow.node")

    make_node("list", "/home/user").handle({})

    events = []
    for rec in caplog.records:
        try:
            events.append(json.loads(rec.getMessage()))
        except ValueError:
            continue
    names = [e["event"] for e in events]
    assert names == ["sftp_request_start", "sftp_request_end"]
    assert events[0]["host"] == "example.com"
    assert "testpass" not in caplog.text


def test_failure_event_logged(make_node, fake_sftp, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="sftpflow.node")
    make_node("list", "/").handle({"operation": "nope"})

    assert any(r.getMessage().startswith("sftp_request_failed") for r in caplog.records)


# ---------------------------------------------------------------------------
# Remote path resolution
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "msg, default, expected",
    [
        ({"remote_path": "/override/path", "payload": "/from/payload"}, "/default/path", "/override/path"),
        ({"payload": "/from/payload"}, "/default/path", "/from/payload"),
        ({"payload": "relative/path"}, "/default/path", "/default/path"),
        ({"payload": b"/bytes/are/content"}, "/default/path", "/default/path"),
        ({"remote_path": ""}, "/default/path", "/default/path"),
        ({}, "/default/path", "/default/path"),
        ({}, "", "/"),
    ],
)
def test_resolve_remote_path_precedence(msg, default, expected) -> None:
    assert resolve_remote_path(msg, NodeSpec(remote_path=default)) == expected


def test_observer_loaded_from_module(tmp_path, monkeypatch, fake_sftp, profiles) -> None:
    (tmp_path / "my_sftp_observer.py").write_text(
        "from sftpflow.observability import NodeObserver\n"
        "\n"
        "class _Obs(NodeObserver):\n"
        "    def __init__(self):\n"
        "        self.done = []\n"
        "\n"
        "    def on_done(self, *, node, operation, duration_ms):\n"
        "        self.done.append(operation)\n"
        "\n"
        "OBSERVER = _Obs()\n",
        encoding="utf-8",
    )
    monkeypatch.syspath_prepend(str(tmp_path))
    from sftpflow.runtime.settings import Settings

    s = Settings(transport_driver="fake", observer_module="my_sftp_observer")
    node = SFTPNode(NodeSpec(server="config1", operation="stat"), profiles, settings=s)
    node.handle({})

    assert node.observer.done == ["stat"]


def test_non_string_operation_is_reported(make_node, fake_sftp) -> None:
    res = make_node("list", "/").handle({"operation": ["list"]})

    assert isinstance(res.error, UnknownOperationError)
    assert res.message == "Unknown operation: ['list']"
    assert fake_sftp.created == []


@pytest.mark.parametrize("port", [float("inf"), True, "ssh"])
def test_malformed_port_override_falls_back_to_profile(make_node, fake_sftp, port) -> None:
    res = make_node("list", "/").handle({"port": port})

    assert res.ok, res.message
    assert res.metadata["port"] == 22
    assert fake_sftp.last.descriptor.port == 22
