from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

# Allow running tests without installing the package.
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

import pytest

import sftpflow  # noqa: F401  (registers built-in transports)
from sftpflow.node import SFTPNode
from sftpflow.registry.connectors import REGISTRY
from sftpflow.runtime.settings import Settings
from sftpflow.spec import NodeSpec, RemoteEntry, RemoteStat, ServerProfile


def _default_results() -> Dict[str, Any]:
    return {
        "list": [
            RemoteEntry(type="-", name="file1.txt", size=1024, modify_time=1700000000000, access_time=1700000000000),
            RemoteEntry(type="d", name="subdir", size=4096, modify_time=1700000000000, access_time=1700000000000),
        ],
        "get": b"file content",
        "exists": "-",
        "stat": RemoteStat(
            mode=33188,
            uid=1000,
            gid=1000,
            size=1024,
            access_time=1700000000000,
            modify_time=1700000000000,
            is_directory=False,
            is_file=True,
            is_block_device=False,
            is_character_device=False,
            is_symbolic_link=False,
            is_fifo=False,
            is_socket=False,
        ),
    }


@dataclass
class FakeSFTPState:
    """Shared script + recording for RecordingTransport instances."""

    results: Dict[str, Any] = field(default_factory=_default_results)
    errors: Dict[str, Exception] = field(default_factory=dict)
    close_error: Optional[Exception] = None
    created: List["RecordingTransport"] = field(default_factory=list)

    @property
    def last(self) -> "RecordingTransport":
        assert self.created, "no transport was created"
        return self.created[-1]


class RecordingTransport:
    state: FakeSFTPState = None  # type: ignore[assignment]

    def __init__(self, init):
        self.name = init.name
        self.kind = init.kind
        self.driver = init.driver
        self.options = init.options
        self.descriptor = None
        self.calls: list[tuple] = []
        self.close_calls = 0
        self.state.created.append(self)

    def _call(self, op: str, *args):
        self.calls.append((op, *args))
        if op in self.state.errors:
            raise self.state.errors[op]
        return self.state.results.get(op)

    def connect(self, descriptor) -> None:
        self.descriptor = descriptor
        self._call("connect")

    def close(self) -> None:
        self.close_calls += 1
        if self.state.close_error is not None:
            raise self.state.close_error

    def list(self, remote_path):
        return self._call("list", remote_path)

    def get(self, remote_path, local_path=None):
        if local_path:
            self._call("get", remote_path, local_path)
            return None
        return self._call("get", remote_path)

    def put(self, source, remote_path):
        return self._call("put", source, remote_path)

    def delete(self, remote_path):
        return self._call("delete", remote_path)

    def mkdir(self, remote_path, recursive=False):
        return self._call("mkdir", remote_path, recursive)

    def rmdir(self, remote_path, recursive=False):
        return self._call("rmdir", remote_path, recursive)

    def rename(self, from_path, to_path):
        return self._call("rename", from_path, to_path)

    def exists(self, remote_path):
        return self._call("exists", remote_path)

    def stat(self, remote_path):
        return self._call("stat", remote_path)

    @property
    def operations(self) -> list[str]:
        return [c[0] for c in self.calls if c[0] != "connect"]


@pytest.fixture()
def fake_sftp():
    state = FakeSFTPState()
    RecordingTransport.state = state
    REGISTRY.register("sftp", "fake")(RecordingTransport)
    try:
        yield state
    finally:
        REGISTRY.unregister("sftp", "fake")


@pytest.fixture()
def settings():
    return Settings(
        log_level="INFO",
        log_format="text",
        transport_driver="fake",
    )


@pytest.fixture()
def profiles():
    return {
        "config1": ServerProfile(
            name="test-server",
            host="example.com",
            port=22,
            try_keyboard=True,
            username="testuser",
            password="testpass",
        )
    }


@pytest.fixture()
def make_node(fake_sftp, settings, profiles):
    def _make(operation: str = "list", remote_path: str = "/test/path", **kw) -> SFTPNode:
        observer = kw.pop("observer", None)
        spec = NodeSpec(name="test-sftp", server=kw.pop("server", "config1"), operation=operation, remote_path=remote_path, **kw)
        return SFTPNode(spec, profiles, settings=settings, observer=observer)

    return _make
