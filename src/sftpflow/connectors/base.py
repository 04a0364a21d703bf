from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Protocol, Union, runtime_checkable

from sftpflow.spec import ExistsType, RemoteEntry, RemoteStat


@runtime_checkable
class SFTPTransport(Protocol):
    """
    Public transport contract.

    A transport is a thin wrapper around a concrete SSH/SFTP client. One
    instance serves exactly one connection: connect(), one primitive, close().

    Transports should:
      - be safe to instantiate multiple times
      - not mutate global state
      - raise the client's own exceptions from primitives (the node wraps them)
      - make close() best-effort and safe to call after a failed connect()
    """

    name: str
    kind: str
    driver: str
    options: Dict[str, Any]

    def connect(self, descriptor) -> None: ...
    def close(self) -> None: ...

    def list(self, remote_path: str) -> List[RemoteEntry]: ...
    def get(self, remote_path: str, local_path: str | None = None) -> bytes | None: ...
    def put(self, source: Union[bytes, str], remote_path: str) -> None: ...
    def delete(self, remote_path: str) -> None: ...
    def mkdir(self, remote_path: str, recursive: bool = False) -> None: ...
    def rmdir(self, remote_path: str, recursive: bool = False) -> None: ...
    def rename(self, from_path: str, to_path: str) -> None: ...
    def exists(self, remote_path: str) -> ExistsType: ...
    def stat(self, remote_path: str) -> RemoteStat: ...


@dataclass
class ConnectorInit:
    name: str
    kind: str
    driver: str
    options: Dict[str, Any]
    ctx: Any | None = None
