"""SFTP operation node.

One request message = one resolved profile, one connection, one remote
operation, one close. Every request-level failure comes back as an
OperationResult with status ERROR; nothing is retried.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from sftpflow.concurrency import run_thread_pool
from sftpflow.connectors.base import SFTPTransport
from sftpflow.connectors.descriptor import ConnectionDescriptor, build_descriptor
from sftpflow.exception import (
    ConnectorError,
    ProfileNotFoundError,
    SFTPConnectError,
    SFTPOperationError,
    UnknownOperationError,
    UsageError,
)
from sftpflow.observability import OPERATION_STATUS_TEXT, NodeObserver, dur_ms, load_observer, log_event, notify
from sftpflow.registry.connectors import REGISTRY
from sftpflow.runtime.settings import Settings, load_settings
from sftpflow.spec import NodeSpec, ServerProfile

STATUS_SUCCESS = "SUCCESS"
STATUS_ERROR = "ERROR"

log = logging.getLogger("sftpflow.node")


@dataclass
class OperationResult:
    """Outcome of one request.

    On success `output` is the outgoing message: a copy of the request with
    `payload` replaced by the operation result and `sftp` metadata attached.
    On failure `error` holds the exception and `output` is None.
    """

    status: str
    output: Optional[Dict[str, Any]] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SUCCESS

    @property
    def message(self) -> Optional[str]:
        return str(self.error) if self.error is not None else None

    @property
    def payload(self) -> Any:
        return (self.output or {}).get("payload")

    @property
    def metadata(self) -> Dict[str, Any]:
        return dict((self.output or {}).get("sftp") or {})

    def raise_for_error(self) -> "OperationResult":
        if self.error is not None:
            raise self.error
        return self


@dataclass(frozen=True)
class OperationRequest:
    operation: str
    remote_path: str
    local_path: str
    new_path: Optional[str]
    recursive: bool
    payload: Any


def resolve_operation(msg: Mapping[str, Any], node: NodeSpec) -> str:
    return msg.get("operation") or node.operation


def resolve_remote_path(msg: Mapping[str, Any], node: NodeSpec) -> str:
    """Explicit remote_path > absolute-looking string payload > node default > "/".

    A payload only counts when it starts with "/" so upload content is never
    mistaken for a path.
    """
    explicit = msg.get("remote_path")
    if isinstance(explicit, str) and explicit:
        return explicit
    payload = msg.get("payload")
    if isinstance(payload, str) and payload.startswith("/"):
        return payload
    return node.remote_path or "/"


def resolve_request(msg: Mapping[str, Any], node: NodeSpec) -> OperationRequest:
    recursive = msg.get("recursive")
    return OperationRequest(
        operation=resolve_operation(msg, node),
        remote_path=resolve_remote_path(msg, node),
        local_path=msg.get("local_path") or node.local_path,
        new_path=msg.get("new_path") or None,
        recursive=bool(node.recursive if recursive is None else recursive),
        payload=msg.get("payload"),
    )


def _is_binary(value: Any) -> bool:
    return isinstance(value, (bytes, bytearray, memoryview))


# ---------------------------------------------------------------------------
# Operations: (transport, request) -> fields merged into the outgoing message
# ---------------------------------------------------------------------------


def _op_list(t: SFTPTransport, req: OperationRequest) -> Dict[str, Any]:
    return {"payload": t.list(req.remote_path)}


def _op_get(t: SFTPTransport, req: OperationRequest) -> Dict[str, Any]:
    if req.local_path:
        t.get(req.remote_path, req.local_path)
        return {"payload": {"success": True, "local_path": req.local_path}}
    return {"payload": t.get(req.remote_path)}


def _op_put(t: SFTPTransport, req: OperationRequest) -> Dict[str, Any]:
    if _is_binary(req.payload):
        t.put(bytes(req.payload), req.remote_path)
    elif req.local_path:
        t.put(req.local_path, req.remote_path)
    else:
        raise UsageError("put operation requires payload as bytes or local_path")
    return {"payload": {"success": True, "remote_path": req.remote_path}}


def _op_delete(t: SFTPTransport, req: OperationRequest) -> Dict[str, Any]:
    t.delete(req.remote_path)
    return {"payload": {"success": True, "deleted": req.remote_path}}


def _op_mkdir(t: SFTPTransport, req: OperationRequest) -> Dict[str, Any]:
    t.mkdir(req.remote_path, req.recursive)
    return {"payload": {"success": True, "created": req.remote_path}}


def _op_rmdir(t: SFTPTransport, req: OperationRequest) -> Dict[str, Any]:
    t.rmdir(req.remote_path, req.recursive)
    return {"payload": {"success": True, "removed": req.remote_path}}


def _op_rename(t: SFTPTransport, req: OperationRequest) -> Dict[str, Any]:
    new_path = req.new_path or req.local_path
    if not new_path:
        raise UsageError("rename operation requires new_path or local_path")
    t.rename(req.remote_path, new_path)
    return {"payload": {"success": True, "from": req.remote_path, "to": new_path}}


def _op_exists(t: SFTPTransport, req: OperationRequest) -> Dict[str, Any]:
    result = t.exists(req.remote_path)  # False, "d", "-" or "l"
    return {"payload": result, "exists": result is not False}


def _op_stat(t: SFTPTransport, req: OperationRequest) -> Dict[str, Any]:
    return {"payload": t.stat(req.remote_path)}


OPERATIONS: Dict[str, Callable[[SFTPTransport, OperationRequest], Dict[str, Any]]] = {
    "list": _op_list,
    "get": _op_get,
    "put": _op_put,
    "delete": _op_delete,
    "mkdir": _op_mkdir,
    "rmdir": _op_rmdir,
    "rename": _op_rename,
    "exists": _op_exists,
    "stat": _op_stat,
}


def _describe(e: BaseException) -> str:
    return str(e) or e.__class__.__name__


class SFTPNode:
    """Executes request messages against the profile named by `spec.server`.

    The profile registry is injected and looked up per request, so a host can
    replace profiles without rebuilding nodes.
    """

    def __init__(
        self,
        spec: NodeSpec | Mapping[str, Any],
        profiles: Mapping[str, ServerProfile],
        *,
        settings: Settings | None = None,
        observer: NodeObserver | None = None,
        node_id: str | None = None,
    ):
        self.spec = spec if isinstance(spec, NodeSpec) else NodeSpec.model_validate(dict(spec))
        self.profiles = profiles
        self.settings = settings or load_settings()
        self.observer = observer if observer is not None else load_observer(self.settings)
        self.id = node_id or self.spec.name or "sftp"

        if not self.spec.server or self.spec.server not in self.profiles:
            log.error("No SFTP server configured node=%s server=%r", self.id, self.spec.server)

    def resolve_profile(self) -> ServerProfile:
        server = self.spec.server
        profile = self.profiles.get(server) if server else None
        if profile is None:
            raise ProfileNotFoundError(server)
        return profile

    def handle(self, msg: Mapping[str, Any] | None = None) -> OperationResult:
        msg = dict(msg or {})
        t0 = time.perf_counter()
        operation = resolve_operation(msg, self.spec)
        try:
            profile = self.resolve_profile()
            if not isinstance(operation, str) or operation not in OPERATIONS:
                raise UnknownOperationError(operation)
            descriptor = build_descriptor(
                profile,
                host=msg.get("host"),
                port=msg.get("port"),
                username=msg.get("username"),
            )
            req = resolve_request(msg, self.spec)
            log_event(
                log,
                settings=self.settings,
                level=logging.INFO,
                event="sftp_request_start",
                node=self.id,
                operation=operation,
                remote_path=req.remote_path,
                host=descriptor.host,
                port=descriptor.port,
            )
            output = self._execute(descriptor, req, msg)
        except ConnectorError as e:
            log_event(
                log,
                settings=self.settings,
                level=logging.ERROR,
                event="sftp_request_failed",
                node=self.id,
                operation=operation,
                error_type=e.__class__.__name__,
                error=str(e),
                duration_ms=dur_ms(t0, time.perf_counter()),
            )
            notify(self.observer, "on_error", node=self.id, operation=operation, message=str(e))
            return OperationResult(status=STATUS_ERROR, error=e)

        dur = dur_ms(t0, time.perf_counter())
        log_event(
            log,
            settings=self.settings,
            level=logging.INFO,
            event="sftp_request_end",
            node=self.id,
            operation=operation,
            remote_path=req.remote_path,
            duration_ms=dur,
        )
        notify(self.observer, "on_done", node=self.id, operation=operation, duration_ms=dur)
        return OperationResult(status=STATUS_SUCCESS, output=output)

    def handle_many(self, messages: Iterable[Mapping[str, Any]], *, workers: int = 8) -> List[OperationResult]:
        """Handle independent requests concurrently; one connection each, results in input order."""
        return run_thread_pool(list(messages), self.handle, workers=workers)

    def _create_transport(self) -> SFTPTransport:
        try:
            return REGISTRY.create(
                name=self.id,
                kind="sftp",
                driver=self.settings.transport_driver,
                options={
                    "host_key_policy": self.settings.host_key_policy,
                    "known_hosts_path": self.settings.known_hosts_path,
                },
                ctx=self,
            )
        except KeyError as e:
            raise ConnectorError(f"Unknown transport driver: {self.settings.transport_driver} ({e})") from e

    def _execute(self, descriptor: ConnectionDescriptor, req: OperationRequest, msg: Dict[str, Any]) -> Dict[str, Any]:
        transport = self._create_transport()
        try:
            notify(self.observer, "on_connecting", node=self.id, host=descriptor.host, port=descriptor.port)
            try:
                transport.connect(descriptor)
            except Exception as e:
                raise SFTPConnectError(_describe(e)) from e
            notify(self.observer, "on_connected", node=self.id, host=descriptor.host, port=descriptor.port)

            notify(self.observer, "on_operation", node=self.id, operation=req.operation, text=OPERATION_STATUS_TEXT[req.operation])
            try:
                updates = OPERATIONS[req.operation](transport, req)
            except ConnectorError:
                raise
            except Exception as e:
                raise SFTPOperationError(_describe(e)) from e
        finally:
            self._close_quietly(transport)

        out = dict(msg)
        out.update(updates)
        out["sftp"] = {
            "operation": req.operation,
            "remote_path": req.remote_path,
            "host": descriptor.host,
            "port": descriptor.port,
        }
        return out

    def _close_quietly(self, transport: SFTPTransport) -> None:
        try:
            transport.close()
        except Exception:
            log.warning("transport close failed node=%s; continuing", self.id, exc_info=True)
