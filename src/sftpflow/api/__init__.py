"""Public, stable API surface for sftpflow.

If you're embedding sftpflow in a host or writing a transport plugin, import
from **`sftpflow.api`**.

Everything outside this package is considered internal and may change without
notice, even in minor releases.
"""

from __future__ import annotations

# Transport contracts
from sftpflow.connectors import require
from sftpflow.connectors.base import ConnectorInit, SFTPTransport
from sftpflow.connectors.descriptor import (
    CONNECT_TIMEOUT_SECONDS,
    ConnectionDescriptor,
    build_descriptor,
    keyboard_responder,
)
# Exceptions
from sftpflow.exception import (
    ConnectorError,
    ProfileNotFoundError,
    SFTPConnectError,
    SFTPOperationError,
    SpecError,
    UnknownOperationError,
    UsageError,
)
# Node
from sftpflow.node import (
    OPERATIONS,
    STATUS_ERROR,
    STATUS_SUCCESS,
    OperationRequest,
    OperationResult,
    SFTPNode,
    resolve_remote_path,
)
from sftpflow.observability import NodeObserver
from sftpflow.registry.connectors import get_connector, list_connectors, register_connector
# Settings + profiles
from sftpflow.runtime.profiles import load_profiles, parse_profiles
from sftpflow.runtime.settings import Settings, load_settings
from sftpflow.spec import NodeSpec, RemoteEntry, RemoteStat, ServerProfile

__all__ = [
    # node
    "SFTPNode",
    "NodeSpec",
    "OperationRequest",
    "OperationResult",
    "OPERATIONS",
    "STATUS_SUCCESS",
    "STATUS_ERROR",
    "resolve_remote_path",
    "NodeObserver",
    # profiles / settings
    "ServerProfile",
    "load_profiles",
    "parse_profiles",
    "Settings",
    "load_settings",
    # transports
    "SFTPTransport",
    "ConnectorInit",
    "ConnectionDescriptor",
    "CONNECT_TIMEOUT_SECONDS",
    "build_descriptor",
    "keyboard_responder",
    "RemoteEntry",
    "RemoteStat",
    "register_connector",
    "get_connector",
    "list_connectors",
    "require",
    # errors
    "SpecError",
    "ConnectorError",
    "ProfileNotFoundError",
    "SFTPConnectError",
    "SFTPOperationError",
    "UsageError",
    "UnknownOperationError",
]
