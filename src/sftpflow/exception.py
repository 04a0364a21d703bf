"""Centralized customized exceptions for sftpflow.

All project-specific exceptions live in this module. Internal code should
prefer explicit imports:

    from sftpflow.exception import SFTPConnectError

Request-level failures derive from ConnectorError so a host can catch the
whole family with one clause.
"""

from __future__ import annotations

__all__ = [
    "SpecError",
    "ResolverSyntaxError",
    "ResolverMissingKeyError",
    "ConnectorError",
    "ProfileNotFoundError",
    "SFTPConnectError",
    "SFTPOperationError",
    "UsageError",
    "UnknownOperationError",
]


class SpecError(ValueError):
    """Raised when a profile or node document is invalid (schema or semantic)."""


class ResolverSyntaxError(ValueError):
    """Raised when a template expression is syntactically invalid."""


class ResolverMissingKeyError(KeyError):
    """Raised when a template references a missing variable/key in strict mode."""


class ConnectorError(RuntimeError):
    """Base error for request failures."""


class ProfileNotFoundError(ConnectorError):
    """No server profile could be resolved for a request."""

    def __init__(self, server: str | None):
        if server:
            msg = f"No SFTP server configured: unknown profile {server!r}"
        else:
            msg = "No SFTP server configured"
        super().__init__(msg)
        self.server = server


class SFTPConnectError(ConnectorError):
    """Transport-level failure while connecting (network, auth, timeout)."""


class SFTPOperationError(ConnectorError):
    """The remote call itself failed (path not found, permission denied, ...)."""


class UsageError(ConnectorError):
    """An operation precondition is unmet."""


class UnknownOperationError(UsageError):
    def __init__(self, operation: str | None):
        super().__init__(f"Unknown operation: {operation}")
        self.operation = operation
