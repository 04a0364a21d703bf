"""sftpflow package.

Public entrypoints:
- sftpflow.api: stable API surface for hosts and transport plugins
- sftpflow.node.SFTPNode: execute request messages against a server profile

Internal modules may change without notice.
"""

from __future__ import annotations

# Ensure built-in transports are registered on import.
from sftpflow import builtins as _builtins  # noqa: F401

from sftpflow.node import SFTPNode

__all__ = ["SFTPNode"]
