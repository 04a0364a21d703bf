"""Built-in transports. Importing this package registers them."""

from sftpflow.builtins import connectors  # noqa: F401
