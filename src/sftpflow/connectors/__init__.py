from __future__ import annotations

import importlib


def require(module_name: str):
    """Import a transport's client library on first use.

    Drivers import their library lazily so sftpflow can be imported (and other
    drivers registered) without it:

        paramiko = require("paramiko")
    """
    try:
        return importlib.import_module(module_name)
    except ImportError as e:
        raise RuntimeError(
            f"Optional dependency missing: Module {module_name}. "
            f"Install it to use this transport."
        ) from e
