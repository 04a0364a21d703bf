from __future__ import annotations

import os
from importlib import import_module

from pydantic import BaseModel


class Settings(BaseModel):
    # Defaults are static. Use load_settings(env=...) to read from an env snapshot.
    log_level: str = "INFO"

    # Observability
    # - log_format: "text" (default) or "json". When json, sftpflow logs emit a single JSON
    #   object per line, suitable for log aggregation.
    log_format: str = "text"

    # Optional status observer module (exposes OBSERVER: NodeObserver)
    observer_module: str | None = None

    # Transport
    # - transport_driver: registered "sftp" connector driver used to open connections
    # - host_key_policy: "auto_add" | "reject" | "warn"
    transport_driver: str = "paramiko"
    host_key_policy: str = "auto_add"
    known_hosts_path: str | None = None

    # Profiles: set at most one of file (YAML) or inline JSON
    profiles_file: str | None = None
    profiles_json: str | None = None

    @classmethod
    def from_env(cls, env: dict[str, str], overrides: dict | None = None) -> "Settings":
        """Build Settings from an explicit env snapshot (does not read os.environ)."""
        def g(key: str, default: str | None = None) -> str | None:
            return env.get(key, default)  # type: ignore[return-value]

        data = {
            "log_level": g("SFTPFLOW_LOG_LEVEL", "INFO"),
            "log_format": g("SFTPFLOW_LOG_FORMAT", "text"),
            "observer_module": g("SFTPFLOW_OBSERVER_MODULE") or None,
            "transport_driver": g("SFTPFLOW_TRANSPORT_DRIVER", "paramiko"),
            "host_key_policy": (g("SFTPFLOW_HOST_KEY_POLICY", "auto_add") or "auto_add").lower(),
            "known_hosts_path": g("SFTPFLOW_KNOWN_HOSTS") or None,
            "profiles_file": g("SFTPFLOW_PROFILES_FILE") or None,
            "profiles_json": g("SFTPFLOW_PROFILES_JSON") or None,
        }
        if overrides:
            data.update(overrides)
        return cls(**data)


def load_settings(overrides: dict | None = None, *, env: dict[str, str] | None = None) -> Settings:
    """Load settings from (1) env snapshot, (2) optional settings module, (3) explicit overrides.

    If env is not provided, we build a snapshot from os.environ.
    """
    env2 = {k: str(v) for k, v in os.environ.items()} if env is None else env
    s = Settings.from_env(env2)
    mod = env2.get("SFTPFLOW_SETTINGS_MODULE")
    if mod:
        m = import_module(mod)
        data = getattr(m, "SETTINGS", {})
        if not isinstance(data, dict):
            raise TypeError("SFTPFLOW_SETTINGS_MODULE must expose SETTINGS: dict")
        s = s.model_copy(update=data)
    if overrides:
        s = s.model_copy(update=overrides)
    return s
