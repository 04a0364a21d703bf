from __future__ import annotations

import json
import logging
import time
from importlib import import_module
from typing import Any

from sftpflow.runtime.settings import Settings

log = logging.getLogger("sftpflow.observability")

# Phase label shown while an operation runs.
OPERATION_STATUS_TEXT = {
    "list": "listing...",
    "get": "downloading...",
    "put": "uploading...",
    "delete": "deleting...",
    "mkdir": "creating dir...",
    "rmdir": "removing dir...",
    "rename": "renaming...",
    "exists": "checking...",
    "stat": "getting stats...",
}


class NodeObserver:
    """Optional status observer.

    Hosts can inject one into SFTPNode, or provide a module via
    SFTPFLOW_OBSERVER_MODULE exposing OBSERVER: NodeObserver. Every hook is a
    no-op here; an observer that raises is logged and ignored.
    """

    def on_connecting(self, *, node: str, host: str, port: int) -> None:  # pragma: no cover
        return None

    def on_connected(self, *, node: str, host: str, port: int) -> None:  # pragma: no cover
        return None

    def on_operation(self, *, node: str, operation: str, text: str) -> None:  # pragma: no cover
        return None

    def on_done(self, *, node: str, operation: str, duration_ms: int) -> None:  # pragma: no cover
        return None

    def on_error(self, *, node: str, operation: str | None, message: str) -> None:  # pragma: no cover
        return None


def load_observer(settings: Settings) -> NodeObserver:
    mod = settings.observer_module
    if not mod:
        return NodeObserver()
    m = import_module(mod)
    observer = getattr(m, "OBSERVER", None)
    if observer is None:
        raise AttributeError(f"{mod} must expose OBSERVER")
    return observer


def notify(observer: NodeObserver | None, hook: str, **fields: Any) -> None:
    """Call observer.<hook>(**fields); observers must never break a request."""
    if observer is None:
        return
    try:
        getattr(observer, hook)(**fields)
    except Exception:
        log.warning("NodeObserver.%s failed", hook, exc_info=True)


def _now_ms() -> int:
    return int(time.time() * 1000)


def dur_ms(t0: float, t1: float) -> int:
    return int((t1 - t0) * 1000)


def log_event(logger: logging.Logger, *, settings: Settings, level: int, event: str, **fields: Any) -> None:
    """Emit an event log.

    - text format: one-liner `event key=value ...`
    - json format: one JSON object per line
    """
    if settings.log_format.lower() == "json":
        payload = {"ts_ms": _now_ms(), "event": event, **fields}
        logger.log(level, json.dumps(payload, ensure_ascii=False, default=str))
        return

    parts = [event]
    for k, v in fields.items():
        parts.append(f"{k}={v}")
    logger.log(level, " ".join(parts))


def ensure_logging(settings: Settings) -> None:
    fmt = '%(asctime)s - (%(threadName)-10s) - %(name)s - %(levelname)s - %(message)s'
    if (settings.log_format or "text").lower() == "json":
        # JSON payload already includes timestamp; keep formatter minimal.
        fmt = "%(message)s"
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=fmt,
    )
