from __future__ import annotations

from typing import Any, Dict, Tuple, Type

from sftpflow.connectors.base import ConnectorInit, SFTPTransport


class ConnectorRegistry:
    """
    Registry + factory for transports.

    Supports decorator registration:
        @registry.register("sftp", "paramiko")
        class ParamikoSFTP: ...

    And factory instantiation that binds settings/options:
        t = registry.create(name="node1", kind="sftp", driver="paramiko", options=..., ctx=...)
    """

    def __init__(self) -> None:
        self._items: Dict[Tuple[str, str], Type] = {}

    def register(self, kind: str, driver: str):
        def deco(cls):
            self._items[(kind, driver)] = cls
            return cls
        return deco

    def unregister(self, kind: str, driver: str) -> None:
        self._items.pop((kind, driver), None)

    def get(self, kind: str, driver: str):
        key = (kind, driver)
        if key not in self._items:
            avail = sorted([f"{k}:{d}" for (k, d) in self._items.keys()])
            raise KeyError(f"Unknown connector: {kind}:{driver}. Loaded: {avail}")
        return self._items[key]

    def list(self) -> list[str]:
        return sorted([f"{k}:{d}" for (k, d) in self._items.keys()])

    def create(self, *, name: str, kind: str, driver: str, options: dict | None = None, ctx: Any | None = None) -> SFTPTransport:
        Cls = self.get(kind, driver)
        return Cls(ConnectorInit(name=name, kind=kind, driver=driver, options=options or {}, ctx=ctx))


# Singleton registry used by core + plugins
REGISTRY = ConnectorRegistry()


def register_connector(kind: str, driver: str):
    return REGISTRY.register(kind, driver)


def get_connector(kind: str, driver: str):
    return REGISTRY.get(kind, driver)


def list_connectors() -> list[str]:
    return REGISTRY.list()
