from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, RootModel, field_validator
from pydantic.config import ConfigDict

DEFAULT_PORT = 22

# ---------------------------------------------------------------------------
# Server profiles
# ---------------------------------------------------------------------------


class ServerProfile(BaseModel):
    """Connection parameters for one remote endpoint.

    Notes:
      - `name` is a display label only; profiles are addressed by registry key.
      - secrets are excluded from repr() so a profile can be logged safely.
      - a profile without password and private_key is valid; the server decides.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: Optional[str] = None
    host: str
    port: int = DEFAULT_PORT
    try_keyboard: bool = True

    username: Optional[str] = None
    password: Optional[str] = Field(default=None, repr=False)
    private_key: Optional[str] = Field(default=None, repr=False)
    passphrase: Optional[str] = Field(default=None, repr=False)

    @field_validator("port", mode="before")
    @classmethod
    def _default_port(cls, v):
        if v in (None, "", 0, "0"):
            return DEFAULT_PORT
        return v

    @field_validator("try_keyboard", mode="before")
    @classmethod
    def _keyboard_unless_false(cls, v):
        # only an explicit false disables keyboard-interactive
        if isinstance(v, str):
            return v.strip().lower() != "false"
        return v is not False


class ProfilesFileSpec(RootModel[Dict[str, ServerProfile]]):
    """profiles.yaml root schema: mapping profile id -> ServerProfile."""


# ---------------------------------------------------------------------------
# Node
# ---------------------------------------------------------------------------


class NodeSpec(BaseModel):
    """Static configuration of one SFTP node.

    Request messages may override `operation`, `remote_path`, `local_path`
    and `recursive`; the values here are the defaults.
    """

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    server: str = ""
    # Not a Literal: unknown names are reported per request, not at load time.
    operation: str = "list"
    remote_path: str = "/"
    local_path: str = ""
    recursive: bool = False

    @field_validator("operation", mode="before")
    @classmethod
    def _default_operation(cls, v):
        return v or "list"

    @field_validator("remote_path", mode="before")
    @classmethod
    def _default_remote_path(cls, v):
        return v or "/"

    @field_validator("local_path", mode="before")
    @classmethod
    def _default_local_path(cls, v):
        return v or ""

    @field_validator("recursive", mode="before")
    @classmethod
    def _default_recursive(cls, v):
        return bool(v)


# ---------------------------------------------------------------------------
# Remote metadata
# ---------------------------------------------------------------------------

ExistsType = Union[Literal[False], Literal["d", "-", "l"]]


@dataclass(frozen=True)
class RemoteEntry:
    """One directory entry as returned by `list`.

    `type` is "d" (directory), "-" (file) or "l" (symlink).
    Times are epoch milliseconds.
    """

    type: str
    name: str
    size: int
    modify_time: int
    access_time: int
    rights: Dict[str, str] = field(default_factory=dict)
    owner: Optional[int] = None
    group: Optional[int] = None


@dataclass(frozen=True)
class RemoteStat:
    mode: int
    uid: Optional[int]
    gid: Optional[int]
    size: int
    access_time: int
    modify_time: int
    is_directory: bool
    is_file: bool
    is_block_device: bool
    is_character_device: bool
    is_symbolic_link: bool
    is_fifo: bool
    is_socket: bool


__all__ = [
    "DEFAULT_PORT",
    "ServerProfile",
    "ProfilesFileSpec",
    "NodeSpec",
    "ExistsType",
    "RemoteEntry",
    "RemoteStat",
]
