from __future__ import annotations

import getpass
import io
import logging
import posixpath
import stat
from typing import List, Optional, Union

from sftpflow.connectors import require
from sftpflow.connectors.base import ConnectorInit
from sftpflow.connectors.descriptor import ConnectionDescriptor
from sftpflow.exception import ConnectorError
from sftpflow.registry.connectors import register_connector
from sftpflow.spec import ExistsType, RemoteEntry, RemoteStat

log = logging.getLogger("sftpflow.builtins.connectors")

# Tried in order when parsing private key text.
_KEY_CLASSES = ("Ed25519Key", "ECDSAKey", "RSAKey")


def _ms(ts) -> int:
    return int(ts * 1000) if ts else 0


def _entry_type(mode: int) -> str:
    if stat.S_ISDIR(mode):
        return "d"
    if stat.S_ISLNK(mode):
        return "l"
    return "-"


def _rights(mode: int) -> dict[str, str]:
    perms = stat.filemode(mode)[1:]
    return {
        "user": perms[0:3].replace("-", ""),
        "group": perms[3:6].replace("-", ""),
        "other": perms[6:9].replace("-", ""),
    }


def _to_stat(attr) -> RemoteStat:
    mode = attr.st_mode or 0
    return RemoteStat(
        mode=mode,
        uid=attr.st_uid,
        gid=attr.st_gid,
        size=attr.st_size or 0,
        access_time=_ms(attr.st_atime),
        modify_time=_ms(attr.st_mtime),
        is_directory=stat.S_ISDIR(mode),
        is_file=stat.S_ISREG(mode),
        is_block_device=stat.S_ISBLK(mode),
        is_character_device=stat.S_ISCHR(mode),
        is_symbolic_link=stat.S_ISLNK(mode),
        is_fifo=stat.S_ISFIFO(mode),
        is_socket=stat.S_ISSOCK(mode),
    )


def _load_private_key(paramiko, key_text: str, passphrase: Optional[str]):
    errors: list[str] = []
    for cls_name in _KEY_CLASSES:
        cls = getattr(paramiko, cls_name, None)
        if cls is None:
            continue
        try:
            return cls.from_private_key(io.StringIO(key_text), password=passphrase)
        except (paramiko.SSHException, ValueError) as e:
            errors.append(f"{cls_name}: {e}")
    raise paramiko.SSHException("Unsupported or invalid private key (" + "; ".join(errors) + ")")


def _host_key_policy(paramiko, name: str):
    policies = {
        "auto_add": paramiko.AutoAddPolicy,
        "reject": paramiko.RejectPolicy,
        "warn": paramiko.WarningPolicy,
    }
    if name not in policies:
        raise ValueError(f"Unknown host_key_policy: {name}. Expected one of {sorted(policies)}")
    return policies[name]()


class _Base:
    """Small concrete base for built-in transports (keeps init consistent)."""

    def __init__(self, init: ConnectorInit):
        self.name = init.name
        self.kind = init.kind
        self.driver = init.driver
        self.options = init.options or {}
        self.ctx = init.ctx

    def close(self) -> None:
        return None


@register_connector("sftp", "paramiko")
class ParamikoSFTP(_Base):
    """
    SFTP transport backed by paramiko.

    One instance = one connection:
      - connect(descriptor): password and/or private key, then keyboard-interactive
        fallback when the descriptor carries a responder
      - list/get/put/delete/mkdir/rmdir/rename/exists/stat primitives
      - close(): best-effort, safe after a failed connect
    """

    def __init__(self, init: ConnectorInit):
        super().__init__(init)
        self._client = None
        self._sftp = None

    def connect(self, descriptor: ConnectionDescriptor) -> None:
        paramiko = require("paramiko")

        client = paramiko.SSHClient()
        self._client = client
        known_hosts = self.options.get("known_hosts_path")
        if known_hosts:
            client.load_host_keys(known_hosts)
        client.set_missing_host_key_policy(
            _host_key_policy(paramiko, str(self.options.get("host_key_policy") or "auto_add"))
        )

        pkey = None
        if descriptor.private_key:
            pkey = _load_private_key(paramiko, descriptor.private_key, descriptor.passphrase)

        try:
            client.connect(
                hostname=descriptor.host,
                port=descriptor.port,
                username=descriptor.username,
                password=descriptor.password,
                pkey=pkey,
                timeout=descriptor.timeout,
                banner_timeout=descriptor.timeout,
                auth_timeout=descriptor.timeout,
                allow_agent=False,
                look_for_keys=False,
            )
        except paramiko.BadHostKeyException:
            raise
        except paramiko.SSHException:
            # Rejected or no usable password/publickey method: keyboard-interactive is the last resort.
            transport = client.get_transport()
            if (
                descriptor.keyboard_responder is None
                or transport is None
                or not transport.is_active()
                or transport.is_authenticated()
            ):
                raise
            self._auth_keyboard(transport, descriptor)

        self._sftp = client.open_sftp()
        log.debug("sftp session open host=%s port=%s", descriptor.host, descriptor.port)

    def _auth_keyboard(self, transport, descriptor: ConnectionDescriptor) -> None:
        responder = descriptor.keyboard_responder

        def handler(title, instructions, prompt_list):
            # paramiko sends answers as strings; an unset password answers empty
            return ["" if a is None else a for a in responder(title, instructions, prompt_list)]

        username = descriptor.username or getpass.getuser()
        log.debug("trying keyboard-interactive auth host=%s user=%s", descriptor.host, username)
        transport.auth_interactive(username, handler)

    def close(self) -> None:
        sftp, client = self._sftp, self._client
        self._sftp = None
        self._client = None
        try:
            if sftp is not None:
                sftp.close()
        finally:
            if client is not None:
                client.close()

    def _session(self):
        if self._sftp is None:
            raise ConnectorError(f"SFTP transport {self.name} is not connected")
        return self._sftp

    def list(self, remote_path: str) -> List[RemoteEntry]:
        out: list[RemoteEntry] = []
        for attr in self._session().listdir_attr(remote_path):
            name = attr.filename
            if name in (".", ".."):
                continue
            mode = attr.st_mode or 0
            out.append(
                RemoteEntry(
                    type=_entry_type(mode),
                    name=name,
                    size=attr.st_size or 0,
                    modify_time=_ms(attr.st_mtime),
                    access_time=_ms(attr.st_atime),
                    rights=_rights(mode),
                    owner=attr.st_uid,
                    group=attr.st_gid,
                )
            )
        return out

    def get(self, remote_path: str, local_path: str | None = None) -> bytes | None:
        sftp = self._session()
        if local_path:
            sftp.get(remote_path, local_path)
            return None
        buf = io.BytesIO()
        sftp.getfo(remote_path, buf)
        return buf.getvalue()

    def put(self, source: Union[bytes, str], remote_path: str) -> None:
        sftp = self._session()
        if isinstance(source, (bytes, bytearray, memoryview)):
            sftp.putfo(io.BytesIO(bytes(source)), remote_path)
        else:
            sftp.put(str(source), remote_path)

    def delete(self, remote_path: str) -> None:
        self._session().remove(remote_path)

    def mkdir(self, remote_path: str, recursive: bool = False) -> None:
        sftp = self._session()
        if not recursive:
            sftp.mkdir(remote_path)
            return
        parts = []
        d = remote_path.rstrip("/") or "/"
        while d not in ("", "/", "."):
            parts.append(d)
            d = posixpath.dirname(d)
        for p in reversed(parts):
            try:
                attr = sftp.stat(p)
            except FileNotFoundError:
                sftp.mkdir(p)
                continue
            if not stat.S_ISDIR(attr.st_mode or 0):
                raise NotADirectoryError(f"{p} exists and is not a directory")

    def rmdir(self, remote_path: str, recursive: bool = False) -> None:
        sftp = self._session()
        if recursive:
            self._clear_dir(sftp, remote_path)
        sftp.rmdir(remote_path)

    def _clear_dir(self, sftp, remote_dir: str) -> None:
        # depth-first; symlinks are removed, never followed
        for attr in sftp.listdir_attr(remote_dir):
            if attr.filename in (".", ".."):
                continue
            child = posixpath.join(remote_dir, attr.filename)
            if stat.S_ISDIR(attr.st_mode or 0):
                self._clear_dir(sftp, child)
                sftp.rmdir(child)
            else:
                sftp.remove(child)

    def rename(self, from_path: str, to_path: str) -> None:
        self._session().rename(from_path, to_path)

    def exists(self, remote_path: str) -> ExistsType:
        try:
            attr = self._session().lstat(remote_path)
        except FileNotFoundError:
            return False
        return _entry_type(attr.st_mode or 0)  # type: ignore[return-value]

    def stat(self, remote_path: str) -> RemoteStat:
        return _to_stat(self._session().stat(remote_path))
