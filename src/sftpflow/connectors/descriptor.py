from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from sftpflow.spec import DEFAULT_PORT, ServerProfile

CONNECT_TIMEOUT_SECONDS = 30

# (title, instructions, [(prompt, echo), ...]) -> one answer per prompt
KeyboardResponder = Callable[[str, str, Sequence[Tuple[str, bool]]], List[Optional[str]]]


@dataclass(frozen=True)
class ConnectionDescriptor:
    """Fully resolved parameters for one connection attempt."""

    host: str
    port: int
    username: Optional[str]
    try_keyboard: bool
    timeout: int = CONNECT_TIMEOUT_SECONDS
    password: Optional[str] = field(default=None, repr=False)
    private_key: Optional[str] = field(default=None, repr=False)
    passphrase: Optional[str] = field(default=None, repr=False)
    keyboard_responder: Optional[KeyboardResponder] = field(default=None, repr=False, compare=False)


def keyboard_responder(password: Optional[str]) -> KeyboardResponder:
    """Answer every keyboard-interactive prompt with `password`.

    Prompt text is not inspected. With no password configured every prompt
    gets None, which usually makes the server reject the attempt.
    """

    def respond(title: str, instructions: str, prompts: Sequence[Tuple[str, bool]]) -> List[Optional[str]]:
        return [password for _ in prompts]

    return respond


def _resolve_port(override, profile: ServerProfile) -> int:
    for candidate in (override, profile.port):
        if not candidate or isinstance(candidate, bool):
            continue
        try:
            return int(candidate)
        except (TypeError, ValueError, OverflowError):
            continue
    return DEFAULT_PORT


def build_descriptor(
    profile: ServerProfile,
    *,
    host: Optional[str] = None,
    port: Optional[int] = None,
    username: Optional[str] = None,
) -> ConnectionDescriptor:
    """Merge per-request overrides onto profile values.

    Resolution per field: override -> profile -> default (port 22). Falsy
    overrides fall through. Never raises: a descriptor without credentials is
    still produced and the server decides.
    """
    password = profile.password or None
    private_key = profile.private_key or None
    passphrase = (profile.passphrase or None) if private_key else None
    try_keyboard = profile.try_keyboard is not False

    return ConnectionDescriptor(
        host=host or profile.host,
        port=_resolve_port(port, profile),
        username=username or profile.username,
        try_keyboard=try_keyboard,
        timeout=CONNECT_TIMEOUT_SECONDS,
        password=password,
        private_key=private_key,
        passphrase=passphrase,
        keyboard_responder=keyboard_responder(password) if try_keyboard else None,
    )
