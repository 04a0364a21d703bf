"""Strict env templating for profile documents.

Allowed tokens ONLY:
- {{env.VAR}}
- {{env.VAR:DEFAULT}}

Spaces are allowed inside braces (e.g. {{  env.VAR  }}). Any other templating
syntax fails fast with ResolverSyntaxError whose message starts with:
"Unsupported templating syntax. Use {{env.VAR}} or {{env.VAR:DEFAULT}}"

An empty env value counts as missing: the default applies, and without a
default ResolverMissingKeyError is raised.
"""

from __future__ import annotations

import re
from typing import Any, Mapping

from sftpflow.exception import ResolverMissingKeyError, ResolverSyntaxError

_UNSUPPORTED_MSG = "Unsupported templating syntax. Use {{env.VAR}} or {{env.VAR:DEFAULT}}"
_ALLOWED_ROOTS = {"env"}
_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_STANDALONE_TOKEN_RE = re.compile(
    r"^\{\{\s*"
    r"([A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*)"  # key
    r"(?:\:([^}]*))?"  # optional :default (allow empty)
    r"\s*\}\}$"
)


def _syntax_error(msg: str) -> ResolverSyntaxError:
    return ResolverSyntaxError(_UNSUPPORTED_MSG + "\n" + msg)


def _is_valid_path(path: str) -> bool:
    return all(_IDENT_RE.match(p) for p in path.split("."))


def _contains_forbidden_syntax(value: str) -> bool:
    needle = "$" + "{"
    if needle in value:
        return True
    if "{%" in value or "%}" in value:
        return True
    if "{#" in value or "#}" in value:
        return True
    return "{}" in value


def _lookup(mapping: Mapping[str, Any], path: str, default: str | None) -> Any:
    root = path.split(".", 1)[0]
    if root not in _ALLOWED_ROOTS:
        raise _syntax_error(f"allowed_roots {root} {path} {sorted(_ALLOWED_ROOTS)}")

    cur: Any = mapping
    found = True
    for part in path.split("."):
        if isinstance(cur, Mapping) and part in cur:
            cur = cur[part]
        else:
            found = False
            break

    if not found or cur == "":
        if default is not None:
            return default
        raise ResolverMissingKeyError(path)
    return cur


def _split_token(inner: str) -> tuple[str, str | None]:
    token = inner.strip()
    if not token or "{" in token or "}" in token:
        raise _syntax_error("Empty token or nested braces are not allowed.")
    if ":" in token:
        path, default = token.split(":", 1)
        path = path.strip()
    else:
        path, default = token, None
    if not _is_valid_path(path):
        raise _syntax_error(f"invalid path {path}")
    return path, default


def render_string(value: str, mapping: Mapping[str, Any]) -> Any:
    """Render one string.

    A value that is exactly one token returns the looked-up value unchanged
    (no str()); inline/multi-token values always render to a string.
    """
    if _contains_forbidden_syntax(value):
        raise _syntax_error(f"forbidden syntax in {value!r}")

    if "{{" not in value and "}}" not in value:
        return value

    m = _STANDALONE_TOKEN_RE.match(value)
    if m:
        path = m.group(1)
        if not _is_valid_path(path):
            raise _syntax_error(f"invalid path {path}")
        return _lookup(mapping, path, m.group(2))

    out: list[str] = []
    i = 0
    n = len(value)
    while i < n:
        start = value.find("{{", i)
        if start == -1:
            out.append(value[i:])
            break
        if value.find("}}", i, start) != -1:
            raise _syntax_error(f"premature close in {value!r}")
        out.append(value[i:start])
        end = value.find("}}", start + 2)
        if end == -1:
            raise _syntax_error(f"missing close in {value!r}")
        path, default = _split_token(value[start + 2 : end])
        out.append(str(_lookup(mapping, path, default)))
        i = end + 2

    return "".join(out)


def resolve_profile_templates(obj: Any, env_snapshot: Mapping[str, str] | None) -> Any:
    """Deep-walk a raw profile document and render {{env.*}} tokens.

    Only strings are templated; other primitives are returned as-is.
    """
    mapping = {"env": dict(env_snapshot or {})}
    return _walk(obj, mapping)


def _walk(obj: Any, mapping: Mapping[str, Any]) -> Any:
    if isinstance(obj, str):
        return render_string(obj, mapping)
    if isinstance(obj, Mapping):
        return {k: _walk(v, mapping) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_walk(v, mapping) for v in obj]
    return obj
