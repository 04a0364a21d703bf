import argparse
import base64
import dataclasses
import json
import sys

from sftpflow.exception import ProfileNotFoundError, ResolverMissingKeyError, ResolverSyntaxError, SpecError
from sftpflow.node import OPERATIONS, SFTPNode
from sftpflow.observability import ensure_logging
from sftpflow.runtime.profiles import load_profiles
from sftpflow.runtime.settings import load_settings
from sftpflow.spec import NodeSpec


def _jsonable(value):
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return {"base64": base64.b64encode(bytes(value)).decode("ascii")}
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    return value


def _print_payload(payload) -> None:
    if isinstance(payload, (bytes, bytearray)):
        sys.stdout.buffer.write(bytes(payload))
        sys.stdout.flush()
        return
    if isinstance(payload, list):
        for entry in payload:
            e = _jsonable(entry)
            if isinstance(e, dict):
                print(f"{e.get('type', '?')} {e.get('size', ''):>12} {e.get('name', '')}")
            else:
                print(e)
        return
    print(json.dumps(_jsonable(payload), ensure_ascii=False))


def main(argv=None) -> int:
    argv = argv or sys.argv[1:]
    parser = argparse.ArgumentParser(prog="sftpflow", description="sftpflow CLI")
    sp = parser.add_subparsers(dest="cmd", required=True)

    runp = sp.add_parser("run", help="Execute one SFTP operation against a configured profile")
    runp.add_argument("--server", required=True, help="Profile id (from SFTPFLOW_PROFILES_FILE / SFTPFLOW_PROFILES_JSON)")
    runp.add_argument("--operation", default="list", choices=sorted(OPERATIONS))
    runp.add_argument("--remote-path", default="/")
    runp.add_argument("--local-path", default="", help="get: destination file; put: source file; rename: fallback destination")
    runp.add_argument("--new-path", default=None, help="rename destination")
    runp.add_argument("--recursive", action="store_true", help="mkdir/rmdir recursively")
    runp.add_argument("--host", default=None, help="Override profile host for this request")
    runp.add_argument("--port", type=int, default=None, help="Override profile port for this request")
    runp.add_argument("--username", default=None, help="Override profile username for this request")
    runp.add_argument("--json", action="store_true", help="Output machine-readable JSON")

    profp = sp.add_parser("profiles", help="List configured server profiles (no secrets)")
    profp.add_argument("--json", action="store_true", help="Output machine-readable JSON")

    args = parser.parse_args(argv)
    settings = load_settings()
    ensure_logging(settings)

    try:
        profiles = load_profiles(settings)
    except (SpecError, ResolverMissingKeyError, ResolverSyntaxError, OSError) as e:
        print(f"INVALID PROFILES: {e}", file=sys.stderr)
        return 2

    if args.cmd == "profiles":
        out = [
            {"id": pid, "name": p.name, "host": p.host, "port": p.port, "username": p.username, "try_keyboard": p.try_keyboard}
            for pid, p in sorted(profiles.items())
        ]
        if args.json:
            print(json.dumps(out, ensure_ascii=False))
        else:
            for it in out:
                print(f"{it['id']}: {it['username'] or ''}@{it['host']}:{it['port']}")
        return 0

    if args.cmd == "run":
        node = SFTPNode(
            NodeSpec(
                server=args.server,
                operation=args.operation,
                remote_path=args.remote_path,
                local_path=args.local_path,
                recursive=args.recursive,
            ),
            profiles,
            settings=settings,
            node_id="cli",
        )
        msg = {"host": args.host, "port": args.port, "username": args.username, "new_path": args.new_path}
        result = node.handle({k: v for k, v in msg.items() if v is not None})

        if args.json:
            report = {
                "ok": result.ok,
                "error": result.message,
                "payload": _jsonable(result.payload),
                "sftp": result.metadata,
            }
            if result.output and "exists" in result.output:
                report["exists"] = result.output["exists"]
            print(json.dumps(report, ensure_ascii=False))
        elif result.ok:
            _print_payload(result.payload)
        else:
            print(f"ERROR: {result.message}", file=sys.stderr)

        if result.ok:
            return 0
        return 2 if isinstance(result.error, ProfileNotFoundError) else 1

    return 1


if __name__ == "__main__":
    raise SystemExit(main())
