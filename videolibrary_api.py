"""CLI entry-point to launch the VideoLibrary HTTP API or run a one-shot scan."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import uvicorn

from api import __version__ as API_VERSION
from api.server import APIServerConfig, create_app
from catalog.errors import LibraryError
from catalog.service import LibraryService
from core.logging_utils import configure_from_settings
from core.paths import ensure_working_dir_structure, resolve_working_dir
from core.settings import load_settings

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8757
DEFAULT_CORS = ["http://localhost", "http://127.0.0.1"]


def _resolve_bind_host(candidate: Optional[str]) -> str:
    host = (candidate or DEFAULT_HOST).strip()
    if not host:
        host = DEFAULT_HOST
    norm = host.lower()
    if norm == "localhost":
        return "127.0.0.1"
    if norm.startswith("::ffff:"):
        norm = norm.split("::ffff:")[-1]
    if norm == "::1":
        return "127.0.0.1"
    if norm.startswith("127."):
        return host if host.startswith("127.") else "127.0.0.1"
    raise ValueError(
        f"Refusing to bind API server to non-loopback host '{candidate}'. VideoLibrary only serves on localhost."
    )


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Start the local VideoLibrary API service.")
    parser.add_argument("--host", default=None, help="Bind host (default from settings.json)")
    parser.add_argument("--port", type=int, default=None, help="Bind port (default from settings.json)")
    parser.add_argument("--api-key", dest="api_key", default=None, help="Override the API key for this session")
    parser.add_argument(
        "--cors",
        action="append",
        dest="cors",
        default=None,
        help="Additional allowed CORS origin (repeatable).",
    )
    parser.add_argument(
        "--working-dir",
        dest="working_dir",
        default=None,
        help="Working directory holding settings.json, data/ and logs/ (default: VIDEOLIBRARY_HOME).",
    )
    parser.add_argument(
        "--scan",
        metavar="PATH",
        default=None,
        help="Scan PATH into the catalog, print a JSON summary and exit instead of serving.",
    )
    parser.add_argument(
        "--depth",
        type=int,
        default=None,
        help="Scan depth override used with --scan.",
    )
    return parser.parse_args(argv)


def resolve_api_settings(
    args: argparse.Namespace,
    settings: Dict[str, Any],
) -> tuple[str, int, Optional[str], List[str], bool]:
    api_settings = settings.get("api") if isinstance(settings.get("api"), dict) else {}

    host = _resolve_bind_host(args.host or api_settings.get("host") or DEFAULT_HOST)
    port = args.port or api_settings.get("port") or DEFAULT_PORT
    try:
        port = int(port)
    except (TypeError, ValueError):
        port = DEFAULT_PORT

    api_key = args.api_key if args.api_key else api_settings.get("api_key")

    if args.cors:
        cors = list(args.cors)
    else:
        cors = list(api_settings.get("cors_origins") or DEFAULT_CORS)

    lan_only = bool(api_settings.get("lan_only", True))
    return str(host), int(port), api_key, cors, lan_only


def _scan_summary(service: LibraryService, path: str, depth: Optional[int]) -> Dict[str, Any]:
    result = service.scan(path, depth=depth)
    return {
        "folder_path": result.folder_tree.path,
        "total": result.total,
        "new": result.new,
        "dirs_scanned": result.dirs_scanned,
        "skipped_dirs": result.skipped_dirs,
        "skipped_files": result.skipped_files,
        "duration_seconds": round(result.duration_seconds, 3),
        "folder_tree": result.folder_tree.to_dict(),
        "records": [record.to_dict() for record in result.records],
    }


def main(argv: Optional[Sequence[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    args = parse_args(argv)

    working_dir = Path(args.working_dir).expanduser() if args.working_dir else resolve_working_dir()
    ensure_working_dir_structure(working_dir)
    settings = load_settings(working_dir)
    configure_from_settings(settings, working_dir)

    try:
        host, port, api_key, cors, lan_only = resolve_api_settings(args, settings)
    except ValueError as exc:
        logging.error("%s", exc)
        return 2

    service = LibraryService.open(working_dir, settings=settings)

    if args.scan:
        try:
            summary = _scan_summary(service, args.scan, args.depth)
        except LibraryError as exc:
            logging.error("%s", exc)
            return 1
        finally:
            service.close()
        print(json.dumps(summary, ensure_ascii=False, indent=2), flush=True)
        return 0

    if not api_key:
        logging.warning("API key is not configured; mutating routes accept unauthenticated local requests.")

    config = APIServerConfig(
        service=service,
        api_key=api_key,
        cors_origins=cors,
        app_version=API_VERSION,
        lan_only=lan_only,
    )
    app = create_app(config)

    print(f"API listening on http://{host}:{port}", flush=True)

    uvicorn_config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level="info",
        access_log=False,
    )
    server = uvicorn.Server(uvicorn_config)
    try:
        server.run()
    finally:
        service.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
