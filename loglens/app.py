"""JSON HTTP API that lets an external log viewer drive the pipeline."""
from __future__ import annotations

import json
import logging
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

from .config import Settings, load_settings
from .filters import FilterQuery
from .reader import ArchiveError
from .workspace import LogWorkspace, WorkspaceError

logger = logging.getLogger(__name__)

_workspace: LogWorkspace | None = None


def _get_workspace() -> LogWorkspace:
    global _workspace
    if _workspace is None:
        _workspace = LogWorkspace(load_settings())
    return _workspace


def _combine(payload: dict) -> dict:
    if not isinstance(payload, dict):
        raise ValueError("payload must be an object")
    path = payload.get("path")
    if not path or not isinstance(path, str):
        raise ValueError("path is required")
    archive = payload.get("archive")
    if archive is not None and not isinstance(archive, str):
        raise ValueError("archive must be a string")

    workspace = _get_workspace()
    # Read only from this snapshot; another combine may land meanwhile.
    snapshot = workspace.combine(Path(path), archive=Path(archive) if archive else None)
    return {
        "parts": [part.label for part in snapshot.combined.parts],
        "warnings": list(snapshot.combined.warnings),
        "messages": len(snapshot.parsed.messages),
        "combinedPath": str(snapshot.output_path) if snapshot.output_path else None,
        "oversized": workspace.is_oversized(snapshot),
        "levelCounts": snapshot.level_counts(),
        "channels": snapshot.channel_tree(),
        "sessions": snapshot.session_export(),
    }


def _filter(payload: dict) -> dict:
    query = FilterQuery.from_payload(payload)
    return _get_workspace().apply_filters(query).to_dict()


def _optional_int(payload: dict, key: str) -> int | None:
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return value


def _locate(payload: dict) -> dict:
    if not isinstance(payload, dict):
        raise ValueError("payload must be an object")
    try:
        line_no = int(payload.get("line"))
    except (TypeError, ValueError):
        raise ValueError("line must be an integer") from None
    location = _get_workspace().locate(line_no)
    return {"location": location.to_dict() if location else None}


def _reveal(payload: dict) -> dict:
    if not isinstance(payload, dict):
        raise ValueError("payload must be an object")
    channel = payload.get("channel")
    if channel is not None and (not isinstance(channel, str) or not channel):
        raise ValueError("channel must be a non-empty string")
    line = _get_workspace().reveal(
        session=_optional_int(payload, "session"),
        message_index=_optional_int(payload, "messageIndex"),
        channel=channel,
    )
    return {"line": line}


POST_ROUTES = {
    "/combine": _combine,
    "/filter": _filter,
    "/locate": _locate,
    "/reveal": _reveal,
}

GET_ROUTES = {
    "/channels": lambda: _get_workspace().channel_tree(),
    "/sessions": lambda: _get_workspace().session_export(),
    "/levels": lambda: _get_workspace().level_counts(),
}


class AppHandler(BaseHTTPRequestHandler):
    def _send_json(self, payload, status: HTTPStatus = HTTPStatus.OK) -> None:
        encoded = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(encoded)))
        self.end_headers()
        self.wfile.write(encoded)

    def do_GET(self):  # noqa: N802
        route = GET_ROUTES.get(self.path)
        if route is None:
            self.send_error(HTTPStatus.NOT_FOUND)
            return
        try:
            self._send_json(route())
        except WorkspaceError as exc:
            self.send_error(HTTPStatus.CONFLICT, str(exc))

    def do_POST(self):  # noqa: N802
        route = POST_ROUTES.get(self.path)
        if route is None:
            self.send_error(HTTPStatus.NOT_FOUND)
            return

        content_length = int(self.headers.get("Content-Length", 0))
        body = self.rfile.read(content_length)
        try:
            payload = json.loads(body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError):
            self.send_error(HTTPStatus.BAD_REQUEST, "Invalid JSON")
            return

        try:
            result = route(payload)
        except ValueError as exc:
            self.send_error(HTTPStatus.BAD_REQUEST, str(exc))
            return
        except FileNotFoundError as exc:
            self.send_error(HTTPStatus.NOT_FOUND, str(exc))
            return
        except (ArchiveError, WorkspaceError) as exc:
            logger.warning("%s failed: %s", self.path, exc)
            self.send_error(HTTPStatus.CONFLICT, str(exc))
            return
        self._send_json(result)

    def log_message(self, format, *args):  # noqa: A003
        return


class ReusableAppServer(ThreadingHTTPServer):
    allow_reuse_address = True
    daemon_threads = True


def run_app(host: str = "127.0.0.1", port: int = 8000, settings: Settings | None = None) -> None:
    global _workspace
    _workspace = LogWorkspace(settings or load_settings())
    server_address = (host, port)
    with ReusableAppServer(server_address, AppHandler) as httpd:
        print(f"Serving loglens API at http://{host}:{port}")
        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            print("\nShutting down API...")
