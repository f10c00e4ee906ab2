#!/usr/bin/env python3
"""
Minimal HTTP control API for driving a profile from a headless host.

Intentionally:
- no auth (bind to localhost)
- every operation runs on the profile's event loop, never on the HTTP thread
"""

from __future__ import annotations

import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any

PAINT_ACTIONS = ("begin", "extend", "end", "cancel")


class _Handler(BaseHTTPRequestHandler):  # pylint: disable=invalid-name
    """HTTP handler for the control API."""
    server_version = "HeatzoneProfileAPI/0.1"

    def _send_json(self, status: int, payload: dict[str, Any]) -> None:
        raw = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(raw)))
        self.send_header("X-Content-Type-Options", "nosniff")
        self.end_headers()
        self.wfile.write(raw)

    def _send_result(self, res: dict[str, Any]) -> None:
        self._send_json(200 if res.get("ok") else 409, res)

    @staticmethod
    def _is_int(value: Any) -> bool:
        return isinstance(value, int) and not isinstance(value, bool)

    def _read_json(self) -> dict[str, Any] | None:
        length = int(self.headers.get("Content-Length", "0") or "0")
        body = self.rfile.read(length) if length > 0 else b""
        try:
            data = json.loads(body.decode("utf-8") if body else "{}")
        except (UnicodeDecodeError, json.JSONDecodeError):
            return None
        return data if isinstance(data, dict) else None

    def do_GET(self) -> None:  # pylint: disable=invalid-name
        """GET /api/health, /api/schedule."""
        profile = self.server.profile  # type: ignore[attr-defined]
        path = self.path.rstrip("/")
        if path == "/api/health":
            self._send_json(200, profile.get_control_api_health())
            return
        if path == "/api/schedule":
            self._send_result(profile.control_api_schedule())
            return
        self._send_json(404, {"error": "not_found"})

    def do_POST(self) -> None:  # pylint: disable=invalid-name
        """POST /api/mode, /api/paint, /api/value, /api/save."""
        profile = self.server.profile  # type: ignore[attr-defined]
        path = self.path.rstrip("/")
        if path not in ("/api/mode", "/api/paint", "/api/value", "/api/save"):
            self._send_json(404, {"error": "not_found"})
            return

        data = self._read_json()
        if data is None:
            self._send_json(400, {"error": "invalid_json"})
            return

        if path == "/api/save":
            self._send_result(profile.control_api_save())
            return

        if path == "/api/mode":
            mode = data.get("mode")
            if not self._is_int(mode):
                self._send_json(
                    400, {"error": "missing_fields", "required": ["mode"]}
                )
                return
            self._send_result(profile.control_api_select_mode(mode))
            return

        if path == "/api/paint":
            action = data.get("action")
            day = data.get("day")
            slot = data.get("slot")
            if action not in PAINT_ACTIONS:
                self._send_json(
                    400, {"error": "invalid_action", "allowed": list(PAINT_ACTIONS)}
                )
                return
            if action in ("begin", "extend") and not (
                self._is_int(day) and self._is_int(slot)
            ):
                self._send_json(
                    400, {"error": "missing_fields", "required": ["day", "slot"]}
                )
                return
            self._send_result(
                profile.control_api_paint(action=action, day=day, slot=slot)
            )
            return

        field = data.get("field")
        if not field or "value" not in data:
            self._send_json(
                400, {"error": "missing_fields", "required": ["field", "value"]}
            )
            return
        self._send_result(
            profile.control_api_set_value(field=str(field), value=data["value"])
        )

    def log_message(self, _fmt: str, *args: Any) -> None:  # pylint: disable=arguments-differ
        """Silences per-request stderr output."""


class ControlAPIServer:
    """Thin wrapper around ThreadingHTTPServer with the control handler."""

    def __init__(self, *, host: str, port: int, profile: Any):
        self.host = host
        self.port = port
        self.profile = profile
        self._thread: threading.Thread | None = None
        self._httpd: ThreadingHTTPServer | None = None

    def start(self) -> None:
        """Starts serving in a daemon thread."""
        httpd = ThreadingHTTPServer((self.host, self.port), _Handler)
        httpd.profile = self.profile  # type: ignore[attr-defined]
        self._httpd = httpd

        t = threading.Thread(
            target=httpd.serve_forever,
            name="heatzone-control-api",
            daemon=True)
        t.start()
        self._thread = t

    def stop(self) -> None:
        if self._httpd is not None:
            self._httpd.shutdown()
            self._httpd.server_close()
            self._httpd = None
        self._thread = None
