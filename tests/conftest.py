"""Pytest configuration & shared fixtures for the scraper.

Responsibilities:
1. Ensure project root on sys.path.
2. Provide a local fake Nomad HTTP API and helpers for building runtime contexts.
"""
from __future__ import annotations

import contextlib
import json
import socket
import sys
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from _helpers import FakeNomad  # noqa: E402


def _find_free_port() -> int:
    with contextlib.closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


@pytest.fixture()
def fake_nomad():
    fake = FakeNomad()

    class _Handler(BaseHTTPRequestHandler):
        def do_GET(self):  # noqa: N802
            fake.requests.append(self.path)
            status, body = fake.routes.get(self.path, (404, {"error": "not found"}))
            raw = body.encode() if isinstance(body, str) else json.dumps(body).encode()
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(raw)))
            self.end_headers()
            self.wfile.write(raw)

        def log_message(self, format, *args):  # noqa: A002
            return None

    server = ThreadingHTTPServer(('127.0.0.1', 0), _Handler)
    thread = threading.Thread(target=server.serve_forever, name="fake-nomad", daemon=True)
    thread.start()
    fake.base_url = f"http://127.0.0.1:{server.server_address[1]}"
    try:
        yield fake
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=5)


@pytest.fixture()
def free_port() -> int:
    return _find_free_port()
