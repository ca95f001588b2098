import json
import socket
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest
import requests


class _Handler(BaseHTTPRequestHandler):
    def log_message(self, format, *args):
        pass

    def _reply(self, status: int, payload: dict):
        data = json.dumps(payload).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("X-Test-Server", "yes")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def _send_body_slowly(self, stall: bool):
        """Headers go out at once; the 6 byte body stalls or arrives a byte every 0.6 s."""
        self.send_response(200)
        self.send_header("Content-Type", "text/plain")
        self.send_header("Content-Length", "6")
        self.end_headers()
        try:
            if stall:
                self.wfile.write(b"ab")
                time.sleep(3)
                return
            for byte in b"abcdef":
                self.wfile.write(bytes([byte]))
                time.sleep(0.6)
        except (BrokenPipeError, ConnectionResetError):
            pass

    def _handle(self):
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length).decode("utf-8") if length else None

        if self.path.startswith("/slow"):
            time.sleep(3)
            try:
                self._reply(200, {"late": True})
            except (BrokenPipeError, ConnectionResetError):
                pass
            return

        if self.path.startswith(("/stall", "/trickle")):
            self._send_body_slowly(stall=self.path.startswith("/stall"))
            return

        if self.path.startswith("/status/"):
            code = int(self.path.rsplit("/", 1)[1])
            self._reply(code, {"status": code})
            return

        self._reply(
            200,
            {
                "method": self.command,
                "path": self.path,
                "headers": dict(self.headers),
                "body": body,
            },
        )

    do_GET = do_POST = do_PUT = do_PATCH = do_DELETE = _handle


@pytest.fixture
def http_server(monkeypatch):
    """Local HTTP server; yields its base URL."""
    monkeypatch.setenv("NO_PROXY", "127.0.0.1,localhost")
    monkeypatch.setenv("no_proxy", "127.0.0.1,localhost")
    server = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


@pytest.fixture
def session():
    s = requests.Session()
    s.trust_env = False
    yield s
    s.close()


@pytest.fixture
def closed_port():
    """A local port with nothing listening on it."""
    sock = socket.socket()
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port
