import socket
import sys
import threading
from collections.abc import Iterator
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
if SRC.exists():
    sys.path.insert(0, str(SRC))

# Register shared Hypothesis profiles for deterministic CI runs and fast local loops.
from tests.util import hypothesis_profiles  # noqa: E402,F401  pylint: disable=unused-import


class ExpositionServer:
    """Loopback HTTP server whose response body and status can be swapped per test."""

    def __init__(self) -> None:
        self.body = ""
        self.status = 200
        self.content_type = "text/plain; version=0.0.4; charset=utf-8"
        self.requests = 0
        self.headers: list[dict[str, str]] = []
        self._server: ThreadingHTTPServer | None = None
        self._thread: threading.Thread | None = None

    @property
    def url(self) -> str:
        assert self._server is not None
        return f"http://127.0.0.1:{self._server.server_port}/metrics"

    def start(self) -> None:
        owner = self

        class Handler(BaseHTTPRequestHandler):
            def do_GET(self) -> None:  # noqa: N802 - http.server API
                owner.requests += 1
                owner.headers.append(dict(self.headers.items()))
                payload = owner.body.encode("utf-8")
                self.send_response(owner.status)
                self.send_header("Content-Type", owner.content_type)
                self.send_header("Content-Length", str(len(payload)))
                self.end_headers()
                self.wfile.write(payload)

            def log_message(self, *_args: object) -> None:
                return

        self._server = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if self._server is not None:
            self._server.shutdown()
            self._server.server_close()
        if self._thread is not None:
            self._thread.join(timeout=2.0)


@pytest.fixture()
def exposition_server() -> Iterator[ExpositionServer]:
    server = ExpositionServer()
    try:
        server.start()
    except PermissionError as exc:  # pragma: no cover - environment restriction
        pytest.skip(f"socket bind not permitted: {exc}")
    try:
        yield server
    finally:
        server.stop()


def pytest_configure(config: pytest.Config) -> None:
    """Ensure custom marks remain registered even when pyproject isn't picked up."""
    config.addinivalue_line("markers", "tui: tests that run the textual app headless")


class RawReplyServer:
    """Loopback socket that answers every connection with ``reply`` verbatim."""

    def __init__(self) -> None:
        self.reply = b""
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._sock.bind(("127.0.0.1", 0))
        self._sock.listen(5)
        self._sock.settimeout(0.2)
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._serve, daemon=True)

    @property
    def url(self) -> str:
        return f"http://127.0.0.1:{self._sock.getsockname()[1]}/metrics"

    def _serve(self) -> None:
        while not self._stop.is_set():
            try:
                conn, _ = self._sock.accept()
            except (TimeoutError, socket.timeout):
                continue
            except OSError:
                return
            with conn:
                conn.settimeout(2.0)
                try:
                    conn.recv(65536)
                    conn.sendall(self.reply)
                except OSError:
                    pass

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        self._thread.join(timeout=2.0)
        self._sock.close()


@pytest.fixture()
def raw_reply_server() -> Iterator[RawReplyServer]:
    try:
        server = RawReplyServer()
    except PermissionError as exc:  # pragma: no cover - environment restriction
        pytest.skip(f"socket bind not permitted: {exc}")
    server.start()
    try:
        yield server
    finally:
        server.stop()
