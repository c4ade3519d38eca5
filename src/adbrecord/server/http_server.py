from __future__ import annotations

import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, cast
from urllib.parse import parse_qs, urlsplit

from ..errors import ConfigurationError, NoSuchRecordingError, RecorderError
from ..recording.manager import RecordingManager
from ..utils.logging import get_logger

logger = get_logger(__name__)

_KEY_PARAMS = ("device", "className", "testName")


class _RecorderHTTPServer(ThreadingHTTPServer):
    """ThreadingHTTPServer with a typed recording manager attribute."""

    daemon_threads = True

    def __init__(
        self,
        server_address: tuple[str, int],
        RequestHandlerClass: type[BaseHTTPRequestHandler],  # noqa: N803 (arg name from base)
        manager: RecordingManager,
    ) -> None:
        super().__init__(server_address, RequestHandlerClass)
        self.manager: RecordingManager = manager


class _RecorderHandler(BaseHTTPRequestHandler):
    """
    Start/stop endpoints called around each test.

    Every request runs on its own thread, so one device's slow stop does not
    hold up another device.

      GET  /health
      GET|POST /start?device=<serial>&className=<class>&testName=<method>
      GET|POST /stop?device=<serial>&className=<class>&testName=<method>
    """

    def log_message(self, fmt: str, *args: Any) -> None:  # noqa: A003 - base class API
        logger.debug("http_access_log", message=fmt % args)

    def do_GET(self) -> None:  # noqa: N802 - method name defined by base class
        self._dispatch()

    def do_POST(self) -> None:  # noqa: N802 - method name defined by base class
        self._dispatch()

    def _dispatch(self) -> None:
        parsed = urlsplit(self.path)
        if parsed.path == "/health":
            self._send_text(200, "OK")
            return
        if parsed.path not in ("/start", "/stop"):
            self._send_text(404, "Not Found")
            return

        query = {k: v[-1] for k, v in parse_qs(parsed.query).items() if v}
        missing = [p for p in _KEY_PARAMS if not query.get(p)]
        if missing:
            self._send_json(400, {"error": f"missing parameters: {', '.join(missing)}"})
            return

        manager = cast(_RecorderHTTPServer, self.server).manager
        device, clazz, test = (query[p] for p in _KEY_PARAMS)
        try:
            if parsed.path == "/start":
                manager.start_recording(device, clazz, test)
                self._send_json(200, {"status": "started"})
            else:
                video = manager.stop_recording(device, clazz, test)
                self._send_json(200, {"video": str(video)})
        except NoSuchRecordingError as e:
            self._send_json(404, {"error": str(e)})
        except ConfigurationError as e:
            self._send_json(409, {"error": str(e)})
        except RecorderError as e:
            logger.error("recorder_request_failed", path=parsed.path, error=str(e))
            self._send_json(500, {"error": str(e)})
        except Exception as e:  # Handler must never crash the server thread
            logger.exception("recorder_handler_error", path=parsed.path, error=str(e))
            self._send_json(500, {"error": "Internal Server Error"})

    def _send_json(self, code: int, payload: dict[str, Any]) -> None:
        self._send(code, json.dumps(payload).encode("utf-8"), "application/json")

    def _send_text(self, code: int, text: str) -> None:
        self._send(code, text.encode("utf-8"), "text/plain; charset=utf-8")

    def _send(self, code: int, data: bytes, content_type: str) -> None:
        self.send_response(code)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)


class RecorderHttpServer:
    """Convenience wrapper around ThreadingHTTPServer for start/stop."""

    def __init__(self, host: str, port: int, manager: RecordingManager) -> None:
        self._server = _RecorderHTTPServer((host, port), _RecorderHandler, manager)
        self._thread: threading.Thread | None = None

    @property
    def address(self) -> tuple[str, int]:
        return self._server.server_address  # type: ignore[return-value]

    @property
    def url(self) -> str:
        host, port = self.address[0], self.address[1]
        return f"http://{host}:{port}"

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._thread = threading.Thread(
            target=self._server.serve_forever, name="RecorderHttpServer", daemon=True
        )
        self._thread.start()
        logger.info("recorder_server_started", host=self.address[0], port=self.address[1])

    def stop(self) -> None:
        try:
            self._server.shutdown()
            self._server.server_close()
        finally:
            if self._thread:
                self._thread.join(timeout=5)
                self._thread = None
            logger.info("recorder_server_stopped")


__all__ = ["RecorderHttpServer"]
