"""JSON-over-HTTP operator surface for the trading engine."""

from __future__ import annotations

import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Tuple

from tools.config_validator import bot_config_from_payload

if TYPE_CHECKING:
    from core.engine import TradingEngine

logger = logging.getLogger(__name__)

MAX_BODY_BYTES = 64 * 1024

Response = Tuple[int, Any]


class OperatorServer:
    """
    Operator HTTP server bound to one engine.

    GET  /health /stats /activity /balance-history /orders /config /status
    POST /config /start /stop /cycle /demo-cycle
    """

    def __init__(self, engine: "TradingEngine", host: str = "127.0.0.1", port: int = 8080):
        self._engine = engine
        self._host = host
        self._port = int(port)
        self._server: Optional[HTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> Optional[int]:
        if self._server is None:
            return None
        return self._server.server_port

    def start(self) -> None:
        if self._thread:
            return

        handler_cls = self._build_handler(self.get_routes(), self.post_routes())
        self._server = HTTPServer((self._host, self._port), handler_cls)
        self._thread = threading.Thread(target=self._server.serve_forever, name="OperatorServer", daemon=True)
        self._thread.start()
        logger.info("Operator server listening on %s:%s", self._host, self._server.server_port)

    def stop(self) -> None:
        if not self._server:
            return
        try:
            self._server.shutdown()
            self._server.server_close()
        except OSError as exc:
            logger.warning("Failed shutting down operator server: %s", exc)
        if self._thread:
            self._thread.join(timeout=3)
        self._thread = None
        self._server = None

    # ─── Routes ───────────────────────────────────────────────────────

    def get_routes(self) -> Dict[str, Callable[[], Response]]:
        engine = self._engine
        return {
            "/health": lambda: (200, {"ok": True, "running": engine.is_running()}),
            "/status": lambda: (200, {"running": engine.is_running()}),
            "/stats": lambda: (200, engine.get_stats().to_dict()),
            "/activity": lambda: (200, [e.to_dict() for e in engine.get_activity_log()]),
            "/balance-history": lambda: (200, [p.to_dict() for p in engine.get_balance_history()]),
            "/orders": lambda: (200, [o.to_dict() for o in engine.get_orders()]),
            "/config": lambda: (200, engine.get_config().to_dict(mask_secrets=True)),
        }

    def post_routes(self) -> Dict[str, Callable[[Any], Response]]:
        engine = self._engine

        def start(_body: Any) -> Response:
            engine.start()
            return 200, {"running": engine.is_running()}

        def stop(_body: Any) -> Response:
            engine.stop()
            return 200, {"running": engine.is_running()}

        def configure(body: Any) -> Response:
            try:
                config = bot_config_from_payload(body, base=engine.get_config())
            except ValueError as e:
                return 400, {"error": str(e)}
            engine.configure(config)
            return 200, config.to_dict(mask_secrets=True)

        def cycle(_body: Any) -> Response:
            return 200, [e.to_dict() for e in engine.run_cycle()]

        def demo_cycle(_body: Any) -> Response:
            return 200, engine.run_demo_cycle().to_dict()

        return {
            "/start": start,
            "/stop": stop,
            "/config": configure,
            "/cycle": cycle,
            "/demo-cycle": demo_cycle,
        }

    @staticmethod
    def _build_handler(get_routes: Dict[str, Callable[[], Response]],
                       post_routes: Dict[str, Callable[[Any], Response]]):

        class OperatorHandler(BaseHTTPRequestHandler):
            def _send_json(self, status: int, payload: Any) -> None:
                body = json.dumps(payload).encode("utf-8")
                self.send_response(status)
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)

            def _route_path(self) -> str:
                path = self.path.split("?", 1)[0]
                return path.rstrip("/") or "/"

            def _read_body(self) -> Any:
                length = int(self.headers.get("Content-Length") or 0)
                if length <= 0:
                    return {}
                if length > MAX_BODY_BYTES:
                    raise ValueError("request body too large")
                raw = self.rfile.read(length)
                try:
                    return json.loads(raw.decode("utf-8"))
                except (UnicodeDecodeError, json.JSONDecodeError) as e:
                    raise ValueError(f"invalid JSON body: {e}") from e

            def do_GET(self):  # type: ignore[override]
                route = get_routes.get(self._route_path())
                if route is None:
                    self._send_json(404, {"error": "not found"})
                    return
                status, payload = route()
                self._send_json(status, payload)

            def do_POST(self):  # type: ignore[override]
                route = post_routes.get(self._route_path())
                if route is None:
                    self._send_json(404, {"error": "not found"})
                    return
                try:
                    body = self._read_body()
                except ValueError as e:
                    self._send_json(400, {"error": str(e)})
                    return
                status, payload = route(body)
                self._send_json(status, payload)

            def log_message(self, format: str, *args: Any) -> None:
                logger.debug("operator %s - %s", self.address_string(), format % args)

        return OperatorHandler


__all__ = ["OperatorServer"]
