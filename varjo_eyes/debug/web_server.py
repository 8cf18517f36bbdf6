"""Lightweight JSON debug endpoint exposing the conditioner's latest output."""

import json
import threading
from dataclasses import asdict
from http.server import HTTPServer, BaseHTTPRequestHandler
from socketserver import ThreadingMixIn


class ThreadingHTTPServer(ThreadingMixIn, HTTPServer):
    daemon_threads = True


class DebugState:
    """Shared state between the conditioning loop and the debug server."""

    def __init__(self):
        self.lock = threading.Lock()
        self.expressions = None   # Latest ExpressionSet snapshot
        self.eyes = {}            # Per-eye conditioning state as dicts
        self.gaze_mode = "NONE"
        self.config = None        # Active ConditioningConfig
        self.cycle_rate = 0.0     # Conditioning cycles per second
        self.failed_reads = 0

    def update_cycle(self, expressions, conditioner):
        with self.lock:
            self.expressions = expressions.copy()
            self.eyes = {
                "left": asdict(conditioner.eye_state(True)),
                "right": asdict(conditioner.eye_state(False)),
            }
            self.gaze_mode = conditioner.gaze_mode.name
            self.config = conditioner.config

    def update_stats(self, cycle_rate: float, failed_reads: int):
        with self.lock:
            self.cycle_rate = cycle_rate
            self.failed_reads = failed_reads

    def expressions_json(self) -> dict:
        with self.lock:
            if self.expressions is None:
                return {}
            return self.expressions.to_dict()

    def state_json(self) -> dict:
        with self.lock:
            return {
                "gaze_mode": self.gaze_mode,
                "eyes": {name: dict(eye) for name, eye in self.eyes.items()},
                "cycle_rate": self.cycle_rate,
                "failed_reads": self.failed_reads,
            }

    def config_json(self) -> dict:
        with self.lock:
            if self.config is None:
                return {}
            data = asdict(self.config)
            data["openness_strategy"] = self.config.openness_strategy.value
            return data


_INDEX_HTML = b"""\
<html><head><title>Varjo Eyes Debug</title></head>
<body style="background:#111; color:#0f0; font-family:monospace;">
<h2>Varjo Eyes - Debug</h2>
<ul>
<li><a href="/api/expressions">/api/expressions</a></li>
<li><a href="/api/state">/api/state</a></li>
<li><a href="/api/config">/api/config</a></li>
</ul>
</body></html>
"""


class DebugHandler(BaseHTTPRequestHandler):
    debug_state = None  # Set before starting server

    def do_GET(self):
        if self.path == "/":
            self._send_html(_INDEX_HTML)
        elif self.path == "/api/expressions":
            self._send_json(self.debug_state.expressions_json())
        elif self.path == "/api/state":
            self._send_json(self.debug_state.state_json())
        elif self.path == "/api/config":
            self._send_json(self.debug_state.config_json())
        else:
            self.send_response(404)
            self.end_headers()

    def _send_html(self, content: bytes):
        self.send_response(200)
        self.send_header("Content-Type", "text/html")
        self.end_headers()
        self.wfile.write(content)

    def _send_json(self, data, status=200):
        body = json.dumps(data).encode()
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        pass  # Suppress request logging


def start_debug_server(debug_state: DebugState, port: int = 8080):
    """Start the debug web server in a daemon thread."""
    DebugHandler.debug_state = debug_state
    server = ThreadingHTTPServer(("0.0.0.0", port), DebugHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server
