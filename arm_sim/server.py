"""HTTP bridge that lets external producers publish into the arm simulator's topics."""

from __future__ import annotations

import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any

from .engine import CAMERA_TOPIC, CONTACT_TOPIC, JOINT_NAMES, ArmEngine
from .messages import MessageValidationError, contacts_from_json, frame_from_json


class ArmHTTPServer:
    def __init__(
        self,
        engine: ArmEngine,
        host: str = "127.0.0.1",
        port: int = 8000,
        mode: str = "headless",
    ):
        self.engine = engine
        self.mode = mode
        self._lock = threading.RLock()

        handler_cls = self._build_handler()
        self.httpd = ThreadingHTTPServer((host, port), handler_cls)
        self.host, self.port = self.httpd.server_address

    def _build_handler(self):
        parent = self

        class Handler(BaseHTTPRequestHandler):
            server_version = "ArmSim/1.0"

            def log_message(self, fmt: str, *args):
                return

            def _send_json(self, code: int, payload: dict[str, Any]):
                body = json.dumps(payload).encode("utf-8")
                self.send_response(code)
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)

            def _read_json(self) -> dict[str, Any]:
                length = int(self.headers.get("Content-Length", "0"))
                if length == 0:
                    return {}
                data = self.rfile.read(length)
                try:
                    obj = json.loads(data.decode("utf-8"))
                except json.JSONDecodeError as exc:
                    raise MessageValidationError(f"Invalid JSON body: {exc}") from exc
                if not isinstance(obj, dict):
                    raise MessageValidationError("JSON body must be an object")
                return obj

            def do_GET(self):
                with parent._lock:
                    if self.path == "/health":
                        self._send_json(
                            200,
                            {
                                "mode": parent.mode,
                                "joints": list(JOINT_NAMES),
                                "ready": True,
                            },
                        )
                        return

                    if self.path == "/state":
                        self._send_json(200, parent.engine.state_payload())
                        return

                    if self.path == "/joints":
                        self._send_json(200, {"joints": parent.engine.get_joint_positions()})
                        return

                self._send_json(404, {"error": "Not Found"})

            def do_POST(self):
                try:
                    body = self._read_json()
                    with parent._lock:
                        if self.path == "/camera":
                            frame = frame_from_json(body)
                            published = parent.engine.node.publish(CAMERA_TOPIC, frame)
                            self._send_json(200, {"published": published, "bytes": len(frame.data)})
                            return

                        if self.path == "/contacts":
                            batch = contacts_from_json(body)
                            published = parent.engine.node.publish(CONTACT_TOPIC, batch)
                            self._send_json(200, {"published": published, "contacts": len(batch)})
                            return

                        if self.path == "/step":
                            steps = body.get("steps", 1)
                            if not isinstance(steps, int) or steps < 0:
                                raise MessageValidationError("steps must be a non-negative integer")
                            parent.engine.run(steps, sync=True)
                            self._send_json(200, parent.engine.state_payload())
                            return

                        if self.path == "/joints":
                            joints = body.get("joints")
                            if not isinstance(joints, dict):
                                raise MessageValidationError("Missing required field: joints")
                            for name, value in joints.items():
                                if name not in JOINT_NAMES:
                                    raise MessageValidationError(f"Unknown joint: {name}")
                                if not isinstance(value, (int, float)):
                                    raise MessageValidationError(f"Joint {name} must be a number")
                                parent.engine.set_joint_position(name, float(value))
                            self._send_json(200, {"joints": parent.engine.get_joint_positions()})
                            return

                except MessageValidationError as exc:
                    self._send_json(400, {"error": str(exc)})
                    return

                self._send_json(404, {"error": "Not Found"})

        return Handler

    def serve_forever(self):
        self.httpd.serve_forever()

    def start_background(self, daemon: bool = True) -> threading.Thread:
        thread = threading.Thread(target=self.serve_forever, daemon=daemon)
        thread.start()
        return thread

    def shutdown(self):
        self.httpd.shutdown()
        self.httpd.server_close()
