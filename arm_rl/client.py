"""HTTP client for the arm simulator bridge."""

from __future__ import annotations

import json
from urllib import request

import numpy as np

from arm_sim.messages import ContactBatch, ImageFrame, contacts_to_json, frame_to_json


class ArmAPIClient:
    def __init__(self, host: str = "127.0.0.1", port: int = 8000, timeout: float = 10.0):
        self.base = f"http://{host}:{port}"
        self.timeout = timeout

    def _call(self, method: str, path: str, payload: dict | None = None) -> dict:
        data = None
        headers = {}
        if payload is not None:
            data = json.dumps(payload).encode("utf-8")
            headers["Content-Type"] = "application/json"
        req = request.Request(url=f"{self.base}{path}", method=method, data=data, headers=headers)
        with request.urlopen(req, timeout=self.timeout) as resp:
            return json.loads(resp.read().decode("utf-8"))

    def health(self) -> dict:
        return self._call("GET", "/health")

    def get_state(self) -> dict:
        return self._call("GET", "/state")

    def get_joints(self) -> dict[str, float]:
        return dict(self._call("GET", "/joints")["joints"])

    def set_joints(self, joints: dict[str, float]) -> dict[str, float]:
        out = self._call("POST", "/joints", {"joints": {k: float(v) for k, v in joints.items()}})
        return dict(out["joints"])

    def publish_frame(self, frame: ImageFrame | np.ndarray) -> dict:
        """Publish a packed frame; an (H, W, 3) uint8 array is packed first."""
        if isinstance(frame, np.ndarray):
            arr = np.ascontiguousarray(frame, dtype=np.uint8)
            if arr.ndim != 3 or arr.shape[2] != 3:
                raise ValueError(f"image array must have shape (H, W, 3), got {arr.shape}")
            frame = ImageFrame(width=arr.shape[1], height=arr.shape[0], step=arr.shape[1] * 3, data=arr.tobytes())
        return self._call("POST", "/camera", frame_to_json(frame))

    def publish_contacts(self, batch: ContactBatch) -> dict:
        return self._call("POST", "/contacts", contacts_to_json(batch))

    def step(self, steps: int = 1) -> dict:
        return self._call("POST", "/step", {"steps": int(steps)})
