"""Message and geometry types exchanged between the simulator and the control core."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ImageFrame:
    width: int
    height: int
    step: int  # bytes per row
    data: bytes

    @property
    def bytes_per_pixel(self) -> int:
        if self.width <= 0:
            return 0
        return self.step // self.width


@dataclass
class Contact:
    collision1: str
    collision2: str


@dataclass
class ContactBatch:
    contacts: list[Contact] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.contacts)


@dataclass
class Vector3:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


@dataclass
class BoundingBox:
    min: Vector3
    max: Vector3

    @property
    def center(self) -> Vector3:
        return Vector3(
            (self.min.x + self.max.x) * 0.5,
            (self.min.y + self.max.y) * 0.5,
            (self.min.z + self.max.z) * 0.5,
        )

    def intersects(self, other: "BoundingBox") -> bool:
        return (
            self.min.x <= other.max.x
            and self.max.x >= other.min.x
            and self.min.y <= other.max.y
            and self.max.y >= other.min.y
            and self.min.z <= other.max.z
            and self.max.z >= other.min.z
        )

    @classmethod
    def around(cls, center: Vector3, half_extents: tuple[float, float, float]) -> "BoundingBox":
        hx, hy, hz = half_extents
        return cls(
            min=Vector3(center.x - hx, center.y - hy, center.z - hz),
            max=Vector3(center.x + hx, center.y + hy, center.z + hz),
        )


class MessageValidationError(ValueError):
    """Raised when a JSON message payload is malformed."""


def frame_to_json(frame: ImageFrame) -> dict[str, Any]:
    return {
        "width": frame.width,
        "height": frame.height,
        "step": frame.step,
        "data": base64.b64encode(frame.data).decode("ascii"),
    }


def frame_from_json(payload: dict[str, Any]) -> ImageFrame:
    for key in ("width", "height", "step", "data"):
        if key not in payload:
            raise MessageValidationError(f"Missing required field: {key}")
    width, height, step = payload["width"], payload["height"], payload["step"]
    if not all(isinstance(v, int) and v > 0 for v in (width, height, step)):
        raise MessageValidationError("width, height and step must be positive integers")
    try:
        data = base64.b64decode(payload["data"], validate=True)
    except (binascii.Error, TypeError) as exc:
        raise MessageValidationError(f"data must be base64: {exc}") from exc
    return ImageFrame(width=width, height=height, step=step, data=data)


def contacts_to_json(batch: ContactBatch) -> dict[str, Any]:
    return {"contacts": [{"collision1": c.collision1, "collision2": c.collision2} for c in batch.contacts]}


def contacts_from_json(payload: dict[str, Any]) -> ContactBatch:
    items = payload.get("contacts")
    if not isinstance(items, list):
        raise MessageValidationError("contacts must be a list")
    out: list[Contact] = []
    for item in items:
        if not isinstance(item, dict):
            raise MessageValidationError("each contact must be an object")
        c1, c2 = item.get("collision1"), item.get("collision2")
        if not isinstance(c1, str) or not isinstance(c2, str):
            raise MessageValidationError("collision1 and collision2 must be strings")
        out.append(Contact(collision1=c1, collision2=c2))
    return ContactBatch(out)
