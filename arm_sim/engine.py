"""Kinematic arm-and-prop simulator acting as host for the control core."""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from typing import Any, Callable

import numpy as np

from .messages import BoundingBox, Contact, ContactBatch, ImageFrame, Vector3
from .transport import Node

CAMERA_TOPIC = "/arm_world/camera/link/camera/image"
CONTACT_TOPIC = "/arm_world/tube/tube_link/my_contact"

JOINT_NAMES = ("base", "joint1", "joint2")
GRIPPER_LINK = "gripperbase"
PROP_MODEL = "tube"

GROUND_COLLISION = "ground_plane::link::collision"
PROP_COLLISION = "tube::tube_link::tube_collision"
GRIPPER_COLLISION = "arm::gripperbase::gripper_link"

SHOULDER_HEIGHT = 0.35
UPPER_ARM = 0.45
FOREARM = 0.45
GRIPPER_HALF = (0.04, 0.04, 0.04)
PROP_HOME = (0.75, 0.0, 0.1)
PROP_HALF = (0.03, 0.03, 0.1)

VIEW_X_RANGE = (-0.25, 1.25)
VIEW_Z_RANGE = (0.0, 1.5)


@dataclass
class UpdateInfo:
    sim_time: float
    iteration: int


class ArmEngine:
    """Thread-safe 3-joint arm with a single prop, a side-view camera and contact sensing."""

    def __init__(
        self,
        dt: float = 0.01,
        camera_every: int = 1,
        image_size: tuple[int, int] = (64, 64),
        node: Node | None = None,
    ):
        if dt <= 0.0:
            raise ValueError("dt must be > 0")
        if camera_every < 1:
            raise ValueError("camera_every must be >= 1")

        self.dt = float(dt)
        self.camera_every = int(camera_every)
        self.image_width, self.image_height = image_size
        self.node = node or Node()
        self._lock = threading.RLock()
        self._update_callbacks: list[Callable[[UpdateInfo], Any]] = []

        self.sim_time = 0.0
        self.iteration = 0
        self.prop_resets = 0
        self._joints = {name: 0.0 for name in JOINT_NAMES}
        self._prop_center = Vector3(*PROP_HOME)
        self._prop_velocity = Vector3()

    # --- host surface used by the control core

    def connect_world_update(self, callback: Callable[[UpdateInfo], Any]) -> None:
        with self._lock:
            self._update_callbacks.append(callback)

    def set_joint_position(self, name: str, value: float) -> None:
        with self._lock:
            if name not in self._joints:
                raise KeyError(f"Unknown joint: {name}")
            self._joints[name] = float(value)

    def get_joint_positions(self) -> dict[str, float]:
        with self._lock:
            return dict(self._joints)

    def reset_prop_dynamics(self) -> None:
        with self._lock:
            self._prop_center = Vector3(*PROP_HOME)
            self._prop_velocity = Vector3()
            self.prop_resets += 1

    def get_bounding_box(self, name: str) -> BoundingBox | None:
        with self._lock:
            if name == PROP_MODEL:
                return BoundingBox.around(self._prop_center, PROP_HALF)
            if name == GRIPPER_LINK:
                return BoundingBox.around(self._gripper_center(), GRIPPER_HALF)
            return None

    def get_world_position(self, name: str) -> Vector3 | None:
        box = self.get_bounding_box(name)
        if box is None:
            return None
        return box.center

    # --- kinematics and sensors

    def _arm_points(self) -> list[Vector3]:
        yaw = self._joints["base"]
        t1 = self._joints["joint1"]
        t12 = t1 + self._joints["joint2"]
        r1 = UPPER_ARM * math.sin(t1)
        z1 = SHOULDER_HEIGHT + UPPER_ARM * math.cos(t1)
        r2 = r1 + FOREARM * math.sin(t12)
        z2 = z1 + FOREARM * math.cos(t12)
        c, s = math.cos(yaw), math.sin(yaw)
        return [
            Vector3(0.0, 0.0, 0.0),
            Vector3(0.0, 0.0, SHOULDER_HEIGHT),
            Vector3(r1 * c, r1 * s, z1),
            Vector3(r2 * c, r2 * s, z2),
        ]

    def _gripper_center(self) -> Vector3:
        return self._arm_points()[-1]

    def contacts(self) -> ContactBatch:
        with self._lock:
            gripper = BoundingBox.around(self._gripper_center(), GRIPPER_HALF)
            prop = BoundingBox.around(self._prop_center, PROP_HALF)
            out = [Contact(PROP_COLLISION, GROUND_COLLISION)]
            if gripper.intersects(prop):
                out.append(Contact(PROP_COLLISION, GRIPPER_COLLISION))
            if gripper.min.z <= 0.0:
                out.append(Contact(GRIPPER_COLLISION, GROUND_COLLISION))
            return ContactBatch(out)

    def _to_pixel(self, p: Vector3) -> tuple[int, int]:
        x0, x1 = VIEW_X_RANGE
        z0, z1 = VIEW_Z_RANGE
        col = int((p.x - x0) / (x1 - x0) * (self.image_width - 1))
        row = int((1.0 - (p.z - z0) / (z1 - z0)) * (self.image_height - 1))
        return (
            int(np.clip(row, 0, self.image_height - 1)),
            int(np.clip(col, 0, self.image_width - 1)),
        )

    def render_camera(self) -> ImageFrame:
        """Side view (x right, z up) as packed 8-bit RGB."""
        with self._lock:
            img = np.full((self.image_height, self.image_width, 3), 40, dtype=np.uint8)
            ground_row, _ = self._to_pixel(Vector3(0.0, 0.0, 0.0))
            img[ground_row:, :] = (90, 70, 50)

            prop = BoundingBox.around(self._prop_center, PROP_HALF)
            r_top, c_left = self._to_pixel(Vector3(prop.min.x, 0.0, prop.max.z))
            r_bot, c_right = self._to_pixel(Vector3(prop.max.x, 0.0, prop.min.z))
            img[r_top : r_bot + 1, c_left : c_right + 1] = (220, 30, 30)

            points = self._arm_points()
            for a, b in zip(points[:-1], points[1:]):
                for t in np.linspace(0.0, 1.0, 24):
                    p = Vector3(a.x + (b.x - a.x) * t, 0.0, a.z + (b.z - a.z) * t)
                    img[self._to_pixel(p)] = (230, 230, 230)
            row, col = self._to_pixel(points[-1])
            img[max(row - 1, 0) : row + 2, max(col - 1, 0) : col + 2] = (30, 200, 30)

        return ImageFrame(
            width=self.image_width,
            height=self.image_height,
            step=self.image_width * 3,
            data=img.tobytes(),
        )

    # --- world loop

    def step(self, sync: bool = False) -> UpdateInfo:
        """Advance one tick: update callbacks, then sensor publication."""
        with self._lock:
            self.sim_time += self.dt
            self.iteration += 1
            info = UpdateInfo(sim_time=self.sim_time, iteration=self.iteration)
            callbacks = list(self._update_callbacks)

        for callback in callbacks:
            callback(info)

        if info.iteration % self.camera_every == 0:
            self.node.publish(CAMERA_TOPIC, self.render_camera())
        self.node.publish(CONTACT_TOPIC, self.contacts())

        if sync:
            self.node.flush(timeout=5.0)
        return info

    def run(self, steps: int, sync: bool = False) -> UpdateInfo | None:
        if not isinstance(steps, int) or steps < 0:
            raise ValueError("steps must be a non-negative integer")
        info = None
        for _ in range(steps):
            info = self.step(sync=sync)
        return info

    def state_payload(self) -> dict[str, Any]:
        with self._lock:
            gripper = self._gripper_center()
            return {
                "sim_time": self.sim_time,
                "iteration": self.iteration,
                "joints": dict(self._joints),
                "gripper": [gripper.x, gripper.y, gripper.z],
                "prop": [self._prop_center.x, self._prop_center.y, self._prop_center.z],
                "prop_velocity": [self._prop_velocity.x, self._prop_velocity.y, self._prop_velocity.z],
            }

    def close(self) -> None:
        self.node.close()
