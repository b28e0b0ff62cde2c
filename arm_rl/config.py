"""Runtime configuration for the arm control core."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from arm_sim.engine import (
    CAMERA_TOPIC,
    CONTACT_TOPIC,
    GRIPPER_COLLISION,
    GRIPPER_LINK,
    GROUND_COLLISION,
    PROP_COLLISION,
    PROP_MODEL,
)


@dataclass
class ArmConfig:
    # joint limits and action deltas
    joint_min: float = -0.75
    joint_max: float = 2.0
    velocity_control: bool = False
    velocity_min: float = -0.2
    velocity_max: float = 0.2
    action_joint_delta: float = 0.15
    action_vel_delta: float = 0.1
    lock_base: bool = True
    home_position: list[float] | None = None

    # episode and reward shaping
    max_episode_length: int = 20
    animation_steps: int = 1000
    reward_win: float = 1.0
    reward_loss: float = -1.0
    ground_contact: float = 0.05
    warmup_sim_time: float = 1.5

    # scene names
    prop_name: str = PROP_MODEL
    gripper_name: str = GRIPPER_LINK
    collision_filter: str = GROUND_COLLISION
    collision_item: str = PROP_COLLISION
    collision_point: str = GRIPPER_COLLISION
    camera_topic: str = CAMERA_TOPIC
    contact_topic: str = CONTACT_TOPIC

    # policy input and DQN hyperparameters
    input_width: int = 64
    input_height: int = 64
    input_channels: int = 3
    optimizer: str = "RMSprop"
    learning_rate: float = 0.001
    replay_memory: int = 1000
    batch_size: int = 64
    gamma: float = 0.9
    eps_start: float = 0.9
    eps_end: float = 0.05
    eps_decay: int = 200
    allow_random: bool = True
    seed: int | None = None

    def __post_init__(self):
        if self.home_position is None:
            home = [0.0] * self.dof
            home[1] = 0.25
            self.home_position = home
        else:
            self.home_position = [float(v) for v in self.home_position]

    @property
    def dof(self) -> int:
        return 2 if self.lock_base else 3

    @property
    def num_actions(self) -> int:
        return self.dof * 2

    @property
    def animation_step_size(self) -> float:
        return (self.joint_max - self.joint_min) / float(self.animation_steps)

    def validate(self) -> "ArmConfig":
        if self.joint_min >= self.joint_max:
            raise ValueError("joint_min must be < joint_max")
        if self.velocity_min >= self.velocity_max:
            raise ValueError("velocity_min must be < velocity_max")
        if self.animation_steps < 2:
            raise ValueError("animation_steps must be >= 2")
        if len(self.home_position) != self.dof:
            raise ValueError(f"home_position must have {self.dof} entries, got {len(self.home_position)}")
        for v in self.home_position:
            if v < self.joint_min or v > self.joint_max:
                raise ValueError(f"home_position value {v} is outside [{self.joint_min}, {self.joint_max}]")
        if self.input_width < 1 or self.input_height < 1 or self.input_channels != 3:
            raise ValueError("input tensor must be WxHx3 with positive width/height")
        if self.max_episode_length < 0:
            raise ValueError("max_episode_length must be >= 0")
        return self

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ArmConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(unknown)}")
        return cls(**data).validate()

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def load_config(path: str | Path | None) -> ArmConfig:
    """Load YAML config; a missing path yields the defaults."""
    if path is None:
        return ArmConfig().validate()
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config {path} must contain a mapping")
    return ArmConfig.from_dict(data)
