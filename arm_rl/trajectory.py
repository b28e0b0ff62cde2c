"""Scripted return-to-home animation."""

from __future__ import annotations

from typing import Callable

from .actions import clamp
from .config import ArmConfig
from .episode import EpisodeState, ModeEvent


def step_toward_home(ref: list[float], home: list[float], step: float, low: float, high: float) -> list[float]:
    out = []
    for current, target in zip(ref, home):
        if abs(target - current) <= step:
            value = target
        elif current < target:
            value = current + step
        else:
            value = current - step
        out.append(clamp(value, low, high))
    return out


class TrajectoryController:
    def __init__(self, cfg: ArmConfig, on_midpoint: Callable[[], None] | None = None):
        self.cfg = cfg
        self.on_midpoint = on_midpoint
        self.step_size = cfg.animation_step_size
        self.counter = 0

    def step(self, state: EpisodeState) -> bool:
        """Advance one animation tick; True when the animation just completed."""
        cfg = self.cfg
        state.joint_ref = step_toward_home(
            state.joint_ref, cfg.home_position, self.step_size, cfg.joint_min, cfg.joint_max
        )
        self.counter += 1

        if self.counter > cfg.animation_steps:
            self.counter = 0
            state.apply(ModeEvent.ANIMATION_COMPLETE)
            return True
        if self.counter == cfg.animation_steps // 2 and self.on_midpoint is not None:
            self.on_midpoint()
        return False

