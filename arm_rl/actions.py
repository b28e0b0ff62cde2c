"""Discrete action decoding and application to joint references."""

from __future__ import annotations

import numbers

from .agent import InvalidActionError
from .config import ArmConfig

INCREASE = 1
DECREASE = -1


def decode_action(action: int, dof: int) -> tuple[int, int]:
    """Map action index to (joint index, direction): even increases, odd decreases."""
    if not isinstance(action, numbers.Integral) or isinstance(action, bool):
        raise InvalidActionError(f"agent selected non-integer action {action!r}")
    action = int(action)
    if action < 0 or action >= dof * 2:
        raise InvalidActionError(f"agent selected invalid action {action}; expected 0..{dof * 2 - 1}")
    return action // 2, DECREASE if action & 1 else INCREASE


def clamp(value: float, low: float, high: float) -> float:
    if value < low:
        return low
    if value > high:
        return high
    return value


def apply_position_action(ref: list[float], action: int, cfg: ArmConfig) -> list[float]:
    joint, direction = decode_action(action, len(ref))
    out = list(ref)
    out[joint] = clamp(out[joint] + direction * cfg.action_joint_delta, cfg.joint_min, cfg.joint_max)
    return out


def apply_velocity_action(
    ref: list[float],
    velocity: list[float],
    action: int,
    cfg: ArmConfig,
) -> tuple[list[float], list[float]]:
    """Nudge one joint's velocity, then integrate every joint; a joint at a bound stops."""
    joint, direction = decode_action(action, len(ref))
    vel = list(velocity)
    vel[joint] = clamp(vel[joint] + direction * cfg.action_vel_delta, cfg.velocity_min, cfg.velocity_max)

    out = list(ref)
    for n in range(len(out)):
        out[n] += vel[n]
        if out[n] < cfg.joint_min:
            out[n] = cfg.joint_min
            vel[n] = 0.0
        elif out[n] > cfg.joint_max:
            out[n] = cfg.joint_max
            vel[n] = 0.0
    return out, vel
