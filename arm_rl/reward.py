# arm_rl/reward.py

from __future__ import annotations

from arm_sim.messages import BoundingBox, Vector3

GROUND_CONTACT = 0.05


def is_ground_contact(gripper_box: BoundingBox, threshold: float = GROUND_CONTACT) -> bool:
    return gripper_box.min.z <= threshold


def horizontal_distance(a: Vector3, b: Vector3) -> float:
    # x axis only
    return abs(a.x - b.x)


def shaping_reward(gripper_pos: Vector3, goal_pos: Vector3, reward_loss: float) -> float:
    """Interim reward: penalty proportional to the gripper/goal x gap (never positive for reward_loss < 0)."""
    return float(reward_loss * horizontal_distance(gripper_pos, goal_pos))


def smoothed_delta(avg_delta: float, delta: float, alpha: float = 0.5) -> float:
    return avg_delta * (1.0 - alpha) + delta * alpha


def outcome_label(reward: float, reward_win: float) -> str:
    return "WIN" if reward >= reward_win else "LOSS"


def sign_label(reward: float) -> str:
    if reward > 0.1:
        return "POS+"
    if reward > 0.0:
        return "POS"
    if reward < 0.0:
        return "NEG"
    return "ZERO"
