"""Shared dataclasses for the control core."""

from __future__ import annotations

from dataclasses import dataclass

import torch


@dataclass
class Transition:
    state: torch.Tensor  # shape (C, H, W)
    action: int
    reward: float
    next_state: torch.Tensor | None  # None for terminal transitions
    terminal: bool


@dataclass
class EpisodeResult:
    episode: int
    frames: int
    reward: float
    success: bool
    accuracy: float
    successful_episodes: int
    total_episodes: int
    last_goal_distance: float
