"""Convolutional Q-network over planar camera tensors."""

from __future__ import annotations

import torch
import torch.nn as nn


class ConvQNetwork(nn.Module):
    """x[B, C, H, W] in 0..255 -> 3x (conv 3x3 stride 2, ELU) -> linear(128) -> ELU -> Q[B, A]."""

    HIDDEN_DIM = 128

    def __init__(self, width: int, height: int, channels: int, num_actions: int, seed: int | None = None):
        super().__init__()
        if seed is not None:
            torch.manual_seed(seed)
        self.input_shape = (int(channels), int(height), int(width))
        self.num_actions = int(num_actions)
        self.features = nn.Sequential(
            nn.Conv2d(channels, 16, kernel_size=3, stride=2, padding=1),
            nn.ELU(),
            nn.Conv2d(16, 32, kernel_size=3, stride=2, padding=1),
            nn.ELU(),
            nn.Conv2d(32, 32, kernel_size=3, stride=2, padding=1),
            nn.ELU(),
            nn.Flatten(),
        )
        with torch.no_grad():
            flat_dim = int(self.features(torch.zeros((1, *self.input_shape))).shape[1])
        self.linear1 = nn.Linear(flat_dim, self.HIDDEN_DIM)
        self.linear2 = nn.Linear(self.HIDDEN_DIM, self.num_actions)
        self.activation = nn.ELU()

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        x = self.features(x / 255.0)
        x = self.activation(self.linear1(x))
        return self.linear2(x)

    @staticmethod
    def greedy_actions(q_values: torch.Tensor) -> torch.Tensor:
        return torch.argmax(q_values, dim=-1)
