"""Checkpoint management for DQN agent weights."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import torch

from .agent import DQNAgent


class CheckpointManager:
    FILE_PATTERN = re.compile(r"dqn_ep(\d+)\.pt$")

    def __init__(self, checkpoint_dir: str = "checkpoints"):
        self.dir = Path(checkpoint_dir)
        self.dir.mkdir(parents=True, exist_ok=True)

    def _path_for_episode(self, episode: int) -> Path:
        return self.dir / f"dqn_ep{episode:07d}.pt"

    def save(
        self,
        agent: DQNAgent,
        episode: int,
        metadata: dict[str, Any] | None = None,
    ) -> Path:
        path = self._path_for_episode(episode)
        payload: dict[str, Any] = {
            "episode": int(episode),
            "input_shape": list(agent.input_shape),
            "num_actions": int(agent.num_actions),
            "metadata": metadata or {},
        }
        payload.update(agent.state_dict())
        torch.save(payload, path)
        return path

    def latest_path(self) -> Path | None:
        best_ep = -1
        best_path: Path | None = None
        for p in self.dir.glob("dqn_ep*.pt"):
            m = self.FILE_PATTERN.search(p.name)
            if not m:
                continue
            ep = int(m.group(1))
            if ep > best_ep:
                best_ep = ep
                best_path = p
        return best_path

    def load(self, path: str | Path) -> dict[str, Any]:
        path = Path(path)
        data = torch.load(path, map_location="cpu")
        if not isinstance(data, dict) or "model_state_dict" not in data:
            raise ValueError(f"Checkpoint {path} is not a valid DQN checkpoint")
        return data

    def restore(self, agent: DQNAgent, path: str | Path) -> int:
        data = self.load(path)
        if tuple(data.get("input_shape", ())) != agent.input_shape or data.get("num_actions") != agent.num_actions:
            raise ValueError(
                f"Checkpoint {path} was saved for input {data.get('input_shape')} "
                f"and {data.get('num_actions')} actions"
            )
        agent.load_state_dict(data)
        return int(data.get("episode", 0))

    def restore_latest(self, agent: DQNAgent) -> int:
        """Load the newest checkpoint into agent; returns its episode, or 0 if none is usable."""
        path = self.latest_path()
        if path is None:
            return 0
        try:
            return self.restore(agent, path)
        except (ValueError, KeyError, RuntimeError):
            return 0
