"""Policy agent capability and a DQN implementation of it."""

from __future__ import annotations

import abc
import math
from collections import deque
from typing import Any

import numpy as np
import torch
import torch.nn.functional as F

from .policy import ConvQNetwork
from .types import Transition


class AgentCreationError(RuntimeError):
    """Raised when an agent cannot be constructed."""


class InferenceError(RuntimeError):
    """Raised when an agent fails to produce an action."""


class InvalidActionError(InferenceError):
    """Raised when an agent returns an action index outside the action space."""


class PolicyAgent(abc.ABC):
    """What the control loop needs from a learner: pick an action, take a reward."""

    num_actions: int

    @abc.abstractmethod
    def select_action(self, tensor: torch.Tensor) -> int:
        raise NotImplementedError

    @abc.abstractmethod
    def submit_reward(self, value: float, terminal: bool) -> None:
        raise NotImplementedError


class ReplayMemory:
    def __init__(self, capacity: int, rng: np.random.Generator):
        if capacity < 1:
            raise ValueError("replay capacity must be >= 1")
        self._buf: deque[Transition] = deque(maxlen=int(capacity))
        self._rng = rng

    def push(self, transition: Transition) -> None:
        self._buf.append(transition)

    def sample(self, batch_size: int) -> list[Transition]:
        idx = self._rng.choice(len(self._buf), size=batch_size, replace=False)
        return [self._buf[int(i)] for i in idx]

    def __len__(self) -> int:
        return len(self._buf)


class DQNAgent(PolicyAgent):
    """Epsilon-greedy DQN over camera tensors with a replay memory.

    A reward is credited to the most recent action. Non-terminal transitions are
    completed with the next observed state on the following `select_action`.
    """

    def __init__(
        self,
        input_shape: tuple[int, int, int],
        num_actions: int,
        optimizer: str = "RMSprop",
        learning_rate: float = 0.001,
        replay_memory: int = 1000,
        batch_size: int = 64,
        gamma: float = 0.9,
        eps_start: float = 0.9,
        eps_end: float = 0.05,
        eps_decay: int = 200,
        allow_random: bool = True,
        training: bool = True,
        seed: int | None = None,
        device: str = "cpu",
    ):
        if num_actions < 1:
            raise ValueError("num_actions must be >= 1")
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if eps_decay <= 0:
            raise ValueError("eps_decay must be > 0")
        opt_cls = getattr(torch.optim, optimizer, None)
        if not (isinstance(opt_cls, type) and issubclass(opt_cls, torch.optim.Optimizer)):
            raise ValueError(f"Unknown optimizer: {optimizer}")

        channels, height, width = input_shape
        self.input_shape = (int(channels), int(height), int(width))
        self.num_actions = int(num_actions)
        self.batch_size = int(batch_size)
        self.gamma = float(gamma)
        self.eps_start = float(eps_start)
        self.eps_end = float(eps_end)
        self.eps_decay = int(eps_decay)
        self.allow_random = bool(allow_random)
        self.training = bool(training)
        self.device = torch.device(device)

        self._rng = np.random.default_rng(seed)
        self.policy = ConvQNetwork(width, height, channels, self.num_actions, seed=seed).to(self.device)
        self.optimizer = opt_cls(self.policy.parameters(), lr=float(learning_rate))
        self.memory = ReplayMemory(replay_memory, self._rng)

        self.steps_done = 0
        self.optimize_steps = 0
        self.last_loss: float | None = None
        self._last_state: torch.Tensor | None = None
        self._last_action: int | None = None
        self._pending: tuple[torch.Tensor, int, float] | None = None

    @classmethod
    def create(cls, cfg: Any, training: bool = True, device: str = "cpu") -> "DQNAgent":
        """Build from an ArmConfig; any construction failure becomes AgentCreationError."""
        try:
            return cls(
                input_shape=(cfg.input_channels, cfg.input_height, cfg.input_width),
                num_actions=cfg.num_actions,
                optimizer=cfg.optimizer,
                learning_rate=cfg.learning_rate,
                replay_memory=cfg.replay_memory,
                batch_size=cfg.batch_size,
                gamma=cfg.gamma,
                eps_start=cfg.eps_start,
                eps_end=cfg.eps_end,
                eps_decay=cfg.eps_decay,
                allow_random=cfg.allow_random,
                training=training,
                seed=cfg.seed,
                device=device,
            )
        except (ValueError, TypeError, RuntimeError) as exc:
            raise AgentCreationError(f"failed to create DQN agent: {exc}") from exc

    @property
    def epsilon(self) -> float:
        return self.eps_end + (self.eps_start - self.eps_end) * math.exp(-1.0 * self.steps_done / self.eps_decay)

    def _complete_pending(self, next_state: torch.Tensor) -> None:
        if self._pending is None:
            return
        state, action, reward = self._pending
        self.memory.push(Transition(state, action, reward, next_state, False))
        self._pending = None

    def select_action(self, tensor: torch.Tensor) -> int:
        state = tensor.detach().to(dtype=torch.float32, device="cpu").clone()
        if tuple(state.shape) != self.input_shape:
            raise InferenceError(f"expected input tensor {self.input_shape}, got {tuple(state.shape)}")

        try:
            with torch.no_grad():
                q_values = self.policy(state.unsqueeze(0).to(self.device))
        except RuntimeError as exc:
            raise InferenceError(f"failed to generate agent's next action: {exc}") from exc

        if self.training:
            self._complete_pending(state)

        explore = self.training and self.allow_random and self._rng.random() < self.epsilon
        self.steps_done += 1
        if explore:
            action = int(self._rng.integers(self.num_actions))
        else:
            action = int(ConvQNetwork.greedy_actions(q_values)[0].item())

        self._last_state = state
        self._last_action = action
        return action

    def submit_reward(self, value: float, terminal: bool) -> None:
        if not self.training or self._last_state is None or self._last_action is None:
            return
        if terminal:
            self.memory.push(Transition(self._last_state, self._last_action, float(value), None, True))
            self._pending = None
        else:
            self._pending = (self._last_state, self._last_action, float(value))
        self._last_state = None
        self._last_action = None
        self.optimize()

    def optimize(self) -> float | None:
        if len(self.memory) < self.batch_size:
            return None

        batch = self.memory.sample(self.batch_size)
        states = torch.stack([t.state for t in batch]).to(self.device)
        actions = torch.tensor([t.action for t in batch], dtype=torch.long, device=self.device)
        rewards = torch.tensor([t.reward for t in batch], dtype=torch.float32, device=self.device)
        non_final = torch.tensor([t.next_state is not None for t in batch], dtype=torch.bool, device=self.device)

        q = self.policy(states).gather(1, actions.unsqueeze(1)).squeeze(1)
        next_values = torch.zeros((self.batch_size,), dtype=torch.float32, device=self.device)
        if non_final.any():
            next_states = torch.stack([t.next_state for t in batch if t.next_state is not None]).to(self.device)
            with torch.no_grad():
                next_values[non_final] = self.policy(next_states).max(dim=1).values
        target = rewards + self.gamma * next_values

        loss = F.smooth_l1_loss(q, target)
        self.optimizer.zero_grad()
        loss.backward()
        self.optimizer.step()

        self.optimize_steps += 1
        self.last_loss = float(loss.detach().item())
        return self.last_loss

    def state_dict(self) -> dict[str, Any]:
        return {
            "model_state_dict": self.policy.state_dict(),
            "optimizer_state_dict": self.optimizer.state_dict(),
            "steps_done": int(self.steps_done),
        }

    def load_state_dict(self, state: dict[str, Any]) -> None:
        self.policy.load_state_dict(state["model_state_dict"])
        if "optimizer_state_dict" in state:
            self.optimizer.load_state_dict(state["optimizer_state_dict"])
        self.steps_done = int(state.get("steps_done", 0))
