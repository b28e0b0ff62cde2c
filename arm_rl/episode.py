"""Episode state owned by the tick thread, and the control-mode state machine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ControlMode(Enum):
    SCRIPTED_RESET = "scripted_reset"
    AGENT_DRIVEN = "agent_driven"


class ModeEvent(Enum):
    ANIMATION_COMPLETE = "animation_complete"
    TERMINAL = "terminal"


def transition(mode: ControlMode, event: ModeEvent, loop_animation: bool = False) -> ControlMode:
    """Next control mode; events that do not apply to the current mode leave it unchanged."""
    if mode is ControlMode.SCRIPTED_RESET and event is ModeEvent.ANIMATION_COMPLETE:
        return ControlMode.SCRIPTED_RESET if loop_animation else ControlMode.AGENT_DRIVEN
    if mode is ControlMode.AGENT_DRIVEN and event is ModeEvent.TERMINAL:
        return ControlMode.SCRIPTED_RESET
    return mode


@dataclass
class AccuracyCounters:
    successful_episodes: int = 0
    total_episodes: int = 0

    @property
    def accuracy(self) -> float:
        if self.total_episodes == 0:
            return 0.0
        return self.successful_episodes / float(self.total_episodes)

    def record(self, success: bool) -> None:
        if success:
            self.successful_episodes += 1
        self.total_episodes += 1


@dataclass
class EpisodeState:
    joint_ref: list[float]
    velocity: list[float] = field(default_factory=list)
    mode: ControlMode = ControlMode.SCRIPTED_RESET
    loop_animation: bool = False
    frame_count: int = 0
    reward_pending: bool = False
    reward_value: float = 0.0
    terminal: bool = False
    last_goal_distance: float = 0.0
    avg_goal_delta: float = 0.0

    def __post_init__(self):
        self.joint_ref = [float(v) for v in self.joint_ref]
        if not self.velocity:
            self.velocity = [0.0] * len(self.joint_ref)

    @classmethod
    def at_home(cls, home: list[float]) -> "EpisodeState":
        return cls(joint_ref=list(home))

    def set_reward(self, value: float, terminal: bool) -> None:
        self.reward_value = float(value)
        self.reward_pending = True
        if terminal:
            self.terminal = True

    def apply(self, event: ModeEvent) -> ControlMode:
        self.mode = transition(self.mode, event, loop_animation=self.loop_animation)
        return self.mode

    def reset_episode(self) -> None:
        """Return to a fresh episode in scripted-reset mode."""
        self.apply(ModeEvent.TERMINAL)
        self.loop_animation = False
        self.frame_count = 0
        self.reward_pending = False
        self.terminal = False
        self.reward_value = 0.0
        self.last_goal_distance = 0.0
        self.avg_goal_delta = 0.0
        self.velocity = [0.0] * len(self.joint_ref)
