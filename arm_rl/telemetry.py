"""Timestamped progress lines."""

from __future__ import annotations

from datetime import datetime

from .episode import AccuracyCounters
from .reward import outcome_label


def log(message: str) -> None:
    ts = datetime.now().strftime("%H:%M:%S")
    print(f"[{ts}] {message}", flush=True)


def accuracy_line(counters: AccuracyCounters, reward: float, reward_win: float) -> str:
    return (
        f"Current Accuracy:  {counters.accuracy:0.4f} "
        f"({counters.successful_episodes:03d} of {counters.total_episodes:03d})  "
        f"(reward={reward:+0.2f} {outcome_label(reward, reward_win)})"
    )
