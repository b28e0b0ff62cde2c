"""Contact filtering and the goal-reached signal."""

from __future__ import annotations

import threading
from typing import Iterable

from arm_sim.messages import Contact

from .episode import ControlMode, EpisodeState


class CollisionObserver:
    """Watches contact batches for a prop/gripper pair.

    `ingest_contacts` runs on the contact delivery thread and only latches a
    flag; `drain` runs on the tick thread and turns it into a terminal reward.
    """

    def __init__(self, collision_item: str, collision_point: str, collision_filter: str):
        self.collision_item = collision_item
        self.collision_point = collision_point
        self.collision_filter = collision_filter
        self._lock = threading.Lock()
        self._armed = False
        self._goal_reached = False
        self.last_match: Contact | None = None
        self.batches_received = 0

    def set_armed(self, armed: bool) -> None:
        with self._lock:
            self._armed = bool(armed)
            if not armed:
                self._goal_reached = False

    @property
    def armed(self) -> bool:
        with self._lock:
            return self._armed

    @property
    def goal_reached(self) -> bool:
        with self._lock:
            return self._goal_reached

    def is_goal_contact(self, contact: Contact) -> bool:
        c1, c2 = contact.collision1, contact.collision2
        if c1 == self.collision_item:
            return c2 == self.collision_point
        if c2 == self.collision_item:
            return c1 == self.collision_point
        return False

    def ingest_contacts(self, contacts: Iterable[Contact]) -> Contact | None:
        """Scan a batch; the first qualifying contact wins. Ignored while disarmed."""
        with self._lock:
            if not self._armed:
                return None
            self.batches_received += 1

        for contact in contacts:
            if contact.collision2 == self.collision_filter:
                continue
            if self.is_goal_contact(contact):
                with self._lock:
                    if not self._armed:
                        return None
                    self._goal_reached = True
                    self.last_match = contact
                return contact
        return None

    def drain(self, state: EpisodeState, reward_win: float) -> bool:
        with self._lock:
            hit = self._goal_reached
            self._goal_reached = False
        if not hit or state.mode is not ControlMode.AGENT_DRIVEN:
            return False
        state.set_reward(reward_win, terminal=True)
        return True
