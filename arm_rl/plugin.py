"""Per-tick orchestration of perception, contacts, scripted reset, policy and rewards."""

from __future__ import annotations

from typing import Any, Callable

from arm_sim.engine import JOINT_NAMES, UpdateInfo
from arm_sim.messages import Contact, ContactBatch, ImageFrame

from . import telemetry
from .actions import apply_position_action, apply_velocity_action
from .agent import AgentCreationError, DQNAgent, PolicyAgent
from .collision import CollisionObserver
from .config import ArmConfig
from .episode import AccuracyCounters, ControlMode, EpisodeState
from .perception import AllocationError, FormatError, PerceptionBuffer
from .reward import horizontal_distance, is_ground_contact, shaping_reward, sign_label, smoothed_delta
from .trajectory import TrajectoryController
from .types import EpisodeResult

AgentFactory = Callable[[ArmConfig], PolicyAgent]


class ArmPlugin:
    """Control core attached to a simulation host.

    The host must provide `node` (topic transport), `connect_world_update`,
    `set_joint_position`, `reset_prop_dynamics`, `get_bounding_box` and
    `get_world_position`. Camera and contact callbacks may run on their own
    delivery threads; everything else runs on the tick thread in `on_update`.
    """

    def __init__(
        self,
        cfg: ArmConfig | None = None,
        agent_factory: AgentFactory | None = None,
        host: Any = None,
        log: Callable[[str], None] | None = None,
        on_episode: Callable[[EpisodeResult], None] | None = None,
        debug: bool = False,
    ):
        self.cfg = (cfg or ArmConfig()).validate()
        self.agent_factory: AgentFactory = agent_factory or DQNAgent.create
        self.host = host
        self.log = log or telemetry.log
        self.on_episode = on_episode
        self.debug = debug

        self.agent: PolicyAgent | None = None
        self.state = EpisodeState.at_home(self.cfg.home_position)
        self.counters = AccuracyCounters()
        self.perception = PerceptionBuffer(self.cfg.input_width, self.cfg.input_height, self.cfg.input_channels)
        self.collision = CollisionObserver(
            collision_item=self.cfg.collision_item,
            collision_point=self.cfg.collision_point,
            collision_filter=self.cfg.collision_filter,
        )
        self.trajectory = TrajectoryController(self.cfg, on_midpoint=self._reset_prop_dynamics)

        self.last_action: int | None = None
        self.rewards_submitted = 0
        self.tick_failures = 0

    def load(self, host: Any) -> None:
        """Subscribe to the host's camera/contact topics and world-update event."""
        self.host = host
        host.node.subscribe(self.cfg.camera_topic, self.on_camera_msg)
        host.node.subscribe(self.cfg.contact_topic, self.on_contacts_msg)
        host.connect_world_update(self.on_update)
        self.log(f"plugin_loaded camera_topic={self.cfg.camera_topic} contact_topic={self.cfg.contact_topic}")

    # --- delivery-thread callbacks

    def on_camera_msg(self, frame: ImageFrame) -> bool:
        try:
            resized = self.perception.ingest_frame(
                frame.data,
                frame.width,
                frame.height,
                frame.bytes_per_pixel,
                step=frame.step,
            )
        except (FormatError, AllocationError) as exc:
            self.log(f"camera_frame_dropped error={exc}")
            return False
        if resized:
            self.log(
                f"allocated camera img buffer {frame.width}x{frame.height} "
                f"{frame.bytes_per_pixel * 8} bpp {len(frame.data)} bytes"
            )
        return True

    def on_contacts_msg(self, batch: ContactBatch) -> Contact | None:
        match = self.collision.ingest_contacts(batch.contacts)
        if match is not None:
            self.log(f"collision between [{match.collision1}] and [{match.collision2}]")
        return match

    # --- tick thread

    def create_agent(self) -> bool:
        if self.agent is not None:
            return True
        try:
            self.agent = self.agent_factory(self.cfg)
        except AgentCreationError as exc:
            self.log(f"agent_create_failed error={exc}")
            return False
        self.log(
            f"agent_created input={self.cfg.input_width}x{self.cfg.input_height}x{self.cfg.input_channels} "
            f"actions={self.cfg.num_actions}"
        )
        return True

    def on_update(self, info: UpdateInfo) -> bool:
        """One simulation tick. Returns True if a reward was issued to the agent."""
        cfg = self.cfg
        state = self.state

        # deferred agent construction
        if self.agent is None and info.sim_time > cfg.warmup_sim_time:
            if not self.create_agent():
                return False
        if self.agent is None:
            return False

        self.collision.drain(state, cfg.reward_win)
        had_new_frame = self.perception.frame_ready and state.mode is ControlMode.AGENT_DRIVEN

        if self._update_joints():
            self._apply_joints()

        if cfg.max_episode_length > 0 and state.frame_count > cfg.max_episode_length and not state.reward_pending:
            self.log(f"triggering EOE, episode has exceeded {cfg.max_episode_length} frames")
            state.set_reward(state.reward_value + 0.0, terminal=True)

        if had_new_frame and not state.reward_pending:
            self._compute_reward()

        if state.reward_pending:
            self._issue_reward()
            return True
        return False

    def _update_joints(self) -> bool:
        state = self.state
        if state.mode is ControlMode.SCRIPTED_RESET:
            self.trajectory.step(state)
            self.collision.set_armed(state.mode is ControlMode.AGENT_DRIVEN)
            return True

        if not self.perception.take_frame():
            return False

        state.frame_count += 1
        if self.debug:
            self.log(f"episode frame = {state.frame_count}")
        try:
            tensor = self.perception.convert()
            action = self.agent.select_action(tensor)
            if self.cfg.velocity_control:
                state.joint_ref, state.velocity = apply_velocity_action(
                    state.joint_ref, state.velocity, action, self.cfg
                )
            else:
                state.joint_ref = apply_position_action(state.joint_ref, action, self.cfg)
        except Exception as exc:
            self.tick_failures += 1
            self.log(f"tick_actuation_skipped frame={state.frame_count} error={exc}")
            return False

        self.last_action = int(action)
        if self.debug:
            self.log(f"agent selected action {self.last_action}")
        return True

    def _apply_joints(self) -> None:
        if self.host is None:
            return
        ref = self.state.joint_ref
        try:
            if self.cfg.lock_base:
                self.host.set_joint_position(JOINT_NAMES[0], 0.0)
                names = JOINT_NAMES[1:]
            else:
                names = JOINT_NAMES
            for name, value in zip(names, ref):
                self.host.set_joint_position(name, value)
        except KeyError as exc:
            self.log(f"joint_update_failed error={exc}")

    def _reset_prop_dynamics(self) -> None:
        if self.host is not None:
            self.host.reset_prop_dynamics()

    def _compute_reward(self) -> None:
        cfg = self.cfg
        state = self.state
        if self.host is None:
            return

        prop_box = self.host.get_bounding_box(cfg.prop_name)
        if prop_box is None:
            self.log(f"failed to find Prop '{cfg.prop_name}'")
            return
        grip_box = self.host.get_bounding_box(cfg.gripper_name)
        if grip_box is None:
            self.log(f"failed to find Gripper '{cfg.gripper_name}'")
            return

        if is_ground_contact(grip_box, cfg.ground_contact):
            self.log("GROUND CONTACT, EOE")
            state.set_reward(cfg.reward_loss, terminal=True)
            return

        grip_pos = self.host.get_world_position(cfg.gripper_name)
        goal_pos = self.host.get_world_position(cfg.prop_name)
        if grip_pos is None or goal_pos is None:
            self.log("failed to query gripper/goal world positions")
            return

        distance = horizontal_distance(grip_pos, goal_pos)
        if self.debug:
            self.log(f"gripper {grip_pos.x:f} {grip_pos.y:f} {grip_pos.z:f} goal {goal_pos.x:f} {goal_pos.y:f} {goal_pos.z:f}")
        if state.frame_count > 1:
            state.avg_goal_delta = smoothed_delta(state.avg_goal_delta, distance - state.last_goal_distance)
            state.set_reward(shaping_reward(grip_pos, goal_pos, cfg.reward_loss), terminal=False)
        state.last_goal_distance = distance

    def _issue_reward(self) -> None:
        state = self.state
        value, terminal = state.reward_value, state.terminal
        if self.debug:
            self.log(f"issuing reward {value:f}, EOE={'true' if terminal else 'false'}  {sign_label(value)}")
        try:
            self.agent.submit_reward(value, terminal)
        except Exception as exc:
            self.log(f"submit_reward_failed error={exc!r}")
        finally:
            self.rewards_submitted += 1
            state.reward_pending = False
            if terminal:
                self._finalize_episode(value)
            else:
                state.reward_value = 0.0

    def _finalize_episode(self, reward: float) -> None:
        state = self.state
        frames = state.frame_count
        last_distance = state.last_goal_distance

        self.counters.record(reward >= self.cfg.reward_win)
        state.reset_episode()
        self.collision.set_armed(False)
        self.log(telemetry.accuracy_line(self.counters, reward, self.cfg.reward_win))

        if self.on_episode is not None:
            self.on_episode(
                EpisodeResult(
                    episode=self.counters.total_episodes,
                    frames=frames,
                    reward=float(reward),
                    success=reward >= self.cfg.reward_win,
                    accuracy=self.counters.accuracy,
                    successful_episodes=self.counters.successful_episodes,
                    total_episodes=self.counters.total_episodes,
                    last_goal_distance=last_distance,
                )
            )

    def status(self) -> dict[str, Any]:
        return {
            "mode": self.state.mode.value,
            "agent_ready": self.agent is not None,
            "frame_count": self.state.frame_count,
            "joint_ref": list(self.state.joint_ref),
            "accuracy": self.counters.accuracy,
            "successful_episodes": self.counters.successful_episodes,
            "total_episodes": self.counters.total_episodes,
            "rewards_submitted": self.rewards_submitted,
            "tick_failures": self.tick_failures,
        }
