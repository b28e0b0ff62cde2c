"""DQN training loop: kinematic arm host + control plugin, ticked in-process."""

from __future__ import annotations

import argparse
from datetime import datetime
from pathlib import Path

import torch
from torch.utils.tensorboard import SummaryWriter
from tqdm import tqdm

from arm_sim.engine import ArmEngine

from .agent import DQNAgent
from .checkpoint import CheckpointManager
from .config import ArmConfig, load_config
from .plugin import ArmPlugin
from .types import EpisodeResult


def resolve_device(device_name: str) -> torch.device:
    name = device_name.lower()
    if name == "cpu":
        return torch.device("cpu")
    if name == "cuda":
        if not torch.cuda.is_available():
            raise ValueError("Requested --device cuda, but CUDA is not available")
        return torch.device("cuda")
    if name == "mps":
        if not (torch.backends.mps.is_available() and torch.backends.mps.is_built()):
            raise ValueError("Requested --device mps, but MPS is not available")
        return torch.device("mps")
    raise ValueError("--device must be one of: cpu, cuda, mps")


def config_from_args(args: argparse.Namespace) -> ArmConfig:
    cfg = load_config(getattr(args, "config", None))
    overrides = {
        "max_episode_length": getattr(args, "max_episode_length", None),
        "animation_steps": getattr(args, "animation_steps", None),
        "warmup_sim_time": getattr(args, "warmup_sim_time", None),
        "learning_rate": getattr(args, "lr", None),
        "seed": getattr(args, "seed", None),
    }
    for key, value in overrides.items():
        if value is not None:
            setattr(cfg, key, value)
    return cfg.validate()


class ArmTrainer:
    def __init__(self, args: argparse.Namespace):
        self.args = args
        if args.ticks < 1:
            raise ValueError("--ticks must be >= 1")
        if args.save_every < 1:
            raise ValueError("--save-every must be >= 1")

        self.cfg = config_from_args(args)
        if self.cfg.seed is not None:
            torch.manual_seed(self.cfg.seed)

        self.device = resolve_device(args.device)
        self.ckpt = CheckpointManager(args.checkpoint_dir)
        self.agent: DQNAgent | None = None
        self.start_episode = 0
        self._episode_bar: tqdm | None = None

        self.run_timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.exp_name = getattr(args, "exp_name", None)
        if self.exp_name:
            self.tb_logdir = str(Path(args.tensorboard_logdir) / self.exp_name / f"run_{self.run_timestamp}")
        else:
            self.tb_logdir = str(Path(args.tensorboard_logdir) / f"run_{self.run_timestamp}")
        self.tb_writer = SummaryWriter(log_dir=self.tb_logdir)
        if self.exp_name:
            self.tb_writer.add_text("meta/exp_name", self.exp_name, 0)

        self.engine = ArmEngine(
            dt=args.dt,
            camera_every=args.camera_every,
            image_size=(self.cfg.input_width, self.cfg.input_height),
        )
        self.plugin = ArmPlugin(
            self.cfg,
            agent_factory=self._create_agent,
            log=self._log,
            on_episode=self._on_episode,
        )
        self.plugin.load(self.engine)

        self._log(
            "trainer_init "
            f"ticks={args.ticks} dt={args.dt} camera_every={args.camera_every} "
            f"dof={self.cfg.dof} actions={self.cfg.num_actions} max_episode_length={self.cfg.max_episode_length} "
            f"animation_steps={self.cfg.animation_steps} optimizer={self.cfg.optimizer} lr={self.cfg.learning_rate} "
            f"gamma={self.cfg.gamma} replay={self.cfg.replay_memory} batch={self.cfg.batch_size} "
            f"device={self.device.type} tensorboard_logdir={self.tb_logdir} "
            f"checkpoint_dir={args.checkpoint_dir} exp_name={self.exp_name or 'run_default'}"
        )

    def _create_agent(self, cfg: ArmConfig) -> DQNAgent:
        agent = DQNAgent.create(cfg, training=True, device=self.device.type)
        self.start_episode = self.ckpt.restore_latest(agent)
        if self.start_episode == 0:
            self._log("checkpoint_status no checkpoint found, initialized random policy")
        else:
            self._log(f"checkpoint_status resumed from episode={self.start_episode}")
        self.agent = agent
        return agent

    def _log(self, message: str) -> None:
        ts = datetime.now().strftime("%H:%M:%S")
        text = f"[{ts}] {message}"
        if self._episode_bar is not None:
            self._episode_bar.write(text)
        else:
            print(text, flush=True)

    def _on_episode(self, result: EpisodeResult) -> None:
        global_episode = self.start_episode + result.episode
        self.tb_writer.add_scalar("episode/accuracy", result.accuracy, global_episode)
        self.tb_writer.add_scalar("episode/reward", result.reward, global_episode)
        self.tb_writer.add_scalar("episode/frames", result.frames, global_episode)
        self.tb_writer.add_scalar("episode/last_goal_distance", result.last_goal_distance, global_episode)
        if self.agent is not None:
            self.tb_writer.add_scalar("agent/epsilon", self.agent.epsilon, global_episode)
            self.tb_writer.add_scalar("agent/replay_size", len(self.agent.memory), global_episode)
            if self.agent.last_loss is not None:
                self.tb_writer.add_scalar("agent/loss", self.agent.last_loss, global_episode)

        if self._episode_bar is not None:
            self._episode_bar.set_postfix(
                {
                    "ep": global_episode,
                    "acc": f"{result.accuracy:.3f}",
                    "ret": f"{result.reward:+.2f}",
                    "frames": result.frames,
                }
            )

        if global_episode % self.args.save_every == 0:
            self._save(global_episode)

    def _save(self, global_episode: int) -> None:
        if self.agent is None:
            return
        metadata = {
            "episode": global_episode,
            "lr": self.cfg.learning_rate,
            "gamma": self.cfg.gamma,
            "accuracy": self.plugin.counters.accuracy,
            "device": self.device.type,
        }
        path = self.ckpt.save(self.agent, episode=global_episode, metadata=metadata)
        self._log(f"checkpoint_saved episode={global_episode} path={path}")

    def run(self) -> dict:
        try:
            self._episode_bar = tqdm(
                total=int(self.args.ticks),
                desc="Simulation ticks",
                unit="tick",
                mininterval=1.0,
                maxinterval=5.0,
            )
            for _ in range(int(self.args.ticks)):
                self.engine.step(sync=True)
                self._episode_bar.update(1)

            total = self.plugin.counters.total_episodes
            if total > 0 and (self.start_episode + total) % self.args.save_every != 0:
                self._save(self.start_episode + total)
        finally:
            self.tb_writer.flush()
            self.tb_writer.close()
            if self._episode_bar is not None:
                self._episode_bar.close()
                self._episode_bar = None
            self.engine.close()

        status = self.plugin.status()
        self._log(
            "train_done "
            f"episodes={status['total_episodes']} wins={status['successful_episodes']} "
            f"accuracy={status['accuracy']:.4f} tick_failures={status['tick_failures']}"
        )
        return status


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Train a DQN arm-reaching policy against the kinematic arm simulator")
    p.add_argument("--config", type=str, default=None, help="YAML file with ArmConfig fields")
    p.add_argument("--ticks", type=int, required=True, help="Number of simulation ticks to run")
    p.add_argument("--dt", type=float, default=0.01)
    p.add_argument("--camera-every", type=int, default=1, help="Publish a camera frame every N ticks")
    p.add_argument("--max-episode-length", type=int, default=None)
    p.add_argument("--animation-steps", type=int, default=None)
    p.add_argument("--warmup-sim-time", type=float, default=None, help="Simulated seconds before the agent is built")
    p.add_argument("--lr", type=float, default=None)
    p.add_argument("--device", type=str, default="cpu", choices=["cpu", "cuda", "mps"])
    p.add_argument("--tensorboard-logdir", default="runs/arm_reacher")
    p.add_argument("--exp-name", type=str, default=None, help="Optional experiment name for TensorBoard log grouping")
    p.add_argument("--save-every", type=int, default=100, help="Checkpoint every N finished episodes")
    p.add_argument("--checkpoint-dir", default="checkpoints")
    p.add_argument("--seed", type=int, default=None)
    return p


def main() -> None:
    args = build_parser().parse_args()
    trainer = ArmTrainer(args)
    trainer.run()


if __name__ == "__main__":
    main()
