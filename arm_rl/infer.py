"""Greedy evaluation of a trained checkpoint against the kinematic arm simulator."""

from __future__ import annotations

import argparse

from tqdm import tqdm

from arm_sim.engine import ArmEngine

from .agent import AgentCreationError, DQNAgent
from .checkpoint import CheckpointManager
from .config import ArmConfig
from .plugin import ArmPlugin
from .trainer import config_from_args


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Run a trained arm-reaching policy without exploration")
    p.add_argument("--config", type=str, default=None)
    p.add_argument("--episodes", type=int, required=True)
    p.add_argument("--max-ticks", type=int, default=200_000)
    p.add_argument("--dt", type=float, default=0.01)
    p.add_argument("--camera-every", type=int, default=1)
    p.add_argument("--checkpoint-dir", default="checkpoints")
    p.add_argument("--seed", type=int, default=None)
    return p


def run_inference(args: argparse.Namespace) -> dict:
    cfg = config_from_args(args)
    ckpt = CheckpointManager(args.checkpoint_dir)
    path = ckpt.latest_path()
    if path is None:
        raise RuntimeError("No checkpoints found. Train first.")

    loaded = {"episode": 0}

    def create_agent(agent_cfg: ArmConfig) -> DQNAgent:
        agent = DQNAgent.create(agent_cfg, training=False)
        try:
            loaded["episode"] = ckpt.restore(agent, path)
        except (ValueError, KeyError, RuntimeError) as exc:
            raise AgentCreationError(f"cannot restore {path}: {exc}") from exc
        return agent

    engine = ArmEngine(dt=args.dt, camera_every=args.camera_every, image_size=(cfg.input_width, cfg.input_height))
    plugin = ArmPlugin(cfg, agent_factory=create_agent, log=tqdm.write)
    plugin.load(engine)

    print(f"inference_init checkpoint={path} episodes={args.episodes} max_ticks={args.max_ticks}", flush=True)
    try:
        with tqdm(total=args.episodes, desc="Inference episodes", unit="ep") as bar:
            for _ in range(args.max_ticks):
                engine.step(sync=True)
                done = plugin.counters.total_episodes
                if done > bar.n:
                    bar.update(done - bar.n)
                if done >= args.episodes:
                    break
    finally:
        engine.close()

    status = plugin.status()
    print(
        f"inference_done episodes={status['total_episodes']} wins={status['successful_episodes']} "
        f"accuracy={status['accuracy']:.4f} loaded_from_episode={loaded['episode']}",
        flush=True,
    )
    return status


def main() -> None:
    args = build_parser().parse_args()
    run_inference(args)


if __name__ == "__main__":
    main()
