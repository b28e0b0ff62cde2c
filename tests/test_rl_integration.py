import argparse
import tempfile
import unittest
from pathlib import Path

from arm_rl.checkpoint import CheckpointManager
from arm_rl.infer import run_inference
from arm_rl.trainer import ArmTrainer, build_parser


def write_config(td: str) -> str:
    path = Path(td) / "arm.yaml"
    path.write_text(
        "\n".join(
            [
                "animation_steps: 2",
                "warmup_sim_time: 0.0",
                "max_episode_length: 3",
                "input_width: 16",
                "input_height: 16",
                "replay_memory: 50",
                "batch_size: 4",
                "seed: 123",
            ]
        ),
        encoding="utf-8",
    )
    return str(path)


class TestRLIntegration(unittest.TestCase):
    def test_parser_defaults(self):
        args = build_parser().parse_args(["--ticks", "10"])
        self.assertEqual(args.ticks, 10)
        self.assertEqual(args.save_every, 100)
        self.assertIsNone(args.max_episode_length)

    def test_train_and_infer_smoke(self):
        with tempfile.TemporaryDirectory() as td:
            config = write_config(td)
            train_args = argparse.Namespace(
                config=config,
                ticks=60,
                dt=0.01,
                camera_every=1,
                max_episode_length=None,
                animation_steps=None,
                warmup_sim_time=None,
                lr=0.01,
                device="cpu",
                tensorboard_logdir=str(Path(td) / "runs"),
                exp_name="smoke",
                save_every=1,
                checkpoint_dir=str(Path(td) / "ckpt"),
                seed=None,
            )
            trainer = ArmTrainer(train_args)
            status = trainer.run()
            self.assertGreaterEqual(status["total_episodes"], 1)
            self.assertTrue(any(Path(trainer.tb_logdir).iterdir()))

            ckpt = CheckpointManager(train_args.checkpoint_dir)
            self.assertIsNotNone(ckpt.latest_path())

            infer_args = argparse.Namespace(
                config=config,
                episodes=2,
                max_ticks=200,
                dt=0.01,
                camera_every=1,
                checkpoint_dir=train_args.checkpoint_dir,
                seed=None,
            )
            out = run_inference(infer_args)
            self.assertEqual(out["total_episodes"], 2)

    def test_infer_without_checkpoint_fails(self):
        with tempfile.TemporaryDirectory() as td:
            args = argparse.Namespace(
                config=write_config(td),
                episodes=1,
                max_ticks=10,
                dt=0.01,
                camera_every=1,
                checkpoint_dir=td,
                seed=None,
            )
            with self.assertRaises(RuntimeError):
                run_inference(args)


if __name__ == "__main__":
    unittest.main()
