import unittest

from arm_rl.config import ArmConfig
from arm_rl.episode import ControlMode, EpisodeState
from arm_rl.trajectory import TrajectoryController, step_toward_home


class TestStepTowardHome(unittest.TestCase):
    def test_moves_each_joint_one_step(self):
        out = step_toward_home([2.0, -0.75], [0.0, 0.25], 0.5, -0.75, 2.0)
        self.assertAlmostEqual(out[0], 1.5)
        self.assertAlmostEqual(out[1], -0.25)

    def test_snaps_when_within_one_step(self):
        out = step_toward_home([0.1, 0.2], [0.0, 0.25], 0.2, -0.75, 2.0)
        self.assertEqual(out, [0.0, 0.25])

    def test_output_is_clamped(self):
        out = step_toward_home([3.0], [2.5], 0.1, -0.75, 2.0)
        self.assertEqual(out, [2.0])


class TestTrajectoryController(unittest.TestCase):
    def setUp(self):
        self.cfg = ArmConfig(animation_steps=4).validate()
        self.midpoints = 0

        def on_midpoint():
            self.midpoints += 1

        self.traj = TrajectoryController(self.cfg, on_midpoint=on_midpoint)

    def test_reaches_home_and_hands_over_to_agent(self):
        state = EpisodeState(joint_ref=[2.0, -0.75])
        completed = [self.traj.step(state) for _ in range(5)]
        self.assertEqual(completed, [False, False, False, False, True])
        self.assertEqual(state.joint_ref, self.cfg.home_position)
        self.assertIs(state.mode, ControlMode.AGENT_DRIVEN)
        self.assertEqual(self.traj.counter, 0)

    def test_midpoint_callback_fires_once_per_animation(self):
        state = EpisodeState.at_home(self.cfg.home_position)
        for _ in range(5):
            self.traj.step(state)
        self.assertEqual(self.midpoints, 1)

    def test_loop_animation_stays_scripted(self):
        state = EpisodeState.at_home(self.cfg.home_position)
        state.loop_animation = True
        for _ in range(10):
            self.traj.step(state)
        self.assertIs(state.mode, ControlMode.SCRIPTED_RESET)
        self.assertEqual(self.midpoints, 2)

    def test_step_size_spans_joint_range(self):
        self.assertAlmostEqual(self.traj.step_size, (2.0 - -0.75) / 4)


if __name__ == "__main__":
    unittest.main()
