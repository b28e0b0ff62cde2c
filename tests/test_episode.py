import unittest

from arm_rl.episode import AccuracyCounters, ControlMode, EpisodeState, ModeEvent, transition


class TestModeTransitions(unittest.TestCase):
    def test_transition_table(self):
        self.assertIs(
            transition(ControlMode.SCRIPTED_RESET, ModeEvent.ANIMATION_COMPLETE), ControlMode.AGENT_DRIVEN
        )
        self.assertIs(
            transition(ControlMode.SCRIPTED_RESET, ModeEvent.ANIMATION_COMPLETE, loop_animation=True),
            ControlMode.SCRIPTED_RESET,
        )
        self.assertIs(transition(ControlMode.AGENT_DRIVEN, ModeEvent.TERMINAL), ControlMode.SCRIPTED_RESET)
        self.assertIs(transition(ControlMode.SCRIPTED_RESET, ModeEvent.TERMINAL), ControlMode.SCRIPTED_RESET)
        self.assertIs(
            transition(ControlMode.AGENT_DRIVEN, ModeEvent.ANIMATION_COMPLETE), ControlMode.AGENT_DRIVEN
        )

    def test_reset_episode_clears_state(self):
        state = EpisodeState.at_home([0.5, 0.5])
        state.mode = ControlMode.AGENT_DRIVEN
        state.frame_count = 7
        state.set_reward(-1.0, terminal=True)
        state.reset_episode()
        self.assertIs(state.mode, ControlMode.SCRIPTED_RESET)
        self.assertEqual(state.frame_count, 0)
        self.assertFalse(state.reward_pending)
        self.assertFalse(state.terminal)
        self.assertEqual(state.reward_value, 0.0)
        self.assertEqual(state.joint_ref, [0.5, 0.5])
        self.assertEqual(state.velocity, [0.0, 0.0])

    def test_reset_episode_zeroes_velocity(self):
        state = EpisodeState(joint_ref=[0.3, 0.25], velocity=[0.2, -0.1])
        state.mode = ControlMode.AGENT_DRIVEN
        state.reset_episode()
        self.assertEqual(state.velocity, [0.0, 0.0])
        self.assertEqual(state.joint_ref, [0.3, 0.25])

    def test_apply_uses_loop_animation_flag(self):
        state = EpisodeState.at_home([0.0, 0.25])
        state.loop_animation = True
        self.assertIs(state.apply(ModeEvent.ANIMATION_COMPLETE), ControlMode.SCRIPTED_RESET)
        state.loop_animation = False
        self.assertIs(state.apply(ModeEvent.ANIMATION_COMPLETE), ControlMode.AGENT_DRIVEN)


class TestAccuracyCounters(unittest.TestCase):
    def test_accuracy(self):
        counters = AccuracyCounters()
        self.assertEqual(counters.accuracy, 0.0)
        counters.record(True)
        counters.record(False)
        counters.record(False)
        counters.record(True)
        self.assertEqual((counters.successful_episodes, counters.total_episodes), (2, 4))
        self.assertAlmostEqual(counters.accuracy, 0.5)


if __name__ == "__main__":
    unittest.main()
