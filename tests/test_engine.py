import threading
import unittest

from arm_rl.agent import PolicyAgent
from arm_rl.config import ArmConfig
from arm_rl.plugin import ArmPlugin
from arm_sim.engine import (
    CAMERA_TOPIC,
    CONTACT_TOPIC,
    GRIPPER_COLLISION,
    GRIPPER_LINK,
    GROUND_COLLISION,
    PROP_COLLISION,
    PROP_MODEL,
    ArmEngine,
)
from arm_sim.messages import Contact
from arm_sim.transport import Node


class TestNode(unittest.TestCase):
    def test_publish_without_subscribers_is_dropped(self):
        node = Node()
        self.assertFalse(node.publish("/nobody", 1))
        node.close()

    def test_delivery_on_separate_thread_in_order(self):
        node = Node()
        received = []
        threads = set()

        def on_msg(msg):
            received.append(msg)
            threads.add(threading.current_thread().name)

        node.subscribe("/numbers", on_msg)
        for i in range(10):
            self.assertTrue(node.publish("/numbers", i))
        self.assertTrue(node.flush(timeout=2.0))
        self.assertEqual(received, list(range(10)))
        self.assertEqual(threads, {"topic:/numbers"})
        node.close()

    def test_subscriber_error_does_not_stop_delivery(self):
        node = Node()
        received = []

        def on_msg(msg):
            if msg == 1:
                raise RuntimeError("bad message")
            received.append(msg)

        node.subscribe("/t", on_msg)
        for i in range(3):
            node.publish("/t", i)
        node.flush(timeout=2.0)
        self.assertEqual(received, [0, 2])
        node.close()


class TestArmEngine(unittest.TestCase):
    def setUp(self):
        self.engine = ArmEngine()

    def tearDown(self):
        self.engine.close()

    def test_unknown_joint_and_model(self):
        with self.assertRaises(KeyError):
            self.engine.set_joint_position("elbow", 0.1)
        self.assertIsNone(self.engine.get_bounding_box("nothing"))
        self.assertIsNone(self.engine.get_world_position("nothing"))

    def test_upright_arm_only_reports_prop_on_ground(self):
        self.engine.set_joint_position("joint2", 0.25)
        batch = self.engine.contacts()
        self.assertEqual(batch.contacts, [Contact(PROP_COLLISION, GROUND_COLLISION)])
        self.assertGreater(self.engine.get_world_position(GRIPPER_LINK).z, 1.0)

    def test_reaching_pose_touches_prop(self):
        self.engine.set_joint_position("joint1", 1.3)
        self.engine.set_joint_position("joint2", 1.0)
        grip = self.engine.get_bounding_box(GRIPPER_LINK)
        prop = self.engine.get_bounding_box(PROP_MODEL)
        self.assertTrue(grip.intersects(prop))
        self.assertIn(Contact(PROP_COLLISION, GRIPPER_COLLISION), self.engine.contacts().contacts)

    def test_folded_arm_hits_ground(self):
        self.engine.set_joint_position("joint1", 2.0)
        self.engine.set_joint_position("joint2", 1.0)
        self.assertLess(self.engine.get_bounding_box(GRIPPER_LINK).min.z, 0.05)
        self.assertIn(Contact(GRIPPER_COLLISION, GROUND_COLLISION), self.engine.contacts().contacts)

    def test_camera_frame_is_packed_rgb(self):
        frame = self.engine.render_camera()
        self.assertEqual((frame.width, frame.height), (64, 64))
        self.assertEqual(frame.bytes_per_pixel, 3)
        self.assertEqual(len(frame.data), 64 * 64 * 3)

    def test_step_runs_callbacks_then_publishes(self):
        seen = {"updates": [], "frames": 0, "contacts": 0}

        def on_frame(_):
            seen["frames"] += 1

        def on_contacts(_):
            seen["contacts"] += 1

        self.engine.connect_world_update(seen["updates"].append)
        self.engine.node.subscribe(CAMERA_TOPIC, on_frame)
        self.engine.node.subscribe(CONTACT_TOPIC, on_contacts)
        info = self.engine.run(3, sync=True)

        self.assertEqual(info.iteration, 3)
        self.assertAlmostEqual(info.sim_time, 0.03)
        self.assertEqual([u.iteration for u in seen["updates"]], [1, 2, 3])
        self.assertEqual(seen["frames"], 3)
        self.assertEqual(seen["contacts"], 3)

    def test_reset_prop_dynamics(self):
        self.engine.reset_prop_dynamics()
        self.assertEqual(self.engine.prop_resets, 1)
        self.assertEqual(self.engine.state_payload()["prop"], [0.75, 0.0, 0.1])


class FixedActionAgent(PolicyAgent):
    num_actions = 4

    def __init__(self):
        self.rewards = []

    def select_action(self, tensor):
        return 0

    def submit_reward(self, value, terminal):
        self.rewards.append((value, terminal))


class TestPluginOnEngine(unittest.TestCase):
    def test_episodes_cycle_through_reset_and_agent_control(self):
        engine = ArmEngine(dt=0.01)
        agent = FixedActionAgent()
        cfg = ArmConfig(animation_steps=2, warmup_sim_time=0.0, max_episode_length=3)
        plugin = ArmPlugin(cfg, agent_factory=lambda _: agent, log=lambda _: None)
        plugin.load(engine)
        try:
            engine.run(40, sync=True)
        finally:
            engine.close()

        self.assertGreaterEqual(plugin.counters.total_episodes, 2)
        self.assertGreaterEqual(engine.prop_resets, 2)
        self.assertTrue(any(terminal for _, terminal in agent.rewards))
        self.assertEqual(plugin.rewards_submitted, len(agent.rewards))
        self.assertEqual(engine.get_joint_positions()["base"], 0.0)


if __name__ == "__main__":
    unittest.main()
