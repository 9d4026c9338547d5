import sys
from pathlib import Path
import unittest
from unittest.mock import patch

TEST_ROOT = Path(__file__).resolve().parents[1]
if str(TEST_ROOT) not in sys.path:
    sys.path.append(str(TEST_ROOT))

from mcu_bridge.config import BridgeConfig


class BridgeConfigTests(unittest.TestCase):
    def test_defaults(self):
        with patch("mcu_bridge.config.socket.gethostname", return_value="rover1"):
            cfg = BridgeConfig.from_env({})
        self.assertEqual(cfg.device, "/dev/ttyUSB0")
        self.assertEqual(cfg.baud, 115200)
        self.assertEqual(cfg.cycle_period_s, 0.1)
        self.assertEqual(cfg.max_motor_cmd, 120)
        self.assertFalse(cfg.enforce_motor_limit)
        self.assertEqual(cfg.kp, 10.0)
        self.assertEqual(cfg.ki, 0.0)
        self.assertEqual(cfg.robot_name, "rover1")

    def test_environment_overrides(self):
        cfg = BridgeConfig.from_env({
            "MCU_BRIDGE_DEVICE": "/dev/ttyACM1",
            "MCU_BRIDGE_BAUD": "57600",
            "MCU_BRIDGE_PERIOD": "0.05",
            "MCU_BRIDGE_MAX_ANGULAR": "1.5",
            "MCU_BRIDGE_ANGULAR_USES_LINEAR_LIMIT": "no",
            "MCU_BRIDGE_ENFORCE_MOTOR_LIMIT": "true",
            "MCU_BRIDGE_NAME": "achilles",
        })
        self.assertEqual(cfg.device, "/dev/ttyACM1")
        self.assertEqual(cfg.baud, 57600)
        self.assertEqual(cfg.cycle_period_s, 0.05)
        self.assertFalse(cfg.angular_uses_linear_limit)
        self.assertTrue(cfg.enforce_motor_limit)
        self.assertEqual(cfg.robot_name, "achilles")

    def test_bad_values_fall_back_to_defaults(self):
        cfg = BridgeConfig.from_env({
            "MCU_BRIDGE_BAUD": "fast",
            "MCU_BRIDGE_MAX_LINEAR": "",
            "MCU_BRIDGE_ENFORCE_MOTOR_LIMIT": "maybe",
        })
        self.assertEqual(cfg.baud, 115200)
        self.assertEqual(cfg.max_linear_vel, 0.3)
        self.assertFalse(cfg.enforce_motor_limit)

    def test_angular_limit_selection(self):
        self.assertEqual(BridgeConfig().angular_limit, 0.3)
        self.assertEqual(BridgeConfig(angular_uses_linear_limit=False).angular_limit, 0.5)


if __name__ == "__main__":
    unittest.main()
