# mcu_bridge/config.py
from __future__ import annotations

import os
import socket
from dataclasses import dataclass, field


def _to_int(value, default):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _to_float(value, default):
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _to_bool(value, default):
    if value is None:
        return default
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    return default


def _default_name():
    return socket.gethostname()


@dataclass
class BridgeConfig:
    """
    Tunables for the serial bridge. Defaults are the values the rover was tuned with.
    """
    device: str = "/dev/ttyUSB0"
    baud: int = 115_200
    cycle_period_s: float = 0.1

    # Velocity setpoint limits (m/s, rad/s)
    max_linear_vel: float = 0.3
    max_angular_vel: float = 0.5
    # Angular z is clamped with the linear limit unless this is turned off.
    angular_uses_linear_limit: bool = True

    # Motor command ceiling; commands of 180 and up have damaged the hardware.
    max_motor_cmd: int = 120
    enforce_motor_limit: bool = False

    kp: float = 10.0
    ki: float = 0.0

    reconnect_interval_s: float = 1.0
    startup_delay_s: float = 0.0
    heartbeat_interval_s: float = 2.0
    robot_name: str = field(default_factory=_default_name)

    @property
    def angular_limit(self) -> float:
        if self.angular_uses_linear_limit:
            return self.max_linear_vel
        return self.max_angular_vel

    @classmethod
    def from_env(cls, environ=None) -> "BridgeConfig":
        """
        Build a config from MCU_BRIDGE_* environment variables.
        Unparseable values fall back to the defaults.
        """
        env = os.environ if environ is None else environ
        base = cls()
        return cls(
            device=env.get("MCU_BRIDGE_DEVICE", base.device),
            baud=_to_int(env.get("MCU_BRIDGE_BAUD"), base.baud),
            cycle_period_s=_to_float(env.get("MCU_BRIDGE_PERIOD"), base.cycle_period_s),
            max_linear_vel=_to_float(env.get("MCU_BRIDGE_MAX_LINEAR"), base.max_linear_vel),
            max_angular_vel=_to_float(env.get("MCU_BRIDGE_MAX_ANGULAR"), base.max_angular_vel),
            angular_uses_linear_limit=_to_bool(
                env.get("MCU_BRIDGE_ANGULAR_USES_LINEAR_LIMIT"), base.angular_uses_linear_limit
            ),
            max_motor_cmd=_to_int(env.get("MCU_BRIDGE_MAX_MOTOR_CMD"), base.max_motor_cmd),
            enforce_motor_limit=_to_bool(
                env.get("MCU_BRIDGE_ENFORCE_MOTOR_LIMIT"), base.enforce_motor_limit
            ),
            kp=_to_float(env.get("MCU_BRIDGE_KP"), base.kp),
            ki=_to_float(env.get("MCU_BRIDGE_KI"), base.ki),
            reconnect_interval_s=_to_float(env.get("MCU_BRIDGE_RECONNECT"), base.reconnect_interval_s),
            startup_delay_s=_to_float(env.get("MCU_BRIDGE_STARTUP_DELAY"), base.startup_delay_s),
            heartbeat_interval_s=_to_float(env.get("MCU_BRIDGE_HEARTBEAT"), base.heartbeat_interval_s),
            robot_name=env.get("MCU_BRIDGE_NAME", base.robot_name),
        )
