# mcu_bridge/motor_command.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from .bridge_state import OdometryState, VelocitySetpoint


def clamp(value: float, limit: float) -> float:
    """Symmetric saturation to [-limit, limit]."""
    if value > limit:
        return limit
    if value < -limit:
        return -limit
    return value


def clamp_setpoint(linear_x: float, angular_z: float, linear_limit: float,
                   angular_limit: float) -> VelocitySetpoint:
    """Saturate both components. A non-finite component becomes 0 (stop)."""
    if not math.isfinite(linear_x):
        linear_x = 0.0
    if not math.isfinite(angular_z):
        angular_z = 0.0
    return VelocitySetpoint(
        linear_x=clamp(linear_x, linear_limit),
        angular_z=clamp(angular_z, angular_limit),
    )


def _truncate(value: float) -> int:
    if not math.isfinite(value):
        return 0
    return int(value)


@dataclass(frozen=True)
class MotorCommand:
    left: int
    right: int


class MotorCommandController:
    """
    Turns the velocity setpoint and odometry twist into left/right motor
    commands for the microcontroller.

        err = odom_twist - setpoint
        vx  = trunc(Kp * err_lin + Ki * sum(err_lin * dt))
        vz  = trunc(Kp * err_ang + Ki * sum(err_ang * dt))
        left, right = vx - vz, vx + vz

    With ki == 0 this is the proportional-only law the firmware was tuned for
    and the integrators are left untouched.
    """

    def __init__(
        self,
        kp: float = 10.0,
        ki: float = 0.0,
        sample_time: float = 0.1,
        max_motor_cmd: Optional[int] = None,
    ) -> None:
        self.kp = kp
        self.ki = ki
        self.sample_time = sample_time
        self.max_motor_cmd = max_motor_cmd

        self.integral_linear = 0.0
        self.integral_angular = 0.0

    def reset(self) -> None:
        """Reset the integrators."""
        self.integral_linear = 0.0
        self.integral_angular = 0.0

    def update(self, odometry: OdometryState, setpoint: VelocitySetpoint) -> MotorCommand:
        err_linear = odometry.linear.x - setpoint.linear_x
        err_angular = odometry.angular.z - setpoint.angular_z
        if not math.isfinite(err_linear):
            err_linear = 0.0
        if not math.isfinite(err_angular):
            err_angular = 0.0

        out_linear = self.kp * err_linear
        out_angular = self.kp * err_angular

        if self.ki:
            self.integral_linear = self._integrate(self.integral_linear, err_linear)
            self.integral_angular = self._integrate(self.integral_angular, err_angular)
            out_linear += self.ki * self.integral_linear
            out_angular += self.ki * self.integral_angular

        # int() truncates toward zero, same as the firmware expects
        vx = _truncate(out_linear)
        vz = _truncate(out_angular)
        left = vx - vz
        right = vx + vz

        if self.max_motor_cmd is not None:
            left = int(clamp(left, self.max_motor_cmd))
            right = int(clamp(right, self.max_motor_cmd))

        return MotorCommand(left, right)

    def _integrate(self, integral: float, error: float) -> float:
        integral += error * self.sample_time
        if self.max_motor_cmd is not None:
            # keep the integral term alone inside the motor range
            integral = clamp(integral, self.max_motor_cmd / abs(self.ki))
        return integral
