# mcu_bridge/bridge_state.py
from __future__ import annotations

import copy
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .protocol import AngleUpdate, Decoded, ImuUpdate, OdometryUpdate, RangeUpdate


@dataclass
class Vector3:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


@dataclass
class Quaternion:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    w: float = 1.0


def quaternion_from_rpy(roll: float, pitch: float, yaw: float) -> Quaternion:
    """Fixed-axis roll/pitch/yaw (radians) to a unit quaternion."""
    cr, sr = math.cos(roll / 2), math.sin(roll / 2)
    cp, sp = math.cos(pitch / 2), math.sin(pitch / 2)
    cy, sy = math.cos(yaw / 2), math.sin(yaw / 2)
    return Quaternion(
        x=sr * cp * cy - cr * sp * sy,
        y=cr * sp * cy + sr * cp * sy,
        z=cr * cp * sy - sr * sp * cy,
        w=cr * cp * cy + sr * sp * sy,
    )


@dataclass
class AngleState:
    """Gripper joint angle as reported by the microcontroller."""
    roll: float = 0.0
    orientation: Quaternion = field(default_factory=Quaternion)
    stamp: float = 0.0

    def apply(self, update: "AngleUpdate", stamp: float) -> None:
        self.roll = update.roll
        self.orientation = quaternion_from_rpy(update.roll, 0.0, 0.0)
        self.stamp = max(self.stamp, stamp)


@dataclass
class ImuState:
    linear_acceleration: Vector3 = field(default_factory=Vector3)
    angular_velocity: Vector3 = field(default_factory=Vector3)
    orientation: Quaternion = field(default_factory=Quaternion)
    stamp: float = 0.0

    def apply(self, update: "ImuUpdate", stamp: float) -> None:
        # The IMU board does not report a usable y acceleration.
        self.linear_acceleration = Vector3(update.accel_x, 0.0, update.accel_z)
        self.angular_velocity = Vector3(update.gyro_x, update.gyro_y, update.gyro_z)
        self.orientation = quaternion_from_rpy(update.roll, update.pitch, update.yaw)
        self.stamp = max(self.stamp, stamp)


@dataclass
class OdometryState:
    """
    Pose and twist from wheel odometry.

    Position is integrated from the per-report deltas; heading and twist
    are replaced on every report.
    """
    position: Vector3 = field(default_factory=Vector3)
    yaw: float = 0.0
    orientation: Quaternion = field(default_factory=Quaternion)
    linear: Vector3 = field(default_factory=Vector3)
    angular: Vector3 = field(default_factory=Vector3)
    stamp: float = 0.0

    def apply(self, update: "OdometryUpdate", stamp: float) -> None:
        self.position = Vector3(
            self.position.x + update.dx,
            self.position.y + update.dy,
            0.0,
        )
        self.yaw = update.yaw
        self.orientation = quaternion_from_rpy(0.0, 0.0, update.yaw)
        self.linear = Vector3(update.linear_x, update.linear_y, 0.0)
        self.angular = Vector3(0.0, 0.0, update.angular_z)
        self.stamp = max(self.stamp, stamp)


@dataclass
class RangeState:
    range: float = 0.0
    stamp: float = 0.0

    def apply(self, update: "RangeUpdate", stamp: float) -> None:
        self.range = update.range
        self.stamp = max(self.stamp, stamp)


@dataclass
class VelocitySetpoint:
    linear_x: float = 0.0   # m/s
    angular_z: float = 0.0  # rad/s


@dataclass
class BridgeState:
    """
    Everything the bridge knows: latest reading per sensor channel, the
    clamped velocity setpoint and the selected mode.

    Owned by a single worker. Handlers and the control cycle are
    serialized onto that worker, so there is no lock here.
    """
    finger_angle: AngleState = field(default_factory=AngleState)
    wrist_angle: AngleState = field(default_factory=AngleState)
    imu: ImuState = field(default_factory=ImuState)
    odometry: OdometryState = field(default_factory=OdometryState)
    sonar_left: RangeState = field(default_factory=RangeState)
    sonar_center: RangeState = field(default_factory=RangeState)
    sonar_right: RangeState = field(default_factory=RangeState)

    setpoint: VelocitySetpoint = field(default_factory=VelocitySetpoint)
    # Set by the mode input; nothing in the control path reads it yet.
    mode: int = 0

    CHANNELS = (
        "finger_angle",
        "wrist_angle",
        "imu",
        "odometry",
        "sonar_left",
        "sonar_center",
        "sonar_right",
    )

    def apply(self, decoded: "Decoded", stamp: float) -> None:
        """Fold one decoded sentence into its channel."""
        getattr(self, decoded.channel).apply(decoded.update, stamp)

    def snapshot(self) -> "BridgeState":
        """Independent copy for consumers outside the worker."""
        return copy.deepcopy(self)

    def as_dict(self) -> dict:
        """
        Plain-dict view for status endpoints.
        """
        def vec(v):
            return {"x": v.x, "y": v.y, "z": v.z}

        def quat(q):
            return {"x": q.x, "y": q.y, "z": q.z, "w": q.w}

        def angle(a):
            return {"roll": a.roll, "orientation": quat(a.orientation), "stamp": a.stamp}

        def rng(r):
            return {"range": r.range, "stamp": r.stamp}

        return {
            "finger_angle": angle(self.finger_angle),
            "wrist_angle": angle(self.wrist_angle),
            "imu": {
                "linear_acceleration": vec(self.imu.linear_acceleration),
                "angular_velocity": vec(self.imu.angular_velocity),
                "orientation": quat(self.imu.orientation),
                "stamp": self.imu.stamp,
            },
            "odometry": {
                "position": vec(self.odometry.position),
                "yaw": self.odometry.yaw,
                "orientation": quat(self.odometry.orientation),
                "linear": vec(self.odometry.linear),
                "angular": vec(self.odometry.angular),
                "stamp": self.odometry.stamp,
            },
            "sonar_left": rng(self.sonar_left),
            "sonar_center": rng(self.sonar_center),
            "sonar_right": rng(self.sonar_right),
            "setpoint": {
                "linear_x": self.setpoint.linear_x,
                "angular_z": self.setpoint.angular_z,
            },
            "mode": self.mode,
        }
