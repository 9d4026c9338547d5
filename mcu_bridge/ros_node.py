# mcu_bridge/ros_node.py
import re

import rclpy
from rclpy.node import Node
from rclpy.time import Time
from geometry_msgs.msg import QuaternionStamped, Twist
from nav_msgs.msg import Odometry
from sensor_msgs.msg import Imu, Range
from std_msgs.msg import Float32, String, UInt8

from .bridge_state import BridgeState
from .config import BridgeConfig
from .control_loop import BridgeController
from .serial_link import SerialLink


def ros_safe_name(name):
    """Host names may hold characters ROS does not allow in topic names."""
    cleaned = re.sub(r"[^A-Za-z0-9_]", "_", name)
    if not cleaned or cleaned[0].isdigit():
        cleaned = "robot_" + cleaned
    return cleaned


def _stamp(seconds):
    return Time(nanoseconds=int(seconds * 1e9)).to_msg()


def _set_quat(dst, q):
    dst.x, dst.y, dst.z, dst.w = q.x, q.y, q.z, q.w


class McuBridgeNode(Node):
    """
    ROS 2 face of the bridge. rclpy.spin() runs every subscription and
    timer callback on one thread, which is what BridgeController needs.
    """

    def __init__(self, defaults=None):
        super().__init__('mcu_bridge')
        defaults = defaults or BridgeConfig.from_env()

        # ---- parameters ----
        self.declare_parameter('device', defaults.device)
        self.declare_parameter('baud', defaults.baud)
        self.declare_parameter('period', defaults.cycle_period_s)
        self.declare_parameter('max_linear', defaults.max_linear_vel)
        self.declare_parameter('max_angular', defaults.max_angular_vel)
        self.declare_parameter('angular_uses_linear_limit', defaults.angular_uses_linear_limit)
        self.declare_parameter('max_motor_cmd', defaults.max_motor_cmd)
        self.declare_parameter('enforce_motor_limit', defaults.enforce_motor_limit)
        self.declare_parameter('kp', defaults.kp)
        self.declare_parameter('ki', defaults.ki)
        self.declare_parameter('startup_delay', defaults.startup_delay_s)
        self.declare_parameter('heartbeat_interval', defaults.heartbeat_interval_s)
        self.declare_parameter('name', defaults.robot_name)

        p = self.get_parameter
        config = BridgeConfig(
            device=p('device').get_parameter_value().string_value,
            baud=p('baud').get_parameter_value().integer_value,
            cycle_period_s=float(p('period').value),
            max_linear_vel=float(p('max_linear').value),
            max_angular_vel=float(p('max_angular').value),
            angular_uses_linear_limit=p('angular_uses_linear_limit').get_parameter_value().bool_value,
            max_motor_cmd=int(p('max_motor_cmd').value),
            enforce_motor_limit=p('enforce_motor_limit').get_parameter_value().bool_value,
            kp=float(p('kp').value),
            ki=float(p('ki').value),
            reconnect_interval_s=defaults.reconnect_interval_s,
            startup_delay_s=float(p('startup_delay').value),
            heartbeat_interval_s=float(p('heartbeat_interval').value),
            robot_name=p('name').get_parameter_value().string_value,
        )
        name = ros_safe_name(config.robot_name)
        self.get_logger().info(f"{name}: opening {config.device} @ {config.baud}")

        self.link = SerialLink(
            port=config.device,
            baud=config.baud,
            reconnect_interval_s=config.reconnect_interval_s,
            startup_delay_s=config.startup_delay_s,
        )
        self.bridge = BridgeController(
            self.link,
            config,
            sink=self,
            clock=lambda: self.get_clock().now().nanoseconds / 1e9,
        )

        self.base_frame = f"{name}/base_link"
        self.odom_frame = f"{name}/odom"

        # ROS I/O
        self.pub_finger = self.create_publisher(QuaternionStamped, f'{name}/fingerAngle/prev_cmd', 10)
        self.pub_wrist = self.create_publisher(QuaternionStamped, f'{name}/wristAngle/prev_cmd', 10)
        self.pub_imu = self.create_publisher(Imu, f'{name}/imu', 10)
        self.pub_odom = self.create_publisher(Odometry, f'{name}/odom', 10)
        self.pub_sonar_left = self.create_publisher(Range, f'{name}/sonarLeft', 10)
        self.pub_sonar_center = self.create_publisher(Range, f'{name}/sonarCenter', 10)
        self.pub_sonar_right = self.create_publisher(Range, f'{name}/sonarRight', 10)
        self.pub_heartbeat = self.create_publisher(String, f'{name}/abridge/heartbeat', 1)

        self.create_subscription(Twist, f'{name}/driveControl', self.drive_cb, 10)
        self.create_subscription(Float32, f'{name}/fingerAngle/cmd', self.finger_cb, 1)
        self.create_subscription(Float32, f'{name}/wristAngle/cmd', self.wrist_cb, 1)
        self.create_subscription(UInt8, f'{name}/mode', self.mode_cb, 1)

        self.cycle_timer = self.create_timer(config.cycle_period_s, self.bridge.run_cycle)
        self.heartbeat_timer = self.create_timer(config.heartbeat_interval_s, self.heartbeat_cb)
        self.get_logger().info(f"Control cycle at {1.0 / config.cycle_period_s:.1f} Hz")

    # ---- inbound ----
    def drive_cb(self, msg: Twist):
        self.bridge.set_drive(msg.linear.x, msg.angular.z)

    def finger_cb(self, msg: Float32):
        self.bridge.set_finger(msg.data)

    def wrist_cb(self, msg: Float32):
        self.bridge.set_wrist(msg.data)

    def mode_cb(self, msg: UInt8):
        self.bridge.set_mode(msg.data)

    def heartbeat_cb(self):
        self.pub_heartbeat.publish(String(data=''))

    # ---- outbound (TelemetrySink) ----
    def publish(self, snapshot: BridgeState):
        self.pub_finger.publish(self._angle_msg(snapshot.finger_angle))
        self.pub_wrist.publish(self._angle_msg(snapshot.wrist_angle))

        imu = Imu()
        imu.header.stamp = _stamp(snapshot.imu.stamp)
        imu.header.frame_id = self.base_frame
        acc, gyro = snapshot.imu.linear_acceleration, snapshot.imu.angular_velocity
        imu.linear_acceleration.x = acc.x
        imu.linear_acceleration.y = acc.y
        imu.linear_acceleration.z = acc.z
        imu.angular_velocity.x = gyro.x
        imu.angular_velocity.y = gyro.y
        imu.angular_velocity.z = gyro.z
        _set_quat(imu.orientation, snapshot.imu.orientation)
        self.pub_imu.publish(imu)

        o = snapshot.odometry
        odom = Odometry()
        odom.header.stamp = _stamp(o.stamp)
        odom.header.frame_id = self.odom_frame
        odom.child_frame_id = self.base_frame
        odom.pose.pose.position.x = o.position.x
        odom.pose.pose.position.y = o.position.y
        odom.pose.pose.position.z = o.position.z
        _set_quat(odom.pose.pose.orientation, o.orientation)
        odom.twist.twist.linear.x = o.linear.x
        odom.twist.twist.linear.y = o.linear.y
        odom.twist.twist.angular.z = o.angular.z
        self.pub_odom.publish(odom)

        self.pub_sonar_left.publish(self._range_msg(snapshot.sonar_left))
        self.pub_sonar_center.publish(self._range_msg(snapshot.sonar_center))
        self.pub_sonar_right.publish(self._range_msg(snapshot.sonar_right))

    def _angle_msg(self, angle):
        msg = QuaternionStamped()
        msg.header.stamp = _stamp(angle.stamp)
        _set_quat(msg.quaternion, angle.orientation)
        return msg

    def _range_msg(self, reading):
        msg = Range()
        msg.header.stamp = _stamp(reading.stamp)
        msg.range = float(reading.range)
        return msg


def main():
    rclpy.init()
    node = McuBridgeNode()
    try:
        rclpy.spin(node)
    finally:
        node.link.close()
        node.destroy_node()
        rclpy.shutdown()


if __name__ == '__main__':
    main()
