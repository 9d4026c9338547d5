# mcu_bridge/main.py
from __future__ import annotations

import argparse
import logging
from typing import List, Optional

import uvicorn

from .api import create_app
from .config import BridgeConfig
from .control_loop import BridgeController, BridgeRunner, LatestSnapshotSink
from .serial_link import SerialLink

logger = logging.getLogger(__name__)


def build_parser(defaults: BridgeConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Serial bridge to the rover microcontroller")
    parser.add_argument("--device", default=defaults.device,
                        help="serial device path")
    parser.add_argument("--baud", type=int, default=defaults.baud,
                        help="serial baud rate")
    parser.add_argument("--period", type=float, default=defaults.cycle_period_s,
                        help="control cycle period in seconds")
    parser.add_argument("--max-linear", type=float, default=defaults.max_linear_vel,
                        help="linear velocity clamp [m/s]")
    parser.add_argument("--max-angular", type=float, default=defaults.max_angular_vel,
                        help="angular velocity clamp [rad/s], used with --separate-angular-limit")
    parser.add_argument("--separate-angular-limit", action="store_true",
                        default=not defaults.angular_uses_linear_limit,
                        help="clamp angular z with --max-angular instead of the linear limit")
    parser.add_argument("--max-motor-cmd", type=int, default=defaults.max_motor_cmd,
                        help="motor command safety ceiling")
    parser.add_argument("--enforce-motor-limit", action="store_true",
                        default=defaults.enforce_motor_limit,
                        help="saturate motor commands at --max-motor-cmd")
    parser.add_argument("--startup-delay", type=float, default=defaults.startup_delay_s,
                        help="seconds to wait after opening the port")
    parser.add_argument("--host", default="0.0.0.0", help="HTTP bind address")
    parser.add_argument("--port", type=int, default=8000, help="HTTP port")
    parser.add_argument("--log-level", default="INFO")
    return parser


def config_from_args(args: argparse.Namespace, base: BridgeConfig) -> BridgeConfig:
    return BridgeConfig(
        device=args.device,
        baud=args.baud,
        cycle_period_s=args.period,
        max_linear_vel=args.max_linear,
        max_angular_vel=args.max_angular,
        angular_uses_linear_limit=not args.separate_angular_limit,
        max_motor_cmd=args.max_motor_cmd,
        enforce_motor_limit=args.enforce_motor_limit,
        kp=base.kp,
        ki=base.ki,
        reconnect_interval_s=base.reconnect_interval_s,
        startup_delay_s=args.startup_delay,
        heartbeat_interval_s=base.heartbeat_interval_s,
        robot_name=base.robot_name,
    )


def main(argv: Optional[List[str]] = None) -> None:
    """
    Standalone entry point:

      - Opens the serial link and starts the bridge worker thread.
      - Serves the HTTP command/status API via uvicorn.
    """
    base = BridgeConfig.from_env()
    args = build_parser(base).parse_args(argv)
    config = config_from_args(args, base)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting bridge (device=%s, baud=%d, period=%.3fs)",
                config.device, config.baud, config.cycle_period_s)

    link = SerialLink(
        port=config.device,
        baud=config.baud,
        reconnect_interval_s=config.reconnect_interval_s,
        startup_delay_s=config.startup_delay_s,
    )
    sink = LatestSnapshotSink()
    controller = BridgeController(link, config, sink=sink)
    runner = BridgeRunner(controller)
    runner.start()

    try:
        uvicorn.run(
            create_app(runner, sink),
            host=args.host,
            port=args.port,
            log_level="info",
            access_log=False,
        )
    finally:
        runner.stop(timeout=2.0)
        link.close()


if __name__ == "__main__":
    main()
