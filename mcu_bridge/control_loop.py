# mcu_bridge/control_loop.py
from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Callable, Optional, Protocol

from .bridge_state import BridgeState
from .config import BridgeConfig
from .motor_command import MotorCommand, MotorCommandController, clamp_setpoint
from .protocol import SentenceDecoder, encode_drive, encode_finger, encode_poll, encode_wrist
from .serial_link import SerialLink

logger = logging.getLogger(__name__)


class TelemetrySink(Protocol):
    def publish(self, snapshot: BridgeState) -> None:
        ...


class LatestSnapshotSink:
    """Keeps the most recent published snapshot for pull-style readers."""

    def __init__(self) -> None:
        self.latest: Optional[BridgeState] = None
        self.count = 0

    def publish(self, snapshot: BridgeState) -> None:
        self.latest = snapshot
        self.count += 1


class BridgeController:
    """
    Core of the bridge: inbound setpoint handlers plus the periodic
    poll -> decode -> publish -> command cycle.

    Not thread-safe. Every method must run on one worker; use
    BridgeRunner (or a single-threaded ROS executor) to get there.
    """

    def __init__(
        self,
        link: SerialLink,
        config: Optional[BridgeConfig] = None,
        sink: Optional[TelemetrySink] = None,
        state: Optional[BridgeState] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.link = link
        self.config = config or BridgeConfig()
        self.sink = sink
        self.state = state or BridgeState()
        self._clock = clock

        self.decoder = SentenceDecoder()
        self.motor = MotorCommandController(
            kp=self.config.kp,
            ki=self.config.ki,
            sample_time=self.config.cycle_period_s,
            max_motor_cmd=self.config.max_motor_cmd if self.config.enforce_motor_limit else None,
        )
        self.cycles = 0
        self._connection_seen = 0

    # ---------- Inbound setpoints ----------

    def set_drive(self, linear_x: float, angular_z: float) -> None:
        """Store a clamped velocity setpoint. Clamping is silent."""
        self.state.setpoint = clamp_setpoint(
            linear_x,
            angular_z,
            self.config.max_linear_vel,
            self.config.angular_limit,
        )

    def set_finger(self, angle: float) -> None:
        self.link.write_line(encode_finger(angle))

    def set_wrist(self, angle: float) -> None:
        self.link.write_line(encode_wrist(angle))

    def set_mode(self, mode: int) -> None:
        self.state.mode = int(mode)

    # ---------- Control cycle ----------

    def run_cycle(self) -> MotorCommand:
        """
        One tick: poll, decode whatever has arrived, publish, then send a
        fresh motor command. Never waits for the microcontroller.
        """
        self.link.write_line(encode_poll())

        data = self.link.read_available()
        if self.link.connection_count != self._connection_seen:
            self._connection_seen = self.link.connection_count
            # drop any half sentence and wind-up from the previous connection
            self.decoder.reset()
            self.motor.reset()
        decoded = self.decoder.feed(data)
        if decoded:
            now = self._clock()
            for item in decoded:
                self.state.apply(item, now)

        if self.sink is not None:
            self.sink.publish(self.state.snapshot())

        command = self.motor.update(self.state.odometry, self.state.setpoint)
        self.link.write_line(encode_drive(command.left, command.right))
        self.cycles += 1
        return command


_STOP = object()


class BridgeRunner:
    """
    Single worker that owns a BridgeController.

    Setpoint calls from any thread are queued and executed on the worker
    between control cycles, so the controller never sees concurrent access.
    """

    def __init__(
        self,
        controller: BridgeController,
        period_s: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.controller = controller
        self.period_s = period_s if period_s is not None else controller.config.cycle_period_s
        self._clock = clock
        self._queue: "queue.Queue" = queue.Queue()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ---------- Producer side (any thread) ----------

    def submit(self, fn: Callable, *args) -> None:
        self._queue.put((fn, args))

    def drive(self, linear_x: float, angular_z: float) -> None:
        self.submit(self.controller.set_drive, linear_x, angular_z)

    def finger(self, angle: float) -> None:
        self.submit(self.controller.set_finger, angle)

    def wrist(self, angle: float) -> None:
        self.submit(self.controller.set_wrist, angle)

    def mode(self, mode: int) -> None:
        self.submit(self.controller.set_mode, mode)

    # ---------- Worker side ----------

    def run_pending(self) -> int:
        """Run every queued call without blocking. Returns how many ran."""
        count = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return count
            if item is _STOP:
                continue
            fn, args = item
            fn(*args)
            count += 1

    def run_forever(self) -> None:
        """
        Block running queued calls and control cycles until stop().
        Missed ticks are dropped rather than run back to back.
        """
        logger.info("Bridge loop started (period %.3fs)", self.period_s)
        next_tick = self._clock()
        while not self._stop.is_set():
            timeout = next_tick - self._clock()
            if timeout <= 0:
                self.controller.run_cycle()
                next_tick += self.period_s
                now = self._clock()
                if next_tick < now:
                    next_tick = now + self.period_s
                continue

            try:
                item = self._queue.get(timeout=timeout)
            except queue.Empty:
                continue
            if item is _STOP:
                # a sentinel left over from an earlier stop() is not ours
                if self._stop.is_set():
                    break
                continue
            fn, args = item
            fn(*args)
        logger.info("Bridge loop stopped after %d cycles", self.controller.cycles)

    def start(self) -> threading.Thread:
        def _run():
            try:
                self.run_forever()
            except Exception:
                logger.exception("Bridge loop terminated due to an exception")

        self._stop.clear()
        self._thread = threading.Thread(target=_run, name="mcu-bridge-loop", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None and self._thread.is_alive():
            self._queue.put(_STOP)
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
