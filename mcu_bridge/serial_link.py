# mcu_bridge/serial_link.py
"""Line-oriented serial link to the microcontroller, with lazy reconnect."""
from __future__ import annotations

import logging
import time
from typing import Callable, Optional

import serial
from serial import SerialException

logger = logging.getLogger(__name__)


class SerialLink:
    """
    Owns the serial port.

    The port is opened on first use and reopened after a failure, at most
    once per reconnect interval. Reads never block: they return whatever
    is waiting, or b"" when the port is down. Each command line goes out
    in a single write() so lines cannot interleave.
    """

    def __init__(
        self,
        port: str = "/dev/ttyUSB0",
        baud: int = 115_200,
        reconnect_interval_s: float = 1.0,
        startup_delay_s: float = 0.0,
        serial_factory: Callable[..., serial.Serial] = serial.Serial,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.port = port
        self.baud = baud
        self.reconnect_interval_s = reconnect_interval_s
        self.startup_delay_s = startup_delay_s

        self._serial_factory = serial_factory
        self._clock = clock
        self._sleep = sleep

        self._ser: Optional[serial.Serial] = None
        self._next_reconnect_ts: float = 0.0
        # bumped on every successful open; a new connection is a fresh byte stream
        self.connection_count = 0

    @property
    def is_open(self) -> bool:
        return self._ser is not None and self._ser.is_open

    def ensure_open(self) -> Optional[serial.Serial]:
        if self.is_open:
            return self._ser

        now = self._clock()
        if now < self._next_reconnect_ts:
            return None

        try:
            self._ser = self._serial_factory(self.port, self.baud, timeout=0)
            self.connection_count += 1
            logger.info("Connected to serial device %s @ %d", self.port, self.baud)
            if self.startup_delay_s > 0:
                # the microcontroller resets when the port opens
                self._sleep(self.startup_delay_s)
        except (SerialException, OSError) as exc:
            logger.warning("Serial open failed (%s); retrying in %.1fs", exc, self.reconnect_interval_s)
            self._ser = None

        self._next_reconnect_ts = now + self.reconnect_interval_s
        return self._ser

    def read_available(self) -> bytes:
        """Return the bytes currently waiting, or b"" if there are none."""
        ser = self.ensure_open()
        if ser is None:
            return b""

        try:
            waiting = ser.in_waiting
            if waiting <= 0:
                return b""
            return ser.read(waiting) or b""
        except (SerialException, OSError) as exc:
            logger.warning("Serial read failed (%s); closing port", exc)
            self.close()
            return b""

    def write_line(self, line: str) -> bool:
        """Write one encoded command. Returns False if it was not sent."""
        ser = self.ensure_open()
        if ser is None:
            return False

        try:
            ser.write(line.encode("ascii"))
        except (SerialException, OSError) as exc:
            logger.warning("Serial write failed (%s); closing port", exc)
            self.close()
            return False

        logger.debug("TX %r", line)
        return True

    def close(self) -> None:
        ser, self._ser = self._ser, None
        if ser is None:
            return
        try:
            ser.close()
        except (SerialException, OSError):
            logger.debug("Ignoring error while closing %s", self.port)
