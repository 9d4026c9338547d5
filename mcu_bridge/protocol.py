# mcu_bridge/protocol.py
#
# ASCII line protocol between the bridge and the microcontroller.
#
# Bridge -> MCU (one command per line):
#   d                 request one round of telemetry
#   v,<left>,<right>  signed integer motor commands
#   f,<angle>         finger angle, radians
#   w,<angle>         wrist angle, radians
#
# MCU -> Bridge:
#   <TAG>,<flag>,<payload...>
#   TAG in GRF, GRW, IMU, ODOM, USL, USC, USR. Only flag "1" is honoured.
#
# There is no checksum; anything that does not look right is dropped.
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Tuple, Union

logger = logging.getLogger(__name__)

VALID_FLAG = "1"
SMALL_ANGLE_RAD = 0.01
MAX_PARTIAL_LEN = 256

POLL_CMD = "d"
DRIVE_CMD = "v"
FINGER_CMD = "f"
WRIST_CMD = "w"


# ------------------- Decoded payloads -------------------

@dataclass(frozen=True)
class AngleUpdate:
    roll: float


@dataclass(frozen=True)
class ImuUpdate:
    accel_x: float
    accel_z: float
    gyro_x: float
    gyro_y: float
    gyro_z: float
    roll: float
    pitch: float
    yaw: float


@dataclass(frozen=True)
class OdometryUpdate:
    """Position delta (m), absolute heading (rad) and twist (m/s, rad/s)."""
    dx: float
    dy: float
    yaw: float
    linear_x: float
    linear_y: float
    angular_z: float


@dataclass(frozen=True)
class RangeUpdate:
    range: float  # m


@dataclass(frozen=True)
class Decoded:
    channel: str
    update: Union[AngleUpdate, ImuUpdate, OdometryUpdate, RangeUpdate]


@dataclass(frozen=True)
class Ignored:
    """A sentence that was dropped. Not an error."""
    reason: str = ""


IGNORED = Ignored()

DecodeResult = Union[Decoded, Ignored]


# ------------------- Field helpers -------------------

def _to_float(field: str) -> float:
    try:
        value = float(field)
    except ValueError:
        return 0.0
    # "nan", "inf" and overflowing literals like 1e999 parse, but are not readings
    if not math.isfinite(value):
        return 0.0
    return value


def _angle(fields: List[str]) -> AngleUpdate:
    return AngleUpdate(roll=_to_float(fields[2]))


def _imu(fields: List[str]) -> ImuUpdate:
    f = [_to_float(x) for x in fields[2:11]]
    # f[1] is accel y, which the firmware reports but is not trusted
    return ImuUpdate(
        accel_x=f[0],
        accel_z=f[2],
        gyro_x=f[3],
        gyro_y=f[4],
        gyro_z=f[5],
        roll=f[6],
        pitch=f[7],
        yaw=f[8],
    )


def _odom(fields: List[str]) -> OdometryUpdate:
    f = [_to_float(x) for x in fields[2:8]]
    return OdometryUpdate(
        dx=f[0] / 100.0,
        dy=f[1] / 100.0,
        yaw=f[2],
        linear_x=f[3] / 100.0,
        linear_y=f[4] / 100.0,
        angular_z=f[5],
    )


def _range(fields: List[str]) -> RangeUpdate:
    return RangeUpdate(range=_to_float(fields[2]) / 100.0)


# tag -> (channel, minimum field count incl. tag and flag, decoder)
TAGS = {
    "GRF": ("finger_angle", 3, _angle),
    "GRW": ("wrist_angle", 3, _angle),
    "IMU": ("imu", 11, _imu),
    "ODOM": ("odometry", 8, _odom),
    "USL": ("sonar_left", 3, _range),
    "USC": ("sonar_center", 3, _range),
    "USR": ("sonar_right", 3, _range),
}


# ------------------- Decoding -------------------

def decode_sentence(sentence: str) -> DecodeResult:
    """
    Decode one sentence (without its newline).

    Returns Decoded on success and Ignored for anything short, flagged
    invalid or carrying an unknown tag. Never raises.
    """
    fields = [f.strip() for f in sentence.strip().split(",")]
    if len(fields) < 3:
        return Ignored("too few fields")
    if fields[1] != VALID_FLAG:
        return Ignored("invalid flag")

    entry = TAGS.get(fields[0])
    if entry is None:
        return Ignored("unknown tag")

    channel, min_fields, decoder = entry
    if len(fields) < min_fields:
        return Ignored("short %s sentence" % fields[0])

    return Decoded(channel, decoder(fields))


def split_sentences(text: str) -> Tuple[List[str], str]:
    """
    Split text on newlines. Returns (complete sentences, trailing partial).
    """
    parts = text.split("\n")
    return parts[:-1], parts[-1]


class SentenceDecoder:
    """
    Incremental decoder for a byte stream.

    Bytes that do not end in a newline are held back and prefixed to the
    next chunk. The held-back tail is capped so a stream with no newlines
    cannot grow it without bound.
    """

    def __init__(self, max_partial: int = MAX_PARTIAL_LEN) -> None:
        self.max_partial = max_partial
        self._partial = ""

    def feed(self, data: Union[bytes, str]) -> List[Decoded]:
        if isinstance(data, bytes):
            data = data.decode("ascii", errors="ignore")
        if not data:
            return []

        sentences, self._partial = split_sentences(self._partial + data)
        if len(self._partial) > self.max_partial:
            self._partial = ""

        decoded = []
        for sentence in sentences:
            result = decode_sentence(sentence)
            if isinstance(result, Decoded):
                decoded.append(result)
            elif sentence.strip():
                logger.debug("Ignored sentence %r (%s)", sentence, result.reason)
        return decoded

    @property
    def pending(self) -> str:
        """Trailing text still waiting for its newline."""
        return self._partial

    def reset(self) -> None:
        self._partial = ""


# ------------------- Encoding -------------------

def encode_poll() -> str:
    return POLL_CMD + "\n"


def encode_drive(left: int, right: int) -> str:
    return "%s,%d,%d\n" % (DRIVE_CMD, left, right)


def format_angle(angle: float) -> str:
    """
    4 significant digits. Near-zero angles become a plain "0" so the
    firmware never sees an exponent.
    """
    if abs(angle) < SMALL_ANGLE_RAD:
        return "0"
    return "%.4g" % angle


def encode_finger(angle: float) -> str:
    return "%s,%s\n" % (FINGER_CMD, format_angle(angle))


def encode_wrist(angle: float) -> str:
    return "%s,%s\n" % (WRIST_CMD, format_angle(angle))
