import sys
from pathlib import Path
import unittest

# Ensure the package is importable when tests are run from repo root.
TEST_ROOT = Path(__file__).resolve().parents[1]
if str(TEST_ROOT) not in sys.path:
    sys.path.append(str(TEST_ROOT))

from mcu_bridge.protocol import (
    AngleUpdate,
    Decoded,
    Ignored,
    RangeUpdate,
    SentenceDecoder,
    decode_sentence,
    encode_drive,
    encode_finger,
    encode_poll,
    encode_wrist,
    split_sentences,
)


class DecodeSentenceTests(unittest.TestCase):
    def test_finger_and_wrist_angles(self):
        self.assertEqual(decode_sentence("GRF,1,0.5"), Decoded("finger_angle", AngleUpdate(0.5)))
        self.assertEqual(decode_sentence("GRW,1,-1.25"), Decoded("wrist_angle", AngleUpdate(-1.25)))

    def test_ranges_are_converted_to_meters(self):
        for tag, channel in (("USL", "sonar_left"), ("USC", "sonar_center"), ("USR", "sonar_right")):
            result = decode_sentence(f"{tag},1,250")
            self.assertEqual(result.channel, channel)
            self.assertAlmostEqual(result.update.range, 2.5)

    def test_invalid_flag_is_ignored(self):
        self.assertIsInstance(decode_sentence("USL,0,250"), Ignored)
        self.assertIsInstance(decode_sentence("USL,x,250"), Ignored)

    def test_two_fields_are_ignored_for_every_tag(self):
        for tag in ("GRF", "GRW", "IMU", "ODOM", "USL", "USC", "USR"):
            self.assertIsInstance(decode_sentence(f"{tag},1"), Ignored)

    def test_unknown_tag_and_empty_line_are_ignored(self):
        self.assertIsInstance(decode_sentence("BAT,1,12.4"), Ignored)
        self.assertIsInstance(decode_sentence(""), Ignored)

    def test_short_imu_and_odom_are_ignored(self):
        self.assertIsInstance(decode_sentence("IMU,1,1,2,3"), Ignored)
        self.assertIsInstance(decode_sentence("ODOM,1,10,0,0,5,0"), Ignored)

    def test_unparseable_number_decodes_as_zero(self):
        self.assertEqual(decode_sentence("USC,1,abc"), Decoded("sonar_center", RangeUpdate(0.0)))

    def test_non_finite_number_decodes_as_zero(self):
        for text in ("nan", "NaN", "inf", "-inf", "1e999"):
            self.assertEqual(decode_sentence(f"USL,1,{text}"), Decoded("sonar_left", RangeUpdate(0.0)))

        update = decode_sentence("ODOM,1,0,0,nan,inf,-1e999,0.5").update
        self.assertEqual((update.yaw, update.linear_x, update.linear_y), (0.0, 0.0, 0.0))
        self.assertEqual(update.angular_z, 0.5)

    def test_imu_field_mapping(self):
        update = decode_sentence("IMU,1,1,2,3,4,5,6,0.1,0.2,0.3").update
        self.assertEqual(update.accel_x, 1.0)
        self.assertEqual(update.accel_z, 3.0)
        self.assertEqual((update.gyro_x, update.gyro_y, update.gyro_z), (4.0, 5.0, 6.0))
        self.assertEqual((update.roll, update.pitch, update.yaw), (0.1, 0.2, 0.3))

    def test_odom_units(self):
        update = decode_sentence("ODOM,1,10,-20,1.5,5,2,0.25").update
        self.assertAlmostEqual(update.dx, 0.1)
        self.assertAlmostEqual(update.dy, -0.2)
        self.assertEqual(update.yaw, 1.5)
        self.assertAlmostEqual(update.linear_x, 0.05)
        self.assertAlmostEqual(update.linear_y, 0.02)
        self.assertEqual(update.angular_z, 0.25)


class SentenceDecoderTests(unittest.TestCase):
    def test_split_keeps_trailing_partial(self):
        sentences, rest = split_sentences("GRF,1,0.1\nUSL,1,")
        self.assertEqual(sentences, ["GRF,1,0.1"])
        self.assertEqual(rest, "USL,1,")

    def test_partial_sentence_is_completed_by_next_chunk(self):
        decoder = SentenceDecoder()
        self.assertEqual(decoder.feed(b"USL,1,1"), [])

        decoded = decoder.feed(b"00\nUSR,1,5\n")
        self.assertEqual([d.channel for d in decoded], ["sonar_left", "sonar_right"])
        self.assertAlmostEqual(decoded[0].update.range, 1.0)
        self.assertAlmostEqual(decoded[1].update.range, 0.05)

    def test_crlf_and_garbage_are_tolerated(self):
        decoder = SentenceDecoder()
        decoded = decoder.feed(b"\xff\x00junk\nUSC,1,50\r\nGRF,0,1\n")
        self.assertEqual(len(decoded), 1)
        self.assertAlmostEqual(decoded[0].update.range, 0.5)

    def test_runaway_partial_is_dropped(self):
        decoder = SentenceDecoder(max_partial=16)
        self.assertEqual(decoder.feed("x" * 64), [])
        decoded = decoder.feed("\nUSL,1,100\n")
        self.assertEqual([d.channel for d in decoded], ["sonar_left"])

    def test_empty_feed(self):
        self.assertEqual(SentenceDecoder().feed(b""), [])

    def test_reset_drops_pending_text(self):
        decoder = SentenceDecoder()
        decoder.feed(b"USR,1,7")
        self.assertEqual(decoder.pending, "USR,1,7")
        decoder.reset()
        self.assertEqual(decoder.pending, "")
        self.assertEqual(decoder.feed(b"5\n"), [])


class EncodeTests(unittest.TestCase):
    def test_poll_and_drive(self):
        self.assertEqual(encode_poll(), "d\n")
        self.assertEqual(encode_drive(-3, 12), "v,-3,12\n")

    def test_small_angles_encode_as_zero(self):
        self.assertEqual(encode_finger(0.004), "f,0\n")
        self.assertEqual(encode_wrist(-0.005), "w,0\n")
        self.assertEqual(encode_finger(0.0), "f,0\n")

    def test_four_significant_digits(self):
        self.assertEqual(encode_finger(1.2345), "f,1.234\n")
        self.assertEqual(encode_wrist(0.01), "w,0.01\n")
        self.assertEqual(encode_wrist(-0.5), "w,-0.5\n")
        self.assertEqual(encode_finger(3.14159), "f,3.142\n")


if __name__ == "__main__":
    unittest.main()
