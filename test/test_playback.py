"""
Unit tests for sowfaview.playback module.
"""

import threading
import unittest
from sowfaview.playback import FramePlayer, RepeatingTimer
from sowfaview.exceptions import InvalidParameterError


class TestFramePlayer(unittest.TestCase):
    """Test cases for FramePlayer class."""

    def test_advance_wraps(self):
        player = FramePlayer(3)
        self.assertEqual([player.advance() for _ in range(4)], [1, 2, 0, 1])

    def test_period(self):
        player = FramePlayer(5, speed=2.0, base_period=0.1)
        self.assertAlmostEqual(player.period, 0.05)
        player.set_speed(0.5)
        self.assertAlmostEqual(player.period, 0.2)

    def test_seek_clamps(self):
        player = FramePlayer(5)
        self.assertEqual(player.seek(10), 4)
        self.assertEqual(player.seek(-3), 0)
        self.assertEqual(player.seek(2.4), 2)

    def test_reset(self):
        player = FramePlayer(5)
        player.seek(3)
        player.reset(2)
        self.assertEqual(player.current, 0)
        self.assertEqual(player.num_frames, 2)

    def test_invalid(self):
        with self.assertRaises(InvalidParameterError):
            FramePlayer(0)
        with self.assertRaises(InvalidParameterError):
            FramePlayer(3, speed=0.0)


class TestRepeatingTimer(unittest.TestCase):
    """Test cases for RepeatingTimer class."""

    def test_ticks_until_cancelled(self):
        ticked = threading.Event()
        count = []

        def tick():
            count.append(1)
            if len(count) >= 3:
                ticked.set()

        timer = RepeatingTimer(0.01, tick).start()
        self.assertTrue(ticked.wait(5.0))
        timer.cancel(wait=True)
        self.assertFalse(timer.running)
        stopped_at = len(count)
        threading.Event().wait(0.05)
        self.assertEqual(len(count), stopped_at)

    def test_failing_callback_stops(self):
        def fail():
            raise ValueError("boom")

        timer = RepeatingTimer(0.01, fail)
        with self.assertLogs('sowfaview.playback', level='ERROR'):
            timer.start()
            timer._thread.join(5.0)
        self.assertFalse(timer.running)

    def test_restart(self):
        timer = RepeatingTimer(10.0, lambda: None).start()
        timer.restart(5.0)
        self.assertEqual(timer.period, 5.0)
        self.assertTrue(timer.running)
        timer.cancel(wait=True)

    def test_invalid_period(self):
        with self.assertRaises(InvalidParameterError):
            RepeatingTimer(0.0, lambda: None)


if __name__ == '__main__':
    unittest.main()
