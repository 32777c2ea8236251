"""
Frame stepping and a cancellable repeating timer for profile playback.

The viewer owns these objects; the analysis functions never schedule anything themselves.
"""

import logging
import threading
from typing import Callable

from .exceptions import InvalidParameterError

logger = logging.getLogger(__name__)


class FramePlayer:
    """
    Tracks the current frame of a playback and loops back to the start after the last frame.

    Attributes:
        num_frames (int): Number of frames available
        current (int): Current frame, 0-based
        speed (float): Playback speed multiplier
        base_period (float): Seconds between frames at unit speed
    """

    def __init__(self, num_frames: int, speed: float = 1.0, base_period: float = 0.1):
        if num_frames < 1:
            raise InvalidParameterError("no frames to display")
        self.num_frames = int(num_frames)
        self.current = 0
        self.base_period = base_period
        self.set_speed(speed)

    @property
    def period(self) -> float:
        return self.base_period / self.speed

    def set_speed(self, speed: float) -> None:
        if not speed > 0:
            raise InvalidParameterError(f"play speed must be positive, got {speed!r}")
        self.speed = float(speed)

    def seek(self, frame: int) -> int:
        """Move to a frame, clamped to the valid range."""
        self.current = min(max(0, int(round(frame))), self.num_frames - 1)
        return self.current

    def advance(self) -> int:
        """Step to the next frame, wrapping to the first one after the last."""
        self.current = (self.current + 1) % self.num_frames
        return self.current

    def reset(self, num_frames: int) -> None:
        """Start over with a new number of frames, e.g. after the step size changed."""
        if num_frames < 1:
            raise InvalidParameterError("no frames to display")
        self.num_frames = int(num_frames)
        self.current = 0


class RepeatingTimer:
    """
    Calls `callback` every `period` seconds on a daemon thread until cancelled.

    Ticks never overlap: the next wait starts only after the callback returned, so a
    slow callback delays the following tick instead of re-entering.
    """

    def __init__(self, period: float, callback: Callable[[], None]):
        if not period > 0:
            raise InvalidParameterError(f"timer period must be positive, got {period!r}")
        self.period = float(period)
        self.callback = callback
        self._stop = threading.Event()
        self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "RepeatingTimer":
        if self.running:
            return self
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()
        return self

    def _run(self):
        while not self._stop.wait(self.period):
            try:
                self.callback()
            except Exception:
                logger.exception("Timer callback failed; stopping playback")
                self._stop.set()

    def cancel(self, wait: bool = False) -> None:
        """Stop the timer; with `wait` also join the worker thread."""
        self._stop.set()
        if wait and self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join()

    def restart(self, period: float) -> None:
        """Change the period, e.g. after the playback speed changed."""
        self.cancel(wait=True)
        if not period > 0:
            raise InvalidParameterError(f"timer period must be positive, got {period!r}")
        self.period = float(period)
        self.start()
