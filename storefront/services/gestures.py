"""
Swipe gesture detection for mobile step navigation
"""

import logging
import time
from typing import Callable, List, Optional

from storefront.core.config import settings
from storefront.models import SwipeDirection

logger = logging.getLogger(__name__)


class SwipeGestureDetector:
    """
    Classifies a horizontal drag as a swipe

    A drag counts when it travels past `min_distance`, or past the shorter
    `velocity_distance` while moving faster than `min_velocity` (px/ms).
    Leftward drags (start right of end) read as LEFT.
    """

    def __init__(
        self,
        min_distance: Optional[float] = None,
        velocity_distance: Optional[float] = None,
        min_velocity: Optional[float] = None,
    ):
        self.min_distance = settings.SWIPE_MIN_DISTANCE if min_distance is None else min_distance
        self.velocity_distance = (
            settings.SWIPE_VELOCITY_DISTANCE if velocity_distance is None else velocity_distance
        )
        self.min_velocity = settings.SWIPE_MIN_VELOCITY if min_velocity is None else min_velocity

    def classify(self, start_x: float, end_x: float, elapsed_ms: float) -> Optional[SwipeDirection]:
        distance = start_x - end_x
        if elapsed_ms > 0:
            velocity = abs(distance) / elapsed_ms
        else:
            velocity = float("inf") if distance else 0.0

        fast = velocity > self.min_velocity
        if distance > self.min_distance or (distance > self.velocity_distance and fast):
            return SwipeDirection.LEFT
        if distance < -self.min_distance or (distance < -self.velocity_distance and fast):
            return SwipeDirection.RIGHT
        return None


class TouchTracker:
    """Collects one touch sequence: start, any number of moves, end"""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self.reset()

    def reset(self) -> None:
        self.start_x: Optional[float] = None
        self.end_x: Optional[float] = None
        self.started_at: float = 0.0

    @property
    def active(self) -> bool:
        return self.start_x is not None

    def start(self, x: float) -> None:
        self.start_x = x
        self.end_x = None
        self.started_at = self.clock()

    def move(self, x: float) -> None:
        if self.start_x is not None:
            self.end_x = x

    def finish(self):
        """Return (start_x, end_x, elapsed_ms) and reset, or None if incomplete"""
        if self.start_x is None or self.end_x is None:
            self.reset()
            return None
        sample = (self.start_x, self.end_x, (self.clock() - self.started_at) * 1000)
        self.reset()
        return sample


class HapticFeedback:
    """Vibration pulse on gesture navigation; silent under reduced motion"""

    def __init__(self, prefers_reduced_motion: bool = False, pulse_ms: Optional[int] = None):
        self.prefers_reduced_motion = prefers_reduced_motion
        self.pulse_ms = settings.HAPTIC_PULSE_MS if pulse_ms is None else pulse_ms
        self.pulses: List[int] = []

    def pulse(self) -> bool:
        if self.prefers_reduced_motion:
            return False
        self.pulses.append(self.pulse_ms)
        logger.debug(f"Haptic pulse {self.pulse_ms}ms")
        return True
