"""Wheel rotation model driven by discrete spin events.

Angles are clockwise degrees and only ever grow. Segment ``i`` covers wheel
angles ``[i * seg, (i + 1) * seg)`` measured from the wheel's zero mark, and the
pointer sits at screen angle zero, so the wheel angle under the pointer is
``-rotation mod 360``.
"""

import math
import random
from dataclasses import dataclass
from enum import StrEnum

FULL_TURN = 360.0
# A cubic Hermite ease-out with zero end velocity stays monotonic while its
# normalized start slope is at most 3.
_MAX_START_SLOPE = 3.0


class WheelPhase(StrEnum):
    """Animation phases of the wheel."""

    IDLE = "idle"
    SPINNING = "spinning"
    LANDING = "landing"


def segment_angle(item_count: int) -> float:
    """Return the angular width of one segment."""
    return FULL_TURN / item_count


def pointer_index(rotation: float, item_count: int) -> int:
    """Return the index of the segment under the fixed pointer."""
    under_pointer = (-rotation) % FULL_TURN
    return int(under_pointer // segment_angle(item_count)) % item_count


def random_offset(
    item_count: int, jitter_fraction: float, rng: random.Random | None = None
) -> float:
    """Return an intra-segment offset within jitter_fraction of half a segment."""
    source = rng or random
    half_segment = segment_angle(item_count) / 2
    return source.uniform(-1.0, 1.0) * jitter_fraction * half_segment


def landing_rotation(  # noqa: PLR0913
    current: float,
    winner_index: int,
    item_count: int,
    *,
    min_turns: int = 3,
    offset: float = 0.0,
    min_distance: float = 0.0,
) -> float:
    """Return the forward rotation that parks winner_index under the pointer.

    The result is at least ``min_turns`` full turns and ``min_distance``
    degrees past ``current``.
    """
    if not 0 <= winner_index < item_count:
        raise ValueError(f"winner index {winner_index} outside {item_count} items")
    segment = segment_angle(item_count)
    if abs(offset) >= segment / 2:
        raise ValueError("offset would cross into a neighbouring segment")
    under_pointer = winner_index * segment + segment / 2 + offset
    base = (-under_pointer) % FULL_TURN
    earliest = current + max(min_turns * FULL_TURN, min_distance)
    turns = math.ceil((earliest - base) / FULL_TURN)
    return base + turns * FULL_TURN


def ease_out(progress: float, start_slope: float) -> float:
    """Cubic Hermite from 0 to 1 with the given start slope and zero end slope."""
    s = min(max(progress, 0.0), 1.0)
    return start_slope * (s**3 - 2 * s**2 + s) + (3 * s**2 - 2 * s**3)


@dataclass
class WheelAnimation:
    """Explicit wheel state; renderers read ``angle_at`` once per frame."""

    spin_speed: float = 720.0
    phase: WheelPhase = WheelPhase.IDLE
    winner_index: int | None = None
    _anchor_angle: float = 0.0
    _anchor_time: float = 0.0
    _target: float = 0.0
    _duration: float = 0.0
    _start_slope: float = 0.0

    def angle_at(self, now: float) -> float:
        """Return the rendered rotation at time ``now``."""
        if self.phase is WheelPhase.SPINNING:
            return self._anchor_angle + self.spin_speed * (now - self._anchor_time)
        if self.phase is WheelPhase.LANDING:
            progress = (now - self._anchor_time) / self._duration
            travel = self._target - self._anchor_angle
            return self._anchor_angle + travel * ease_out(progress, self._start_slope)
        return self._anchor_angle

    @property
    def target(self) -> float | None:
        """Return the landing angle once one is set."""
        return self._target if self.phase is WheelPhase.LANDING else None

    def start_spin(self, now: float) -> None:
        """Begin an open-ended spin from the current angle."""
        if self.phase is not WheelPhase.IDLE:
            raise RuntimeError(f"cannot start spinning while {self.phase}")
        self._anchor_angle = self.angle_at(now)
        self._anchor_time = now
        self.winner_index = None
        self.phase = WheelPhase.SPINNING

    def land_on(  # noqa: PLR0913
        self,
        winner_index: int,
        item_count: int,
        now: float,
        duration: float,
        *,
        min_turns: int = 3,
        offset: float = 0.0,
    ) -> float:
        """Fix the outcome and switch to the landing curve; returns the target."""
        if self.phase is not WheelPhase.SPINNING:
            raise RuntimeError(f"cannot land while {self.phase}")
        if duration <= 0:
            raise ValueError("landing duration must be positive")
        current = self.angle_at(now)
        target = landing_rotation(
            current,
            winner_index,
            item_count,
            min_turns=min_turns,
            offset=offset,
            min_distance=self.spin_speed * duration / _MAX_START_SLOPE,
        )
        self._anchor_angle = current
        self._anchor_time = now
        self._target = target
        self._duration = duration
        self._start_slope = self.spin_speed * duration / (target - current)
        self.winner_index = winner_index
        self.phase = WheelPhase.LANDING
        return target

    def finish(self) -> int:
        """Settle on the landing target and return the winning index."""
        if self.phase is not WheelPhase.LANDING or self.winner_index is None:
            raise RuntimeError(f"cannot finish while {self.phase}")
        self._anchor_angle = self._target
        self.phase = WheelPhase.IDLE
        return self.winner_index

    def halt(self, now: float) -> None:
        """Stop wherever the wheel currently is, without an outcome."""
        self._anchor_angle = self.angle_at(now)
        self._anchor_time = now
        self.winner_index = None
        self.phase = WheelPhase.IDLE
