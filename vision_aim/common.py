# common.py
"""Objects that are shared across multiple modules."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import NamedTuple, Optional, Tuple


class Vec2(NamedTuple):
    """2-D point / vector in pixels."""
    x: float = 0.0
    y: float = 0.0

    def add(self, other: "Vec2") -> "Vec2":
        return Vec2(self.x + other.x, self.y + other.y)

    def sub(self, other: "Vec2") -> "Vec2":
        return Vec2(self.x - other.x, self.y - other.y)

    def scale(self, s: float) -> "Vec2":
        return Vec2(self.x * s, self.y * s)

    def mag(self) -> float:
        return math.hypot(self.x, self.y)

    def dist(self, other: "Vec2") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)


class Size(NamedTuple):
    width: float
    height: float


class Rect(NamedTuple):
    """On-screen rectangle (left, top, width, height)."""
    left: float
    top: float
    width: float
    height: float

    @property
    def origin(self) -> Vec2:
        return Vec2(self.left, self.top)

    @property
    def size(self) -> Size:
        return Size(self.width, self.height)

    @property
    def center(self) -> Vec2:
        return Vec2(self.left + self.width / 2.0, self.top + self.height / 2.0)


@dataclass(frozen=True)
class Detection:
    """Raw detector output. bbox is (x, y, w, h) in detector-space pixels."""
    label: str
    score: float
    bbox: Tuple[float, float, float, float]


@dataclass(frozen=True)
class HistorySample:
    t: float
    pos: Vec2


@dataclass(frozen=True)
class Target:
    """
    A filtered detection for the current cycle.
    bbox / center are in full-resolution video pixels, display_center in
    screen pixels (None when geometry was unavailable at ingest).
    """
    identity: int
    label: str
    score: float
    bbox: Tuple[float, float, float, float]
    center: Vec2
    estimated_distance: float
    is_visible: bool
    timestamp: float
    display_center: Optional[Vec2] = None


@dataclass(frozen=True)
class CandidateSnapshot:
    """
    Immutable candidate list handed from the detection side to the control
    loop. Replaced as a whole; never mutated.
    """
    version: int
    timestamp: float
    targets: Tuple[Target, ...] = ()
    histories: dict = field(default_factory=dict)  # identity -> Tuple[HistorySample, ...]

    def history_for(self, identity: int) -> Tuple[HistorySample, ...]:
        return self.histories.get(identity, ())


EMPTY_SNAPSHOT = CandidateSnapshot(version=0, timestamp=0.0)
