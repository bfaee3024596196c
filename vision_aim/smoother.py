# smoother.py
"""Frame-rate independent exponential smoothing of the aim point."""
from __future__ import annotations

import numpy as np

from vision_aim.common import Vec2
from vision_aim.config import AimingConfig

REFERENCE_FRAME_MS = 16.67   # nominal 60 Hz tick
MIN_LERP = 0.01


def lerp(a: Vec2, b: Vec2, amount: float) -> Vec2:
    return Vec2((1.0 - amount) * a.x + amount * b.x, (1.0 - amount) * a.y + amount * b.y)


def lerp_amount(smoothing_factor: float, dt_ms: float) -> float:
    """Fraction of the remaining gap closed after ``dt_ms``."""
    if dt_ms <= 0:
        return 0.0
    raw = 1.0 - smoothing_factor ** (dt_ms / REFERENCE_FRAME_MS)
    return float(np.clip(raw, MIN_LERP, 1.0))


def step(current: Vec2, target: Vec2, smoothing_factor: float, dt_ms: float) -> Vec2:
    """
    Move ``current`` toward ``target``.  Same result for one 33 ms step as
    for two 16.7 ms steps; dt <= 0 leaves the aim where it is.
    """
    amount = lerp_amount(smoothing_factor, dt_ms)
    if amount == 0.0:
        return current
    return lerp(current, target, amount)


class AimSmoother:
    """
    Keeps the smoothed aim point between ticks and picks the smoothing
    preset (normal or instant-snap) from the aiming config.
    """

    def __init__(self, origin: Vec2 = Vec2()):
        self.point = origin

    @staticmethod
    def factor_for(cfg: AimingConfig) -> float:
        return cfg.snap_smoothing if cfg.instant_snap else cfg.smoothing

    def update(self, target: Vec2, cfg: AimingConfig, dt_ms: float) -> Vec2:
        self.point = step(self.point, target, self.factor_for(cfg), dt_ms)
        return self.point

    def reset(self, origin: Vec2) -> Vec2:
        """No target: snap back to the aim origin instead of drifting."""
        self.point = origin
        return self.point
