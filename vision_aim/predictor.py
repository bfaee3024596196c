# predictor.py
"""Constant-velocity lead from the last two history samples."""
from __future__ import annotations

from typing import Sequence

from vision_aim.common import HistorySample, Vec2

ZERO = Vec2(0.0, 0.0)


def estimate_velocity(history: Sequence[HistorySample]) -> Vec2:
    """px/s from the two newest samples; zero if undefined."""
    if len(history) < 2:
        return ZERO
    prev, latest = history[-2], history[-1]
    dt = latest.t - prev.t
    if dt <= 0:
        return ZERO
    return latest.pos.sub(prev.pos).scale(1.0 / dt)


def predict(history: Sequence[HistorySample], lead_time_ms: float) -> Vec2:
    """
    Displacement the target is expected to cover in ``lead_time_ms``.
    No acceleration term and no filtering; noisy samples give noisy leads.
    """
    if lead_time_ms <= 0:
        return ZERO
    return estimate_velocity(history).scale(lead_time_ms / 1000.0)
