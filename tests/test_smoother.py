"""Aim smoother tests."""

import pytest

from vision_aim.common import Vec2
from vision_aim.config import AimingConfig
from vision_aim.smoother import MIN_LERP, REFERENCE_FRAME_MS, AimSmoother, lerp_amount, step


def test_one_reference_frame() -> None:
    assert lerp_amount(0.2, REFERENCE_FRAME_MS) == pytest.approx(0.8)

    out = step(Vec2(0, 0), Vec2(100, 0), 0.2, REFERENCE_FRAME_MS)

    assert out.x == pytest.approx(80.0)
    assert out.y == pytest.approx(0.0)


def test_zero_dt_keeps_aim() -> None:
    current = Vec2(12.0, -3.0)

    assert step(current, Vec2(100, 100), 0.2, 0.0) == current


def test_full_lerp_lands_exactly_on_target() -> None:
    target = Vec2(123.456, -78.9)

    assert step(Vec2(0.1, 0.2), target, 0.0, REFERENCE_FRAME_MS) == target


def test_frame_rate_independent() -> None:
    one = step(Vec2(0, 0), Vec2(100, 0), 0.5, 2 * REFERENCE_FRAME_MS)
    half = step(Vec2(0, 0), Vec2(100, 0), 0.5, REFERENCE_FRAME_MS)
    two = step(half, Vec2(100, 0), 0.5, REFERENCE_FRAME_MS)

    assert one.x == pytest.approx(two.x)


def test_lerp_floor() -> None:
    assert lerp_amount(1.0, REFERENCE_FRAME_MS) == MIN_LERP


def test_instant_snap_uses_snap_factor() -> None:
    cfg = AimingConfig(smoothing=0.9, snap_smoothing=0.0, instant_snap=True)
    smoother = AimSmoother(Vec2(0, 0))

    assert smoother.update(Vec2(40, 40), cfg, REFERENCE_FRAME_MS) == Vec2(40, 40)
    assert smoother.reset(Vec2(5, 5)) == Vec2(5, 5)
