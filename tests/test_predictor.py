"""Motion predictor tests."""

import pytest

from vision_aim.common import HistorySample, Vec2
from vision_aim.predictor import ZERO, estimate_velocity, predict


def test_short_history_predicts_nothing() -> None:
    assert predict([], 50) == ZERO
    assert predict([HistorySample(0.0, Vec2(3, 4))], 50) == ZERO


def test_equal_timestamps_predict_nothing() -> None:
    history = [HistorySample(1.0, Vec2(0, 0)), HistorySample(1.0, Vec2(10, 0))]

    assert predict(history, 50) == ZERO


def test_constant_velocity_lead() -> None:
    history = [HistorySample(0.0, Vec2(0, 0)), HistorySample(0.1, Vec2(10, 0))]

    lead = predict(history, 50)

    assert lead.x == pytest.approx(5.0)
    assert lead.y == pytest.approx(0.0)


def test_only_newest_two_samples_count() -> None:
    history = [
        HistorySample(0.0, Vec2(0, 0)),
        HistorySample(0.1, Vec2(100, 0)),
        HistorySample(0.2, Vec2(100, 20)),
    ]

    vel = estimate_velocity(history)

    assert vel.x == pytest.approx(0.0)
    assert vel.y == pytest.approx(200.0)


def test_non_positive_lead_is_zero() -> None:
    history = [HistorySample(0.0, Vec2(0, 0)), HistorySample(0.1, Vec2(10, 0))]

    assert predict(history, 0) == ZERO
    assert predict(history, -20) == ZERO
