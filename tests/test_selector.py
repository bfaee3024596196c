"""Target selector tests."""

from conftest import make_target

from vision_aim.common import Vec2
from vision_aim.selector import select

ORIGIN = Vec2(100, 100)


def test_nearest_by_distance_policy() -> None:
    a = make_target(1, Vec2(105, 100), distance=50)
    b = make_target(2, Vec2(140, 100), distance=10)

    assert select([a, b], ORIGIN, 150, policy="distance") is b


def test_crosshair_policy_prefers_smallest_offset() -> None:
    a = make_target(1, Vec2(105, 100), distance=50)
    b = make_target(2, Vec2(140, 100), distance=10)

    assert select([a, b], ORIGIN, 150, policy="crosshair") is a


def test_never_outside_fov() -> None:
    inside = make_target(1, Vec2(100, 149), distance=500)
    outside = make_target(2, Vec2(100, 151), distance=1)

    assert select([outside, inside], ORIGIN, 50, policy="distance") is inside
    assert select([outside], ORIGIN, 50) is None


def test_skips_invisible_and_unmapped() -> None:
    hidden = make_target(1, Vec2(100, 100), visible=False)
    unmapped = make_target(2, None)

    assert select([hidden, unmapped], ORIGIN, 150) is None


def test_tie_keeps_first() -> None:
    a = make_target(1, Vec2(110, 100))
    b = make_target(2, Vec2(90, 100))

    assert select([a, b], ORIGIN, 150) is a
    assert select([b, a], ORIGIN, 150) is b


def test_to_display_overrides_ingest_position() -> None:
    t = make_target(1, Vec2(100, 100))

    assert select([t], ORIGIN, 10, to_display=lambda p: Vec2(500, 500)) is None
