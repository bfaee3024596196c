"""Coordinate mapper tests."""

import pytest

from vision_aim.common import Rect, Size, Vec2
from vision_aim.config import AimingConfig
from vision_aim.events import GeometryUnavailable
from vision_aim.mapper import DisplayMapping, StaticGeometry, aim_origin_for, to_display, to_video


@pytest.mark.parametrize(
    "size, rect, point",
    [
        (Size(1280, 720), Rect(0, 0, 1920, 1080), Vec2(640, 360)),
        (Size(640, 480), Rect(100, 50, 800, 450), Vec2(12.5, 477.0)),
        (Size(333, 111), Rect(-20, 7, 999, 222), Vec2(0, 0)),
    ],
)
def test_to_display_round_trip(size, rect, point) -> None:
    screen = to_display(point, size, rect)
    back = to_video(screen, size, rect)

    assert back.x == pytest.approx(point.x)
    assert back.y == pytest.approx(point.y)


def test_to_display_scales_and_offsets() -> None:
    out = to_display(Vec2(320, 240), Size(640, 480), Rect(100, 50, 1280, 960))

    assert out == Vec2(740, 530)


def test_degenerate_sizes_give_none() -> None:
    assert to_display(Vec2(1, 1), Size(0, 480), Rect(0, 0, 10, 10)) is None
    assert to_video(Vec2(1, 1), Size(640, 480), Rect(0, 0, 0, 10)) is None


def test_static_geometry_without_rect_raises() -> None:
    geo = StaticGeometry(Size(1920, 1080))

    with pytest.raises(GeometryUnavailable):
        geo.video_rect()

    geo.set_rect(Rect(0, 0, 1920, 1080))
    assert geo.video_rect().width == 1920


def test_aim_origin_defaults_to_screen_centre() -> None:
    assert aim_origin_for(AimingConfig(), Size(1920, 1080)) == Vec2(960, 540)
    assert aim_origin_for(AimingConfig(aim_origin=(10, 20)), Size(1920, 1080)) == Vec2(10, 20)


def test_scale_to_video_per_axis() -> None:
    uniform = DisplayMapping(Size(640, 360), Rect(0, 0, 1280, 720))
    stretched = DisplayMapping(Size(640, 360), Rect(0, 0, 1280, 360))

    assert uniform.scale_to_video(150) == (pytest.approx(75), pytest.approx(75))
    assert stretched.scale_to_video(150) == (pytest.approx(75), pytest.approx(150))
