# mapper.py
"""Video-space <-> display-space coordinate transforms."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from vision_aim.common import Rect, Size, Vec2
from vision_aim.config import AimingConfig
from vision_aim.events import GeometryUnavailable


class Geometry(Protocol):
    def video_rect(self) -> Rect: ...

    def screen_size(self) -> Size: ...


def to_display(point: Vec2, video_size: Size, rect: Rect) -> Optional[Vec2]:
    """
    Affine map from video pixels to screen pixels.
    Aspect mismatch is not corrected, callers accept the stretch.
    Returns None for a degenerate video size.
    """
    if video_size.width <= 0 or video_size.height <= 0:
        return None
    sx = rect.width / video_size.width
    sy = rect.height / video_size.height
    return Vec2(rect.left + point.x * sx, rect.top + point.y * sy)


def to_video(point: Vec2, video_size: Size, rect: Rect) -> Optional[Vec2]:
    """Inverse of ``to_display``; None if either size is degenerate."""
    if video_size.width <= 0 or video_size.height <= 0:
        return None
    if rect.width <= 0 or rect.height <= 0:
        return None
    sx = video_size.width / rect.width
    sy = video_size.height / rect.height
    return Vec2((point.x - rect.left) * sx, (point.y - rect.top) * sy)


def aim_origin_for(cfg: AimingConfig, screen: Size) -> Vec2:
    """Configured aim origin, or the centre of the screen."""
    if cfg.aim_origin is not None:
        return Vec2(*cfg.aim_origin)
    return Vec2(screen.width / 2.0, screen.height / 2.0)


class StaticGeometry:
    """
    Geometry collaborator with a fixed (but replaceable) video rectangle.
    ``video_rect()`` raises GeometryUnavailable until a rect is set.
    """

    def __init__(self, screen: Size, rect: Optional[Rect] = None):
        self._screen = screen
        self._rect = rect

    def set_rect(self, rect: Optional[Rect]) -> None:
        self._rect = rect

    def video_rect(self) -> Rect:
        rect = self._rect
        if rect is None or rect.width <= 0 or rect.height <= 0:
            raise GeometryUnavailable("video surface has no on-screen rectangle")
        return rect

    def screen_size(self) -> Size:
        return self._screen


@dataclass(frozen=True)
class DisplayMapping:
    """A (video size, on-screen rect) pair captured once per tick or cycle."""
    video_size: Size
    rect: Rect

    def to_display(self, point: Vec2) -> Optional[Vec2]:
        return to_display(point, self.video_size, self.rect)

    def to_video(self, point: Vec2) -> Optional[Vec2]:
        return to_video(point, self.video_size, self.rect)

    def scale_to_video(self, length_px: float) -> Vec2:
        """Screen-space length in video pixels, per axis (x, y)."""
        if self.rect.width <= 0 or self.rect.height <= 0:
            return Vec2()
        return Vec2(
            length_px * self.video_size.width / self.rect.width,
            length_px * self.video_size.height / self.rect.height,
        )
