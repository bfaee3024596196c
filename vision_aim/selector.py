# selector.py
"""Pick the single best candidate inside the field of view."""
from __future__ import annotations

import math
from typing import Callable, Iterable, Optional

from vision_aim.common import Target, Vec2

ToDisplay = Callable[[Vec2], Optional[Vec2]]


def select(
    candidates: Iterable[Target],
    aim_origin: Vec2,
    fov_radius: float,
    *,
    policy: str = "crosshair",
    to_display: Optional[ToDisplay] = None,
) -> Optional[Target]:
    """
    Return the best visible candidate whose on-screen centre lies within
    ``fov_radius`` of ``aim_origin``, or None.

    ``to_display`` re-maps target centres with this tick's geometry; without
    it the display centre captured at ingest time is used. Ties keep the
    first candidate, i.e. the registry ordering.
    """
    best: Optional[Target] = None
    best_score = math.inf
    for target in candidates:
        if not target.is_visible:
            continue
        screen = to_display(target.center) if to_display else target.display_center
        if screen is None:
            continue
        off_center = screen.dist(aim_origin)
        if off_center > fov_radius:
            continue
        score = target.estimated_distance if policy == "distance" else off_center
        if best is None or score < best_score:
            best, best_score = target, score
    return best
