# color_assist.py
"""Hold the secondary (ADS) button while a given colour is inside the FOV."""
from __future__ import annotations

import time
from typing import Callable, Optional, Sequence

import numpy as np

from vision_aim.config import ConfigStore
from vision_aim.events import EventLog
from vision_aim.mapper import DisplayMapping, Geometry, aim_origin_for
from vision_aim.scheduler import FrameSource, frame_size


def color_in_region(
    frame_bgr: np.ndarray,
    center_xy: Sequence[float],
    half_size: Sequence[float],
    target_rgb: Sequence[int],
    threshold: float,
) -> bool:
    """
    True if any pixel of the box ``center +- half_size`` (frame pixels,
    ``(half_w, half_h)``) lies within ``threshold`` RGB distance of
    ``target_rgb``.
    """
    if frame_bgr.ndim != 3:
        return False
    h, w = frame_bgr.shape[:2]
    cx, cy = center_xy
    hx, hy = half_size
    x0 = int(np.clip(cx - hx, 0, w))
    x1 = int(np.clip(cx + hx, 0, w))
    y0 = int(np.clip(cy - hy, 0, h))
    y1 = int(np.clip(cy + hy, 0, h))
    if x1 <= x0 or y1 <= y0:
        return False

    region = frame_bgr[y0:y1, x0:x1, :3].astype(np.float32)
    target_bgr = np.array(target_rgb[::-1], dtype=np.float32)
    dist_sq = np.sum((region - target_bgr) ** 2, axis=-1)
    return bool(np.any(dist_sq < threshold * threshold))


class ColorAssist:
    """
    Scans the current frame every ``scan_interval_ms`` while toggled on and
    calls ``set_ads(True/False)``.  While off, disabled or after an error it
    keeps asking for a release every tick; ``set_ads`` is idempotent, so a
    release that failed once is retried until it goes through.
    """

    def __init__(
        self,
        config: ConfigStore,
        source: FrameSource,
        geometry: Geometry,
        set_ads: Callable[[bool], bool],
        events: Optional[EventLog] = None,
    ):
        self.config = config
        self.source = source
        self.geometry = geometry
        self.set_ads = set_ads
        self.events = events or EventLog()
        self.active = False
        self.detected = False
        self._last_scan: Optional[float] = None

    def toggle(self) -> bool:
        self.set_active(not self.active)
        return self.active

    def set_active(self, active: bool) -> None:
        if self.active == active:
            return
        self.active = active
        print(f"[ColorAssist] {'activated' if active else 'deactivated'}")
        if not active:
            self.detected = False
            self.set_ads(False)

    def tick(self, now: Optional[float] = None) -> float:
        """One scan if due. Returns seconds until the next tick."""
        now = time.monotonic() if now is None else now
        cfg = self.config.snapshot()
        interval = max(cfg.color_assist.scan_interval_ms, 1.0) / 1000.0

        if not (cfg.color_assist.enabled and self.active):
            self.detected = False
            self.set_ads(False)
            return interval
        if self._last_scan is not None and now - self._last_scan < interval:
            return interval - (now - self._last_scan)
        self._last_scan = now

        try:
            self.detected = self._scan(cfg)
        except Exception as exc:  # noqa: BLE001
            self.events.emit(type(exc).__name__, "ColorAssist", str(exc))
            self.detected = False

        self.set_ads(self.detected)
        return interval

    def _scan(self, cfg) -> bool:
        _, frame = self.source.read()
        if frame is None:
            return False
        mapping = DisplayMapping(frame_size(frame), self.geometry.video_rect())
        origin = aim_origin_for(cfg.aiming, self.geometry.screen_size())
        center = mapping.to_video(origin)
        if center is None:
            return False
        return color_in_region(
            frame,
            center,
            mapping.scale_to_video(cfg.aiming.fov_radius),
            cfg.color_assist.target_rgb,
            cfg.color_assist.color_threshold,
        )
