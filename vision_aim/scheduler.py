# scheduler.py
"""
Rate-limited detection cycle.

At most one detector request is ever in flight.  A tick that finds a cycle
still running simply skips (backpressure by skipping); a cycle that stays
in flight longer than ``timeout_multiple * interval`` is declared lost and
its late response, if it ever arrives, is dropped.
"""
from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Protocol, Tuple

import cv2
import numpy as np

from vision_aim.common import Detection, Size, Vec2
from vision_aim.config import ConfigStore, SystemConfig
from vision_aim.events import (
    DetectorUnavailable,
    EventLog,
    GeometryUnavailable,
    InvalidFrameDimensions,
)
from vision_aim.mapper import DisplayMapping, Geometry, aim_origin_for
from vision_aim.registry import IngestFilter, OcclusionProbe, TargetRegistry


class FrameSource(Protocol):
    def is_available(self) -> bool: ...

    def native_size(self) -> Size: ...

    def read(self) -> Tuple[float, Optional[np.ndarray]]: ...


class SyncDetector(Protocol):
    def detect(self, image: np.ndarray, max_detections: int) -> List[Detection]: ...

    def close(self) -> None: ...


class Detector(Protocol):
    def submit(self, image: np.ndarray, max_detections: int) -> "Future[List[Detection]]": ...


class SchedulerState(str, Enum):
    IDLE = "idle"
    IN_FLIGHT = "cycle-in-flight"
    STOPPED = "stopped"


@dataclass
class SchedulerMetrics:
    cycles_started: int = 0
    cycles_completed: int = 0
    cycles_failed: int = 0
    cycles_timed_out: int = 0
    skipped_in_flight: int = 0
    skipped_unavailable: int = 0
    late_responses: int = 0
    detection_ms: float = 0.0
    last_candidates: int = 0
    pruned_histories: int = 0


def downscale(frame: np.ndarray, scale: float) -> Tuple[np.ndarray, float]:
    """
    Shrink ``frame`` by ``scale`` (clamped to [0.1, 1]).
    Returns the image and the factor that maps its pixels back to the frame.
    """
    h, w = frame.shape[:2]
    scale = float(np.clip(scale, 0.1, 1.0))
    in_w = max(1, int(round(w * scale)))
    in_h = max(1, int(round(h * scale)))
    if in_w == w and in_h == h:
        return frame, 1.0
    small = cv2.resize(frame, (in_w, in_h), interpolation=cv2.INTER_AREA)
    return small, w / in_w


def frame_size(frame: np.ndarray) -> Size:
    if frame.ndim < 2 or frame.shape[0] <= 0 or frame.shape[1] <= 0:
        raise InvalidFrameDimensions(f"invalid frame shape {frame.shape}")
    return Size(frame.shape[1], frame.shape[0])


class DetectionScheduler:
    def __init__(
        self,
        config: ConfigStore,
        registry: TargetRegistry,
        source: FrameSource,
        detector: Detector,
        geometry: Optional[Geometry] = None,
        events: Optional[EventLog] = None,
        *,
        occlusion_probe: Optional[OcclusionProbe] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.registry = registry
        self.source = source
        self.detector = detector
        self.geometry = geometry
        self.events = events or EventLog()
        self.occlusion_probe = occlusion_probe
        self.clock = clock

        self.state = SchedulerState.IDLE
        self.metrics = SchedulerMetrics()
        self._lock = threading.RLock()
        self._cycle = 0
        self._dispatched_at = 0.0
        self._last_maintenance: Optional[float] = None

    # ------------------------------------------------------------------ #
    #   L I F E C Y C L E
    # ------------------------------------------------------------------ #
    def stop(self) -> None:
        """Stop issuing requests; any response still on its way is ignored."""
        with self._lock:
            self.state = SchedulerState.STOPPED
            self._cycle += 1
            self.registry.clear(self.clock())
        print("[Scheduler] Detection stopped.")

    def restart(self) -> None:
        with self._lock:
            if self.state is SchedulerState.STOPPED:
                self.state = SchedulerState.IDLE
                print("[Scheduler] Detection restarted.")

    def _fatal(self, exc: BaseException) -> None:
        with self._lock:
            self.state = SchedulerState.STOPPED
            self._cycle += 1
            self.registry.clear(self.clock())
        self.events.emit("DetectorUnavailable", "Scheduler", str(exc), fatal=True)

    def _cycle_failed(self, message: str) -> None:
        with self._lock:
            self.state = SchedulerState.IDLE
            self.metrics.cycles_failed += 1
            self.registry.clear(self.clock())
        self.events.emit("DetectorCycleFailed", "Scheduler", message)

    # ------------------------------------------------------------------ #
    #   T I C K
    # ------------------------------------------------------------------ #
    def tick(self, now: Optional[float] = None) -> float:
        """Run one scheduler step. Returns seconds until the next tick."""
        now = self.clock() if now is None else now
        cfg = self.config.snapshot()
        interval = max(cfg.detection.interval_ms, 1.0) / 1000.0

        self._maintain(cfg, now)

        with self._lock:
            if self.state is SchedulerState.STOPPED or not cfg.detection.enabled:
                return interval
            if self.state is SchedulerState.IN_FLIGHT:
                timeout = interval * cfg.detection.timeout_multiple
                if now - self._dispatched_at > timeout:
                    self._cycle += 1
                    self.state = SchedulerState.IDLE
                    self.metrics.cycles_timed_out += 1
                    lost = True
                else:
                    self.metrics.skipped_in_flight += 1
                    return interval
            else:
                lost = False
        if lost:
            self.events.emit(
                "DetectorCycleFailed", "Scheduler",
                f"no detector response within {timeout * 1000:.0f} ms, cycle dropped",
            )
            return interval

        if not self.source.is_available():
            self.metrics.skipped_unavailable += 1
            return interval * 2

        ts, frame = self.source.read()
        if frame is None:
            self.metrics.skipped_unavailable += 1
            return interval * 2
        try:
            size = frame_size(frame)
        except InvalidFrameDimensions as exc:
            self.events.emit("InvalidFrameDimensions", "Scheduler", str(exc))
            return interval

        image, coord_scale = downscale(frame, cfg.detection.resolution_scale)
        flt = self._build_filter(cfg, size, coord_scale)

        with self._lock:
            if self.state is not SchedulerState.IDLE:
                return interval
            self.state = SchedulerState.IN_FLIGHT
            self._cycle += 1
            cycle = self._cycle
            self._dispatched_at = now
            self.metrics.cycles_started += 1

        try:
            future = self.detector.submit(image, cfg.detection.max_detections)
        except DetectorUnavailable as exc:
            self._fatal(exc)
            return interval
        except Exception as exc:  # noqa: BLE001
            self._cycle_failed(f"submit failed: {exc}")
            return interval

        dispatched = self.clock()
        future.add_done_callback(
            lambda fut: self._on_response(cycle, fut, ts, flt, dispatched)
        )
        return interval

    def _build_filter(self, cfg: SystemConfig, video_size: Size, coord_scale: float) -> IngestFilter:
        mapping = None
        origin = Vec2()
        if self.geometry is not None:
            try:
                mapping = DisplayMapping(video_size, self.geometry.video_rect())
                origin = aim_origin_for(cfg.aiming, self.geometry.screen_size())
            except GeometryUnavailable:
                mapping = None
        return IngestFilter.from_config(
            cfg,
            coord_scale=coord_scale,
            aim_origin=origin,
            mapping=mapping,
            occlusion_probe=self.occlusion_probe,
        )

    # ------------------------------------------------------------------ #
    #   R E S P O N S E
    # ------------------------------------------------------------------ #
    def _on_response(
        self,
        cycle: int,
        future: "Future[List[Detection]]",
        frame_ts: float,
        flt: IngestFilter,
        dispatched: float,
    ) -> None:
        with self._lock:
            if cycle != self._cycle or self.state is not SchedulerState.IN_FLIGHT:
                self.metrics.late_responses += 1
                return
            try:
                detections = future.result()
            except DetectorUnavailable as exc:
                self._fatal(exc)
                return
            except Exception as exc:  # noqa: BLE001
                self._cycle_failed(f"detector error: {exc}")
                return

            targets = self.registry.ingest(detections or [], frame_ts, flt)
            self.metrics.detection_ms = (self.clock() - dispatched) * 1000.0
            self.metrics.cycles_completed += 1
            self.metrics.last_candidates = len(targets)
            self.state = SchedulerState.IDLE

    # ------------------------------------------------------------------ #
    #   M A I N T E N A N C E
    # ------------------------------------------------------------------ #
    def _maintain(self, cfg: SystemConfig, now: float) -> None:
        if self._last_maintenance is None:
            self._last_maintenance = now
            return
        if now - self._last_maintenance < cfg.detection.maintenance_interval_s:
            return
        self._last_maintenance = now
        removed = self.registry.prune_expired(now, cfg.detection.history_expiry_s)
        self.metrics.pruned_histories += removed


class DetectorWorker:
    """
    Runs a synchronous detector on one background thread so the scheduler
    can fire a request and get a Future back.
    """

    def __init__(self, detector: SyncDetector):
        self.detector = detector
        self._pool: Optional[ThreadPoolExecutor] = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="detector"
        )
        self._lock = threading.Lock()

    def submit(self, image: np.ndarray, max_detections: int) -> "Future[List[Detection]]":
        with self._lock:
            if self._pool is None:
                raise DetectorUnavailable("detector worker is closed")
            return self._pool.submit(self.detector.detect, image, max_detections)

    def close(self) -> None:
        with self._lock:
            pool, self._pool = self._pool, None
        if pool is not None:
            pool.shutdown(wait=True, cancel_futures=True)
            print("[Detector] Worker stopped.")
        self.detector.close()
