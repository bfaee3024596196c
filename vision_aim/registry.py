# registry.py
"""Per-cycle candidate list plus identity-keyed position history."""
from __future__ import annotations

import itertools
import math
import threading
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from vision_aim.common import (
    EMPTY_SNAPSHOT,
    CandidateSnapshot,
    Detection,
    HistorySample,
    Target,
    Vec2,
)
from vision_aim.config import SystemConfig
from vision_aim.mapper import DisplayMapping

# Inverse-proportional distance model: a 100 px tall bbox is 100 units away
REF_HEIGHT_PX = 100.0
REF_DISTANCE = 100.0
DISTANCE_CONSTANT = REF_HEIGHT_PX * REF_DISTANCE

OcclusionProbe = Callable[[Vec2], bool]


# ------------------- Identity matching -------------------
@dataclass(frozen=True)
class Matched:
    identity: int


@dataclass(frozen=True)
class NewIdentity:
    pass


MatchResult = Union[Matched, NewIdentity]


@dataclass(frozen=True)
class IngestFilter:
    """Everything one detection cycle needs to turn detections into targets."""
    target_class: str
    confidence_threshold: float
    max_distance: float
    selection: str = "crosshair"
    coord_scale: float = 1.0
    aim_origin: Vec2 = Vec2()
    mapping: Optional[DisplayMapping] = None
    occlusion_probe: Optional[OcclusionProbe] = None
    match_radius: float = 80.0

    @classmethod
    def from_config(
        cls,
        cfg: SystemConfig,
        *,
        coord_scale: float = 1.0,
        aim_origin: Vec2 = Vec2(),
        mapping: Optional[DisplayMapping] = None,
        occlusion_probe: Optional[OcclusionProbe] = None,
    ) -> "IngestFilter":
        det = cfg.detection
        return cls(
            target_class=det.target_class,
            confidence_threshold=det.confidence_threshold,
            max_distance=det.max_distance,
            selection=cfg.aiming.target_selection,
            coord_scale=coord_scale,
            aim_origin=aim_origin,
            mapping=mapping,
            occlusion_probe=occlusion_probe if det.visibility_check else None,
            match_radius=det.match_radius_px,
        )


def estimate_distance(bbox_height: float) -> float:
    return DISTANCE_CONSTANT / bbox_height if bbox_height > 1 else math.inf


class TargetRegistry:
    """
    Owns the latest published CandidateSnapshot and the per-identity history.

    Single writer (the detection side) publishes a new snapshot by swapping
    one reference; readers grab ``snapshot()`` once per tick and never see a
    half-built list. History is only mutated under ``_lock``.
    """

    def __init__(self, history_size: int = 15):
        self.history_size = history_size
        self._histories: Dict[int, Deque[HistorySample]] = {}
        self._lock = threading.Lock()
        self._snapshot: CandidateSnapshot = EMPTY_SNAPSHOT
        self._version = 0
        self._ids = itertools.count(1)

    # ---------------- Snapshot access ----------------
    def snapshot(self) -> CandidateSnapshot:
        return self._snapshot

    def _publish(self, timestamp: float, targets: Sequence[Target]) -> CandidateSnapshot:
        histories = {t.identity: tuple(self._histories.get(t.identity, ())) for t in targets}
        self._version += 1
        snap = CandidateSnapshot(self._version, timestamp, tuple(targets), histories)
        self._snapshot = snap
        return snap

    def clear(self, timestamp: float = 0.0) -> CandidateSnapshot:
        """Publish an empty candidate list. History is kept."""
        with self._lock:
            return self._publish(timestamp, ())

    # -------------------- Ingest ---------------------
    def ingest(
        self,
        detections: Iterable[Optional[Detection]],
        timestamp: float,
        flt: IngestFilter,
    ) -> List[Target]:
        kept = [
            d for d in detections
            if d is not None
            and d.label == flt.target_class
            and d.score >= flt.confidence_threshold
        ]

        prepared = []
        for det in kept:
            s = flt.coord_scale
            bbox = (det.bbox[0] * s, det.bbox[1] * s, det.bbox[2] * s, det.bbox[3] * s)
            center = Vec2(bbox[0] + bbox[2] / 2.0, bbox[1] + bbox[3] / 2.0)
            display = flt.mapping.to_display(center) if flt.mapping else None
            prepared.append((det, bbox, center, display, self._probe(flt, display)))

        with self._lock:
            matches = self._assign_identities([p[2] for p in prepared], flt.match_radius)
            targets: List[Target] = []
            for (det, bbox, center, display, visible), match in zip(prepared, matches):
                identity = match.identity if isinstance(match, Matched) else next(self._ids)
                self._append(identity, timestamp, center)
                targets.append(
                    Target(
                        identity=identity,
                        label=det.label,
                        score=det.score,
                        bbox=bbox,
                        center=center,
                        estimated_distance=estimate_distance(bbox[3]),
                        is_visible=visible,
                        timestamp=timestamp,
                        display_center=display,
                    )
                )

            pool = [t for t in targets if t.is_visible and t.estimated_distance <= flt.max_distance]
            pool.sort(key=self._sort_key(flt))
            self._publish(timestamp, pool)
        return pool

    @staticmethod
    def _probe(flt: IngestFilter, display: Optional[Vec2]) -> bool:
        if flt.occlusion_probe is None or display is None:
            return True
        try:
            return bool(flt.occlusion_probe(display))
        except Exception:  # noqa: BLE001
            return False

    @staticmethod
    def _sort_key(flt: IngestFilter) -> Callable[[Target], float]:
        if flt.selection == "distance":
            return lambda t: t.estimated_distance
        origin = flt.aim_origin
        return lambda t: t.display_center.dist(origin) if t.display_center is not None else math.inf

    def _assign_identities(self, centers: Sequence[Vec2], radius: float) -> List[MatchResult]:
        """
        Greedy nearest-neighbour gating: closest (detection, identity) pairs
        within ``radius`` are matched first; each side is used at most once.
        """
        results: List[MatchResult] = [NewIdentity() for _ in centers]
        if radius <= 0 or not centers or not self._histories:
            return results

        pairs: List[Tuple[float, int, int]] = []
        for idx, c in enumerate(centers):
            for identity, hist in self._histories.items():
                if not hist:
                    continue
                d = c.dist(hist[-1].pos)
                if d <= radius:
                    pairs.append((d, idx, identity))
        pairs.sort()

        used_det: set = set()
        used_id: set = set()
        for _, idx, identity in pairs:
            if idx in used_det or identity in used_id:
                continue
            results[idx] = Matched(identity)
            used_det.add(idx)
            used_id.add(identity)
        return results

    def match(self, center: Vec2, radius: float) -> MatchResult:
        """Identity a lone detection at ``center`` would receive right now."""
        with self._lock:
            return self._assign_identities([center], radius)[0]

    # -------------------- History --------------------
    def _append(self, identity: int, t: float, pos: Vec2) -> bool:
        hist = self._histories.get(identity)
        if hist is None:
            hist = deque(maxlen=self.history_size)
            self._histories[identity] = hist
        elif hist and t < hist[-1].t:
            return False
        hist.append(HistorySample(t, pos))
        return True

    def record_history(self, identity: int, t: float, pos: Vec2) -> bool:
        """Append a sample; False if it is older than the newest one."""
        with self._lock:
            return self._append(identity, t, pos)

    def history(self, identity: int) -> Tuple[HistorySample, ...]:
        with self._lock:
            return tuple(self._histories.get(identity, ()))

    def prune_expired(self, now: float, expiry_window: float) -> int:
        with self._lock:
            stale = [
                identity for identity, hist in self._histories.items()
                if not hist or now - hist[-1].t > expiry_window
            ]
            for identity in stale:
                del self._histories[identity]
        return len(stale)

    def tracked_count(self) -> int:
        with self._lock:
            return len(self._histories)
