"""Shared fakes: frame source, detector, geometry helpers."""

from concurrent.futures import Future
from typing import List, Optional, Tuple

import numpy as np
import pytest

from vision_aim.common import Detection, Rect, Size, Target, Vec2
from vision_aim.config import ConfigStore, SystemConfig
from vision_aim.events import EventLog
from vision_aim.mapper import DisplayMapping, StaticGeometry
from vision_aim.registry import IngestFilter


class FakeSource:
    def __init__(self, width: int = 200, height: int = 100) -> None:
        self.frame: Optional[np.ndarray] = np.zeros((height, width, 3), dtype=np.uint8)
        self.available = True
        self.ts = 0.0

    def is_available(self) -> bool:
        return self.available

    def native_size(self) -> Size:
        if self.frame is None:
            return Size(0, 0)
        return Size(self.frame.shape[1], self.frame.shape[0])

    def read(self) -> Tuple[float, Optional[np.ndarray]]:
        frame = None if self.frame is None else self.frame.copy()
        return self.ts, frame


class FakeDetector:
    """Hands out unresolved futures; the test resolves them."""

    def __init__(self) -> None:
        self.futures: List[Future] = []
        self.raise_on_submit: Optional[Exception] = None

    @property
    def calls(self) -> int:
        return len(self.futures)

    def submit(self, image: np.ndarray, max_detections: int) -> Future:
        if self.raise_on_submit is not None:
            raise self.raise_on_submit
        fut: Future = Future()
        self.futures.append(fut)
        return fut


def person(x: float, y: float, w: float = 20.0, h: float = 40.0, score: float = 0.9) -> Detection:
    return Detection("person", score, (x, y, w, h))


def make_target(
    identity: int,
    display: Optional[Vec2],
    distance: float = 100.0,
    visible: bool = True,
) -> Target:
    center = display or Vec2()
    return Target(
        identity=identity,
        label="person",
        score=0.9,
        bbox=(center.x - 10, center.y - 20, 20, 40),
        center=center,
        estimated_distance=distance,
        is_visible=visible,
        timestamp=0.0,
        display_center=display,
    )


def identity_filter(size: Size = Size(200, 200), **kwargs) -> IngestFilter:
    """Filter whose display mapping is the identity transform."""
    params = dict(
        target_class="person",
        confidence_threshold=0.5,
        max_distance=800.0,
        aim_origin=Vec2(size.width / 2, size.height / 2),
        mapping=DisplayMapping(size, Rect(0, 0, size.width, size.height)),
    )
    params.update(kwargs)
    return IngestFilter(**params)


@pytest.fixture
def store() -> ConfigStore:
    return ConfigStore(SystemConfig())


@pytest.fixture
def events() -> EventLog:
    return EventLog(echo=False)


@pytest.fixture
def geometry() -> StaticGeometry:
    return StaticGeometry(Size(200, 200), Rect(0, 0, 200, 200))
