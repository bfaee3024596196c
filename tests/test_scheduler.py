"""Detection scheduler tests with a manually resolved detector."""

import numpy as np
import pytest
from conftest import FakeDetector, FakeSource, person

from vision_aim.common import Detection
from vision_aim.events import DetectorCycleFailed, DetectorUnavailable, InvalidFrameDimensions
from vision_aim.registry import TargetRegistry
from vision_aim.scheduler import (
    DetectionScheduler,
    DetectorWorker,
    SchedulerState,
    downscale,
    frame_size,
)


@pytest.fixture
def parts(store, events):
    store.update("detection.resolution_scale", 1.0)
    registry = TargetRegistry()
    source = FakeSource()
    detector = FakeDetector()
    sched = DetectionScheduler(store, registry, source, detector, events=events)
    return sched, registry, source, detector


def test_single_request_in_flight(parts) -> None:
    sched, registry, _, detector = parts

    sched.tick(now=0.0)
    sched.tick(now=0.05)
    sched.tick(now=0.10)

    assert detector.calls == 1
    assert sched.state is SchedulerState.IN_FLIGHT
    assert sched.metrics.skipped_in_flight == 2

    detector.futures[0].set_result([person(10, 10)])

    assert sched.state is SchedulerState.IDLE
    assert len(registry.snapshot().targets) == 1

    sched.tick(now=0.2)
    assert detector.calls == 2


def test_lost_cycle_times_out_and_late_response_is_ignored(parts, events) -> None:
    sched, registry, _, detector = parts

    sched.tick(now=0.0)
    sched.tick(now=1.0)          # 8 x 120 ms = 960 ms

    assert sched.state is SchedulerState.IDLE
    assert sched.metrics.cycles_timed_out == 1
    assert events.events("DetectorCycleFailed")

    detector.futures[0].set_result([person(10, 10)])

    assert sched.metrics.late_responses == 1
    assert registry.snapshot().targets == ()

    sched.tick(now=1.1)
    assert detector.calls == 2


def test_unavailable_detector_stops_detection(parts, events) -> None:
    sched, registry, _, detector = parts

    sched.tick(now=0.0)
    detector.futures[0].set_result([person(10, 10)])
    sched.tick(now=0.2)
    detector.futures[1].set_exception(DetectorUnavailable("model gone"))

    assert sched.state is SchedulerState.STOPPED
    assert registry.snapshot().targets == ()
    assert events.events("DetectorUnavailable")[0].fatal

    sched.tick(now=0.4)
    assert detector.calls == 2


def test_submit_raising_unavailable_is_fatal(parts) -> None:
    sched, _, _, detector = parts
    detector.raise_on_submit = DetectorUnavailable("no worker")

    sched.tick(now=0.0)

    assert sched.state is SchedulerState.STOPPED


def test_failed_cycle_clears_candidates_and_recovers(parts, events) -> None:
    sched, registry, _, detector = parts

    sched.tick(now=0.0)
    detector.futures[0].set_result([person(10, 10)])
    sched.tick(now=0.2)
    detector.futures[1].set_exception(DetectorCycleFailed("bad frame"))

    assert sched.state is SchedulerState.IDLE
    assert sched.metrics.cycles_failed == 1
    assert registry.snapshot().targets == ()
    assert events.events("DetectorCycleFailed")

    sched.tick(now=0.4)
    assert detector.calls == 3


def test_unavailable_source_backs_off(parts) -> None:
    sched, _, source, detector = parts
    source.available = False

    delay = sched.tick(now=0.0)

    assert delay == pytest.approx(0.24)
    assert detector.calls == 0


def test_stop_ignores_response_in_flight(parts) -> None:
    sched, registry, _, detector = parts

    sched.tick(now=0.0)
    sched.stop()
    detector.futures[0].set_result([person(10, 10)])

    assert sched.state is SchedulerState.STOPPED
    assert registry.snapshot().targets == ()

    sched.restart()
    sched.tick(now=0.5)
    assert detector.calls == 2


def test_maintenance_prunes_stale_histories(parts) -> None:
    sched, registry, _, detector = parts

    sched.tick(now=0.0)
    detector.futures[0].set_result([person(10, 10)])
    sched.tick(now=10.0)

    assert registry.tracked_count() == 0
    assert sched.metrics.pruned_histories == 1


def test_downscale_reports_coordinate_factor() -> None:
    frame = np.zeros((100, 200, 3), dtype=np.uint8)

    small, factor = downscale(frame, 0.5)

    assert small.shape[:2] == (50, 100)
    assert factor == pytest.approx(2.0)
    assert downscale(frame, 1.0)[1] == 1.0


def test_frame_size_rejects_empty_frames() -> None:
    assert frame_size(np.zeros((4, 6, 3), dtype=np.uint8)).width == 6
    with pytest.raises(InvalidFrameDimensions):
        frame_size(np.zeros((0, 6, 3), dtype=np.uint8))


class _SyncDetector:
    def __init__(self) -> None:
        self.closed = False

    def detect(self, image, max_detections):
        return [Detection("person", 0.9, (0, 0, 10, 10))][:max_detections]

    def close(self) -> None:
        self.closed = True


def test_detector_worker_runs_in_background() -> None:
    sync = _SyncDetector()
    worker = DetectorWorker(sync)

    fut = worker.submit(np.zeros((4, 4, 3), dtype=np.uint8), 5)
    assert len(fut.result(timeout=5)) == 1

    worker.close()
    assert sync.closed
    with pytest.raises(DetectorUnavailable):
        worker.submit(np.zeros((4, 4, 3), dtype=np.uint8), 5)
