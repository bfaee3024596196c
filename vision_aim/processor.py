# processor.py
"""Glue logic that wires camera → detector → registry → driver → actuator."""
from __future__ import annotations

import sys
import threading
import time
import traceback
from typing import Callable, List, Optional

from vision_aim.actuator import Actuator, DryRunActuator
from vision_aim.camera import Camera
from vision_aim.color_assist import ColorAssist
from vision_aim.common import Rect, Size
from vision_aim.config import CameraConfig, ConfigStore, SystemConfig
from vision_aim.detector import MediaPipeObjectDetector
from vision_aim.driver import ControlLoopDriver
from vision_aim.events import DetectorUnavailable, ErrorEvent, EventLog
from vision_aim.live_tuning import RuntimeParamWatcher
from vision_aim.mapper import StaticGeometry
from vision_aim.registry import TargetRegistry
from vision_aim.scheduler import DetectionScheduler, DetectorWorker


class TargetingProcessor:
    """The main high-level orchestrator."""

    def __init__(
        self,
        camera_cfg: CameraConfig,
        system_cfg: SystemConfig,
        screen: Size,
        video_rect: Optional[Rect] = None,
        actuator: Optional[Actuator] = None,
        runtime_params: Optional[str] = "runtime_params.json",
        aim_active: bool = True,
        color_assist_on: bool = False,
        key_commands: bool = False,
    ):
        # Save configs
        self.camera_cfg = camera_cfg
        self.config = ConfigStore(system_cfg)
        self.aim_active = aim_active
        self.color_assist_on = color_assist_on
        self.key_commands = key_commands

        # Build sub-systems that need no hardware
        self.events = EventLog()
        self.events.add_listener(self._on_event)
        self.camera = Camera(camera_cfg)
        self.geometry = StaticGeometry(screen, video_rect or Rect(0, 0, screen.width, screen.height))
        self.actuator: Actuator = actuator or DryRunActuator()
        self.registry = TargetRegistry(system_cfg.detection.history_size)
        self.driver = ControlLoopDriver(
            self.config, self.registry, self.actuator, self.geometry,
            self.camera.native_size, self.events,
        )
        self.color_assist = ColorAssist(
            self.config, self.camera, self.geometry, self.driver.set_ads, self.events,
        )
        self.watcher = RuntimeParamWatcher(runtime_params) if runtime_params else None

        # Created in setup()
        self.worker: Optional[DetectorWorker] = None
        self.scheduler: Optional[DetectionScheduler] = None

        self._stop = threading.Event()
        self._threads: List[threading.Thread] = []

        # Runtime metrics
        self.tick_count = 0
        self.tick_ms_sum = 0.0
        self.stats_timer_start = time.monotonic()
        self.disp_rate = 0.0
        self.disp_tick_ms_avg = 0.0
        self.fatal_error: Optional[ErrorEvent] = None

    # ---------------------------------------------------------------------
    #                         Setup / teardown
    # ---------------------------------------------------------------------
    def setup(self) -> bool:
        """Open camera, load the detector, apply runtime params."""
        if not self.camera.open():
            return False

        try:
            detector = MediaPipeObjectDetector(self.config.snapshot().detection)
        except DetectorUnavailable as exc:
            print(f"[Detector] Init error: {exc}")
            return False
        self.worker = DetectorWorker(detector)
        self.scheduler = DetectionScheduler(
            self.config, self.registry, self.camera, self.worker,
            self.geometry, self.events,
        )

        self._apply_runtime_params(initial=True)
        self.driver.set_aim_active(self.aim_active)
        self.color_assist.set_active(self.color_assist_on)
        print("[Processor] Setup complete – press Ctrl+C (or q) to quit.")
        return True

    def cleanup(self) -> None:
        print("[Processor] Cleaning up...")
        self._stop.set()
        for thread in self._threads:
            thread.join(timeout=2.0)
        self._threads.clear()

        # Detection first, then the buttons
        if self.scheduler is not None:
            self.scheduler.stop()
        self.color_assist.set_active(False)
        for _ in range(3):
            if self.driver.stop():
                break
            time.sleep(0.05)
        if self.worker is not None:
            self.worker.close()
        self.camera.release()
        print(f"[Processor] Exited. Total ticks: {self.driver.metrics.ticks}")

    def stop(self) -> None:
        self._stop.set()

    # ---------------------------------------------------------------------
    #                          Operator input
    # ---------------------------------------------------------------------
    def set_aim_active(self, active: bool) -> None:
        """Aim key: the loop only moves while this is on."""
        self.aim_active = bool(active)
        self.driver.set_aim_active(self.aim_active)

    def toggle_aim(self) -> bool:
        self.set_aim_active(not self.aim_active)
        print(f"[Processor] Aim {'on' if self.aim_active else 'off'}")
        return self.aim_active

    def toggle_color_assist(self) -> bool:
        self.color_assist_on = self.color_assist.toggle()
        return self.color_assist_on

    def handle_key(self, key: str) -> bool:
        """
        One operator command: ``a`` toggles aim, ``c`` toggles colour
        assist, ``q`` quits.  Returns False for ``q``.
        """
        key = key.strip().lower()
        if key == "q":
            self.stop()
            return False
        if key == "a":
            self.toggle_aim()
        elif key == "c":
            self.toggle_color_assist()
        elif key:
            print(f"[Processor] Unknown command {key!r} (a=aim, c=colour assist, q=quit)")
        return True

    def _read_keys(self) -> None:
        for line in sys.stdin:
            if not self.handle_key(line) or self._stop.is_set():
                break

    # ---------------------------------------------------------------------
    #                           Loop threads
    # ---------------------------------------------------------------------
    def _on_event(self, event: ErrorEvent) -> None:
        if event.fatal and self.fatal_error is None:
            self.fatal_error = event

    def _run_loop(self, name: str, tick: Callable[[], float]) -> None:
        while not self._stop.is_set():
            try:
                delay = tick()
            except Exception as exc:  # noqa: BLE001
                self.events.emit(type(exc).__name__, name, str(exc))
                traceback.print_exc()
                delay = 0.05
            self._stop.wait(max(delay, 0.001))

    def _start_loop(self, name: str, tick: Callable[[], float]) -> None:
        thread = threading.Thread(
            target=self._run_loop, args=(name, tick), name=name.lower(), daemon=True
        )
        self._threads.append(thread)
        thread.start()

    def _driver_tick(self) -> float:
        tic = time.monotonic()
        self.driver.tick(tic)
        elapsed = time.monotonic() - tic
        self.tick_count += 1
        self.tick_ms_sum += elapsed * 1000.0
        return self.config.snapshot().loop.tick_ms / 1000.0 - elapsed

    # ---------------------------------------------------------------------
    #                     Live tuning + statistics
    # ---------------------------------------------------------------------
    def _apply_runtime_params(self, *, initial: bool = False) -> None:
        if self.watcher is not None:
            self.watcher.apply_to(self.config, force=initial)

    def _update_stats(self, now: float) -> None:
        window = self.config.snapshot().loop.stats_interval_s
        if now - self.stats_timer_start < window:
            return
        elapsed = now - self.stats_timer_start
        self.disp_rate = self.tick_count / elapsed if elapsed > 0 else 0.0
        if self.tick_count > 0:
            self.disp_tick_ms_avg = self.tick_ms_sum / self.tick_count
        self.tick_count = 0
        self.tick_ms_sum = 0.0
        self.stats_timer_start = now

        sm = self.scheduler.metrics if self.scheduler else None
        det = "stopped" if self.fatal_error else f"{sm.detection_ms if sm else 0.0:.1f} ms"
        cands = len(self.registry.snapshot().targets)
        print(
            f"[Processor] loop {self.disp_rate:.1f} Hz, tick {self.disp_tick_ms_avg:.2f} ms, "
            f"det {det}, candidates {cands}, state {self.driver.state.value}"
        )

    # ---------------------------------------------------------------------
    #                             Public run()
    # ---------------------------------------------------------------------
    def run(self) -> None:
        if not self.setup():
            self.cleanup()
            return

        try:
            self._start_loop("Scheduler", self.scheduler.tick)
            self._start_loop("Driver", self._driver_tick)
            self._start_loop("ColorAssist", self.color_assist.tick)
            if self.key_commands:
                # Blocks on stdin, so not joined in cleanup
                threading.Thread(target=self._read_keys, name="keys", daemon=True).start()

            while not self._stop.is_set():
                self._apply_runtime_params()
                self._update_stats(time.monotonic())
                self._stop.wait(0.25)

        except KeyboardInterrupt:
            print("\n[Processor] Stopped by user.")
        except Exception as exc:
            print(f"[Processor] Main loop error: {exc}")
            traceback.print_exc()
        finally:
            self.cleanup()
