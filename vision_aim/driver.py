# driver.py
"""Fixed-rate control loop: select -> predict -> smooth -> actuator commands."""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import numpy as np

from vision_aim.actuator import Actuator
from vision_aim.common import CandidateSnapshot, Size, Target, Vec2
from vision_aim.config import AimingConfig, ConfigStore, SystemConfig
from vision_aim.events import ActuatorError, EventLog, GeometryUnavailable
from vision_aim.mapper import DisplayMapping, Geometry, aim_origin_for
from vision_aim.predictor import predict
from vision_aim.registry import TargetRegistry
from vision_aim.selector import select
from vision_aim.smoother import REFERENCE_FRAME_MS, AimSmoother

# Fraction of bbox height below the bbox centre for each hitbox
HITBOX_FRACTION = {"head": 0.1, "body": 0.5}
DEFAULT_HITBOX_FRACTION = 0.3


class LoopState(str, Enum):
    IDLE = "idle"
    TRACKING = "tracking"
    FIRING = "firing"


@dataclass
class AimState:
    """Everything the loop carries from one tick to the next."""
    aim_point: Vec2 = Vec2()
    last_update: Optional[float] = None
    target_id: Optional[int] = None     # identity only, never the Target object
    aim_active: bool = False
    shooting: bool = False
    ads_holding: bool = False
    state: LoopState = LoopState.IDLE


@dataclass
class LoopMetrics:
    ticks: int = 0
    last_tick_ms: float = 0.0
    moves_sent: int = 0
    actuator_failures: int = 0


def hitbox_point(target: Target, cfg: AimingConfig) -> Vec2:
    """Point on the target (video space) the aim should converge on."""
    h = target.bbox[3]
    frac = HITBOX_FRACTION.get(cfg.hitbox, DEFAULT_HITBOX_FRACTION) + cfg.vertical_offset
    return Vec2(target.center.x, target.center.y + h * frac)


class ControlLoopDriver:
    """
    Owns AimState and the idle/tracking/firing state machine.

    ``tick()`` never blocks on detection: it reads the registry's current
    snapshot once and works only from that.
    """

    def __init__(
        self,
        config: ConfigStore,
        registry: TargetRegistry,
        actuator: Actuator,
        geometry: Geometry,
        video_size: Callable[[], Size],
        events: Optional[EventLog] = None,
    ):
        self.config = config
        self.registry = registry
        self.actuator = actuator
        self.geometry = geometry
        self.video_size = video_size
        self.events = events or EventLog()

        self.aim = AimState()
        self.smoother = AimSmoother()
        self.metrics = LoopMetrics()
        self._origin: Optional[Vec2] = None
        self._failed = False
        # Color assist and the tick thread may both touch the ADS button
        self._lock = threading.RLock()

    # ------------------------------------------------------------------ #
    #   I N P U T
    # ------------------------------------------------------------------ #
    def set_aim_active(self, active: bool) -> None:
        self.aim.aim_active = bool(active)

    @property
    def state(self) -> LoopState:
        return self.aim.state

    # ------------------------------------------------------------------ #
    #   A C T U A T O R   P L U M B I N G
    # ------------------------------------------------------------------ #
    def _emit(self, fn: Callable[..., None], *args: object) -> bool:
        try:
            fn(*args)
            return True
        except (ActuatorError, OSError) as exc:
            self._failed = True
            self.metrics.actuator_failures += 1
            self.events.emit("ActuatorFailed", "Driver", str(exc))
            return False

    def _press_fire(self, cfg: SystemConfig) -> None:
        if not self.aim.shooting and self._emit(self.actuator.button_down, cfg.trigger.fire_button):
            self.aim.shooting = True

    def _release_fire(self, cfg: SystemConfig) -> None:
        # Flag only clears on success, so a failed release is retried next tick
        if self.aim.shooting and self._emit(self.actuator.button_up, cfg.trigger.fire_button):
            self.aim.shooting = False

    def set_ads(self, active: bool) -> bool:
        """Hold / release the secondary button. Idempotent."""
        cfg = self.config.snapshot()
        with self._lock:
            if active and not self.aim.ads_holding:
                if self._emit(self.actuator.button_down, cfg.trigger.ads_button):
                    self.aim.ads_holding = True
            elif not active and self.aim.ads_holding:
                if self._emit(self.actuator.button_up, cfg.trigger.ads_button):
                    self.aim.ads_holding = False
            return self.aim.ads_holding == active

    # ------------------------------------------------------------------ #
    #   A I M   P O I N T
    # ------------------------------------------------------------------ #
    def target_point(
        self,
        target: Target,
        snap: CandidateSnapshot,
        cfg: AimingConfig,
        mapping: DisplayMapping,
    ) -> Optional[Vec2]:
        """Hitbox point plus velocity lead, in screen pixels."""
        point = hitbox_point(target, cfg)
        if cfg.prediction_ms > 0:
            point = point.add(predict(snap.history_for(target.identity), cfg.prediction_ms))
        return mapping.to_display(point)

    # ------------------------------------------------------------------ #
    #   T I C K
    # ------------------------------------------------------------------ #
    def tick(self, now: Optional[float] = None) -> LoopState:
        started = time.monotonic()
        now = started if now is None else now
        cfg = self.config.snapshot()
        with self._lock:
            self._failed = False
            try:
                self._tick(cfg, now)
            finally:
                self.aim.last_update = now
                self.metrics.ticks += 1
                self.metrics.last_tick_ms = (time.monotonic() - started) * 1000.0
            if self._failed:
                self.aim.state = LoopState.IDLE
            return self.aim.state

    def _tick(self, cfg: SystemConfig, now: float) -> None:
        aim = self.aim
        if not (cfg.loop.enabled and cfg.aiming.enabled):
            aim.target_id = None
            self._release_fire(cfg)
            aim.state = LoopState.IDLE
            return

        try:
            rect = self.geometry.video_rect()
            screen = self.geometry.screen_size()
        except GeometryUnavailable as exc:
            # Hold the last aim point, skip selection and smoothing
            self.events.emit("GeometryUnavailable", "Driver", str(exc))
            return

        origin = aim_origin_for(cfg.aiming, screen)
        if self._origin is None or aim.last_update is None:
            self.smoother.reset(origin)
        self._origin = origin
        mapping = DisplayMapping(self.video_size(), rect)
        snap = self.registry.snapshot()

        target = select(
            snap.targets,
            origin,
            cfg.aiming.fov_radius,
            policy=cfg.aiming.target_selection,
            to_display=mapping.to_display,
        )
        aim.target_id = target.identity if target else None
        target_pt = self.target_point(target, snap, cfg.aiming, mapping) if target else None

        if target_pt is None or not aim.aim_active:
            self._release_fire(cfg)
            aim.aim_point = self.smoother.reset(origin)
            aim.state = LoopState.IDLE
            return

        dt_ms = (now - aim.last_update) * 1000.0 if aim.last_update is not None else REFERENCE_FRAME_MS
        smoothed = self.smoother.update(target_pt, cfg.aiming, dt_ms)
        aim.aim_point = smoothed

        dx, dy = smoothed.sub(origin)
        dead = cfg.aiming.move_deadzone_px
        if abs(dx) > dead or abs(dy) > dead:
            dx = float(np.clip(dx, -origin.x, origin.x))
            dy = float(np.clip(dy, -origin.y, origin.y))
            if self._emit(self.actuator.move_relative, dx, dy):
                self.metrics.moves_sent += 1

        on_target = smoothed.dist(target_pt) <= cfg.trigger.on_target_radius_px
        if cfg.trigger.auto_fire and on_target:
            self._press_fire(cfg)
        else:
            self._release_fire(cfg)
        if cfg.trigger.trigger_bot and on_target:
            self._emit(self.actuator.click, cfg.trigger.fire_button)

        aim.state = LoopState.FIRING if aim.shooting else LoopState.TRACKING

    # ------------------------------------------------------------------ #
    #   S H U T D O W N
    # ------------------------------------------------------------------ #
    def stop(self) -> bool:
        """
        Release everything held and reset AimState.  A button whose release
        failed stays flagged as held so the next ``stop()`` / ``set_ads(False)``
        retries it.  Returns True when nothing is left held.
        """
        cfg = self.config.snapshot()
        with self._lock:
            if self.aim.state is LoopState.FIRING:
                self.aim.state = LoopState.TRACKING
            self._release_fire(cfg)
            self.set_ads(False)
            origin = self._origin or Vec2()
            self.aim = AimState(
                aim_point=origin,
                shooting=self.aim.shooting,
                ads_holding=self.aim.ads_holding,
            )
            self.smoother.reset(origin)
            self._origin = None
            released = not (self.aim.shooting or self.aim.ads_holding)
        if released:
            print("[Driver] Stopped, all buttons released.")
        else:
            print("[Driver] Stopped, button release failed, will retry.")
        return released
