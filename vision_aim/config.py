# config.py
"""Typed configuration blobs for the whole system."""
from __future__ import annotations

import copy
import threading
from dataclasses import dataclass, field, fields, is_dataclass
from typing import Any, List, Optional, Tuple


# ---------------------- Camera ----------------------
@dataclass
class CameraConfig:
    device_index: int = 0
    # File path or stream URL; overrides device_index when set
    source: Optional[str] = None
    width: int = 1280
    height: int = 720
    fps_request: int = 60
    use_v4l2: bool = True
    fourcc_str: str = "MJPG"
    max_reopens: int = 5
    loop_file: bool = True


# --------------------- Detection --------------------
@dataclass
class DetectionConfig:
    enabled: bool = True
    interval_ms: float = 120.0
    confidence_threshold: float = 0.55
    target_class: str = "person"
    max_detections: int = 10
    max_distance: float = 800.0
    visibility_check: bool = True
    resolution_scale: float = 0.75
    # MediaPipe Tasks object-detector model (COCO labels)
    model_path: str = "efficientdet_lite0.tflite"
    min_bbox_size_px: int = 8
    # A cycle in flight for longer than timeout_multiple * interval is lost
    timeout_multiple: float = 8.0
    # Identity gating: max px a target may move between cycles and keep its id
    match_radius_px: float = 80.0
    history_size: int = 15
    history_expiry_s: float = 3.0
    maintenance_interval_s: float = 5.0


# ---------------------- Aiming ----------------------
@dataclass
class AimingConfig:
    enabled: bool = True
    fov_radius: float = 150.0
    smoothing: float = 0.18
    snap_smoothing: float = 0.06
    instant_snap: bool = False
    prediction_ms: float = 40.0
    target_selection: str = "crosshair"   # "crosshair" | "distance"
    hitbox: str = "head"                  # "head" | "body" | anything else = chest
    vertical_offset: float = 0.1
    move_deadzone_px: float = 0.5
    # Screen-space aim origin; None = centre of the screen
    aim_origin: Optional[Tuple[float, float]] = None


# ---------------------- Trigger ---------------------
@dataclass
class TriggerConfig:
    auto_fire: bool = False
    trigger_bot: bool = False
    on_target_radius_px: float = 8.0      # crosshair size / 2 + 3
    fire_button: str = "left"
    ads_button: str = "right"


# ------------------- Color assist -------------------
@dataclass
class ColorAssistConfig:
    enabled: bool = False
    target_rgb: List[int] = field(default_factory=lambda: [255, 0, 0])
    color_threshold: float = 30.0
    scan_interval_ms: float = 50.0


# ----------------------- Loop -----------------------
@dataclass
class LoopConfig:
    enabled: bool = True
    tick_ms: float = 16.0
    stats_interval_s: float = 1.0


@dataclass
class SystemConfig:
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    aiming: AimingConfig = field(default_factory=AimingConfig)
    trigger: TriggerConfig = field(default_factory=TriggerConfig)
    color_assist: ColorAssistConfig = field(default_factory=ColorAssistConfig)
    loop: LoopConfig = field(default_factory=LoopConfig)


# ------------------- Config store -------------------
class ConfigStore:
    """
    Holds the current SystemConfig.

    Readers call ``snapshot()`` once at the start of a tick/cycle and keep
    using that object; writers never touch a published snapshot, they build
    a modified copy and swap the reference.
    """

    def __init__(self, config: Optional[SystemConfig] = None):
        self._cfg = config if config is not None else SystemConfig()
        self._lock = threading.Lock()

    def snapshot(self) -> SystemConfig:
        return self._cfg

    def replace(self, config: SystemConfig) -> None:
        with self._lock:
            self._cfg = config

    def update(self, key: str, value: Any) -> bool:
        """
        Set a dotted key such as ``"aiming.fov_radius"``.
        Returns False (and leaves the config untouched) for unknown keys or
        values whose type does not match the default.
        """
        with self._lock:
            new_cfg = copy.deepcopy(self._cfg)
            if not _set_dotted(new_cfg, key, value):
                return False
            self._cfg = new_cfg
            return True


def _set_dotted(root: Any, key: str, value: Any) -> bool:
    parts = key.split(".")
    obj = root
    for part in parts[:-1]:
        if not is_dataclass(obj) or part not in {f.name for f in fields(obj)}:
            print(f"[Config] Invalid config key path: {key}")
            return False
        obj = getattr(obj, part)

    leaf = parts[-1]
    if not is_dataclass(obj) or leaf not in {f.name for f in fields(obj)}:
        print(f"[Config] Could not find key in config: {key}")
        return False

    current = getattr(obj, leaf)
    coerced = _coerce(current, value)
    if coerced is _MISMATCH:
        print(f"[Config] Type mismatch for key {key!r}, keeping {current!r}")
        return False
    setattr(obj, leaf, coerced)
    return True


_MISMATCH = object()


def _coerce(current: Any, value: Any) -> Any:
    # Optional point fields (aim_origin) accept a pair or None
    if current is None or isinstance(current, tuple):
        if value is None:
            return None
        if isinstance(value, (list, tuple)) and len(value) == 2:
            return (float(value[0]), float(value[1]))
        return _MISMATCH
    if value is None:
        return _MISMATCH
    if isinstance(current, bool):
        return value if isinstance(value, bool) else _MISMATCH
    if isinstance(current, float):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return _MISMATCH
        return float(value)
    if isinstance(current, int):
        if isinstance(value, bool) or not isinstance(value, int):
            return _MISMATCH
        return value
    if isinstance(current, str):
        return value if isinstance(value, str) else _MISMATCH
    if isinstance(current, (list, tuple)):
        if not isinstance(value, (list, tuple)):
            return _MISMATCH
        return type(current)(value)
    return _MISMATCH

