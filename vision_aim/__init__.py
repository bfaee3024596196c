# vision_aim/__init__.py
"""Vision-aim package – re-export the hardware-free core API."""
from .common import (                            # noqa: F401
    CandidateSnapshot, Detection, HistorySample, Rect, Size, Target, Vec2,
)
from .config import (                            # noqa: F401
    AimingConfig, CameraConfig, ColorAssistConfig, ConfigStore,
    DetectionConfig, LoopConfig, SystemConfig, TriggerConfig,
)
from .driver import ControlLoopDriver, LoopState  # noqa: F401
from .events import EventLog, VisionAimError      # noqa: F401
from .registry import TargetRegistry              # noqa: F401
from .scheduler import DetectionScheduler, DetectorWorker  # noqa: F401
