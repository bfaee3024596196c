# detector.py
"""MediaPipe object-detection adapter."""
from __future__ import annotations

from typing import List

import cv2
import mediapipe as mp
import numpy as np
from mediapipe.tasks import python as mp_tasks
from mediapipe.tasks.python import vision as mp_vision

from vision_aim.common import Detection
from vision_aim.config import DetectionConfig
from vision_aim.events import DetectorCycleFailed, DetectorUnavailable


class MediaPipeObjectDetector:
    """
    COCO object detector (EfficientDet-Lite via MediaPipe Tasks).
    Input is a BGR frame; bboxes come back in that frame's pixels.
    """

    def __init__(self, config: DetectionConfig):
        self.config = config
        options = mp_vision.ObjectDetectorOptions(
            base_options=mp_tasks.BaseOptions(model_asset_path=config.model_path),
            running_mode=mp_vision.RunningMode.IMAGE,
            max_results=max(1, config.max_detections),
            score_threshold=float(config.confidence_threshold),
        )
        try:
            self.detector = mp_vision.ObjectDetector.create_from_options(options)
        except (RuntimeError, ValueError, FileNotFoundError) as exc:
            raise DetectorUnavailable(f"could not load {config.model_path!r}: {exc}") from exc

    def detect(self, image: np.ndarray, max_detections: int) -> List[Detection]:
        """Returns up to ``max_detections`` Detection objects, best first."""
        if image.ndim == 3 and image.shape[2] == 4:
            rgb = cv2.cvtColor(image, cv2.COLOR_BGRA2RGB)
        elif image.ndim == 2:
            rgb = cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
        else:
            rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=np.ascontiguousarray(rgb))
        try:
            result = self.detector.detect(mp_image)
        except RuntimeError as exc:
            raise DetectorCycleFailed(str(exc)) from exc

        ih, iw = rgb.shape[:2]
        out: List[Detection] = []
        for det in result.detections:
            if not det.categories:
                continue
            cat = det.categories[0]
            bb = det.bounding_box
            w, h = float(bb.width), float(bb.height)
            if w < self.config.min_bbox_size_px or h < self.config.min_bbox_size_px:
                continue
            # Clamp to valid region
            x = max(0.0, min(float(bb.origin_x), iw - w))
            y = max(0.0, min(float(bb.origin_y), ih - h))
            out.append(Detection(cat.category_name or "", float(cat.score or 0.0), (x, y, w, h)))

        out.sort(key=lambda d: d.score, reverse=True)
        return out[:max_detections]

    def close(self) -> None:
        self.detector.close()

