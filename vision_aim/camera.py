# camera.py
"""VideoCapture wrapper that keeps the latest frame and exposes pause/availability."""
from __future__ import annotations

import threading
import time
from typing import Optional, Tuple

import cv2
import numpy as np

from vision_aim.common import Size
from vision_aim.config import CameraConfig


class Camera:
    """
    Frame source.  A grab thread keeps only the newest frame, so every
    reader (detection, color assist) sees the current picture instead of a
    queued one.  Timestamps are ``time.monotonic()`` seconds.
    """

    def __init__(self, config: CameraConfig) -> None:
        self.config = config
        self.cap: Optional[cv2.VideoCapture] = None

        # Exposed runtime-queryable values
        self.actual_width: int = 0
        self.actual_height: int = 0
        self.actual_fps: float = 0.0
        self.actual_fourcc_str: str = ""

        self.paused = False
        self.reopens = 0
        self._frame: Optional[np.ndarray] = None
        self._frame_ts = 0.0
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------ #
    #   I N T E R N A L   H E L P E R S
    # ------------------------------------------------------------------ #
    @staticmethod
    def _get_fourcc_str(fourcc_val: int) -> str:
        if fourcc_val == 0:
            return ""
        return "".join(chr((fourcc_val >> (8 * i)) & 0xFF) for i in range(4))

    def _is_file(self) -> bool:
        return bool(self.config.source) and "://" not in str(self.config.source)

    def _open_capture(self) -> bool:
        if self.config.source:
            self.cap = cv2.VideoCapture(self.config.source)
        else:
            backend = cv2.CAP_V4L2 if self.config.use_v4l2 else 0
            self.cap = cv2.VideoCapture(self.config.device_index, backend)
        if not self.cap or not self.cap.isOpened():
            print(f"[Camera] Could not open {self.config.source or self.config.device_index}")
            self.cap = None
            return False

        if not self.config.source:
            if self.config.fourcc_str:
                self.cap.set(cv2.CAP_PROP_FOURCC, cv2.VideoWriter_fourcc(*self.config.fourcc_str))
            self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.config.width)
            self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.config.height)
            if self.config.fps_request > 0:
                self.cap.set(cv2.CAP_PROP_FPS, self.config.fps_request)

        self.actual_fourcc_str = self._get_fourcc_str(int(self.cap.get(cv2.CAP_PROP_FOURCC)))
        self.actual_width = int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.actual_height = int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self.actual_fps = self.cap.get(cv2.CAP_PROP_FPS)
        print(
            f"[Camera] {self.actual_width}x{self.actual_height}@{self.actual_fps:.1f} FPS "
            f"(FOURCC='{self.actual_fourcc_str}')"
        )
        if self.actual_width == 0 or self.actual_height == 0:
            print("[Camera] Error: capture returned zero resolution")
            self.cap.release()
            self.cap = None
            return False
        return True

    def _grab_loop(self) -> None:
        period = 1.0 / self.actual_fps if self._is_file() and self.actual_fps > 0 else 0.0
        while not self._stop.is_set():
            cap = self.cap
            if cap is None:
                if self.reopens >= self.config.max_reopens or not self._open_capture():
                    self.reopens += 1
                    self._stop.wait(0.5)
                    continue
                self.reopens = 0
                cap = self.cap

            ok, frame = cap.read()
            if not ok or frame is None:
                if self._is_file() and self.config.loop_file:
                    cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
                    self._stop.wait(0.01)
                    continue
                print("[Camera] Read failed, reopening")
                cap.release()
                self.cap = None
                continue

            with self._lock:
                self._frame = frame
                self._frame_ts = time.monotonic()
            if period:
                self._stop.wait(period)

    # ------------------------------------------------------------------ #
    #   P U B L I C   A P I
    # ------------------------------------------------------------------ #
    def open(self) -> bool:
        if not self._open_capture():
            return False
        self._stop.clear()
        self._thread = threading.Thread(target=self._grab_loop, name="camera", daemon=True)
        self._thread.start()
        return True

    def read(self) -> Tuple[float, Optional[np.ndarray]]:
        """Newest frame and its capture time; (now, None) before the first frame."""
        with self._lock:
            if self._frame is None:
                return time.monotonic(), None
            return self._frame_ts, self._frame.copy()

    def native_size(self) -> Size:
        return Size(self.actual_width, self.actual_height)

    def is_available(self) -> bool:
        with self._lock:
            has_frame = self._frame is not None
        return has_frame and not self.paused and self.is_opened()

    def is_opened(self) -> bool:
        return bool(self.cap and self.cap.isOpened())

    def pause(self, paused: bool = True) -> None:
        self.paused = paused

    def release(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None
        if self.cap:
            print("[Camera] Releasing capture device")
            self.cap.release()
            self.cap = None
