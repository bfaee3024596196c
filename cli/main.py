# main.py
"""
Entry-point for the vision-aim loop.

Live-tuning
-----------
While the program is running you can edit ``runtime_params.json`` and the new
values (FOV radius, smoothing, lead time, trigger options, etc.) take effect
on the next tick.  Keys may be dotted (``"aiming.fov_radius"``), nested
objects or plain field names when unambiguous.  See
``vision_aim/live_tuning.py`` for details.

Only the dry-run actuator ships: every pointer/button command is recorded and,
with ``--verbose``, printed.
"""
from __future__ import annotations

import argparse

from vision_aim.actuator import DryRunActuator
from vision_aim.common import Rect, Size
from vision_aim.config import (
    AimingConfig,
    CameraConfig,
    ColorAssistConfig,
    DetectionConfig,
    LoopConfig,
    SystemConfig,
    TriggerConfig,
)
from vision_aim.processor import TargetingProcessor


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Detection-driven aim loop (dry run).")
    parser.add_argument("--source", type=str, default=None, help="Video file or stream URL instead of a camera")
    parser.add_argument("--camera", type=int, default=0, help="Camera device index")
    parser.add_argument("--model", type=str, default="efficientdet_lite0.tflite", help="MediaPipe object-detector model")
    parser.add_argument("--screen", type=int, nargs=2, default=(1920, 1080), metavar=("W", "H"), help="Screen size in px")
    parser.add_argument("--params", type=str, default="runtime_params.json", help="Live-tuning JSON file")
    parser.add_argument("--verbose", action="store_true", help="Print every actuator command")
    parser.add_argument("--aim-off", action="store_true", help="Start with aiming off (toggle with 'a')")
    parser.add_argument("--color-assist", action="store_true", help="Start with colour assist on (toggle with 'c')")
    parser.add_argument("--keys", action="store_true", help="Read a/c/q commands from stdin")
    return parser.parse_args(argv)


# ────────────────────────────────────────────────────────────────────────────
#   M A I N
# ────────────────────────────────────────────────────────────────────────────
def main(argv=None) -> None:
    args = _parse_args(argv)

    print("Initializing Vision-Aim System…")
    print(f"Hint: edit '{args.params}' at any time to tweak parameters.\n")

    # -------------------- Config blobs --------------------
    cam_cfg = CameraConfig(device_index=args.camera, source=args.source)
    sys_cfg = SystemConfig(
        detection=DetectionConfig(model_path=args.model),
        aiming=AimingConfig(),
        trigger=TriggerConfig(),
        color_assist=ColorAssistConfig(),
        loop=LoopConfig(),
    )
    screen = Size(*args.screen)

    # ------------------------ Banner ----------------------
    det, aim, trg = sys_cfg.detection, sys_cfg.aiming, sys_cfg.trigger
    print(
        f"Camera: {cam_cfg.source or f'idx={cam_cfg.device_index}'}, "
        f"{cam_cfg.width}x{cam_cfg.height}@{cam_cfg.fps_request} FPS"
    )
    print(
        f"Detector: model={det.model_path}, class={det.target_class}, "
        f"conf={det.confidence_threshold}, every {det.interval_ms:.0f} ms"
    )
    print(
        f"Aiming: fov={aim.fov_radius}px, smoothing={aim.smoothing}, "
        f"lead={aim.prediction_ms}ms, select={aim.target_selection}, hitbox={aim.hitbox}"
    )
    print(f"Trigger: auto_fire={trg.auto_fire}, trigger_bot={trg.trigger_bot}")
    print(f"Screen: {screen.width}x{screen.height}, actuator: DRY RUN")
    if args.keys:
        print("Keys: a = toggle aim, c = toggle colour assist, q = quit (type + Enter)")

    # ------------------------ Run -------------------------
    TargetingProcessor(
        cam_cfg,
        sys_cfg,
        screen,
        video_rect=Rect(0, 0, screen.width, screen.height),
        actuator=DryRunActuator(verbose=args.verbose),
        runtime_params=args.params,
        aim_active=not args.aim_off,
        color_assist_on=args.color_assist,
        key_commands=args.keys,
    ).run()
    print("Main program finished.")


if __name__ == "__main__":
    main()
